"""
Delete ALL stock requests from the database. Product quantities are left as they are.

Run inside docker (recommended):
  docker exec -i stock-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/reset_requests.py"
"""

from __future__ import annotations

import asyncio

from sqlalchemy import delete

from db.database import async_session_maker
from db.request import StockRequest


async def main() -> None:
    async with async_session_maker() as db:
        res = await db.execute(delete(StockRequest))
        await db.commit()

        requests_n = int(getattr(res, "rowcount", 0) or 0)
        print(f"Deleted requests: {requests_n}")


if __name__ == "__main__":
    asyncio.run(main())
