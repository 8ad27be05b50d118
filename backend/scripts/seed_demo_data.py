import argparse
import asyncio
import sys
from pathlib import Path

"""
Seed demo products into the database through the inventory ledger.

Existing SKUs get the demo quantity added, new ones are created.

This script can be run from either:
- backend/: `uv run python scripts/seed_demo_data.py`
- repo root: `uv run python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core.logging import configure_logging  # noqa: E402
from db.database import async_session_maker, create_db_and_tables  # noqa: E402
from db.gateway import PersistenceGateway  # noqa: E402
from services.ledger import InventoryLedger  # noqa: E402

DEMO_PRODUCTS = [
    ("ABC-001", "Widget", 40),
    ("ABC-002", "Gadget", 25),
    ("BOX-100", "Shipping box (large)", 120),
    ("BOX-050", "Shipping box (small)", 200),
    ("TAPE-01", "Packing tape", 60),
    ("LBL-500", "Shelf labels (500)", 15),
]


async def seed(reset: bool = False) -> None:
    await create_db_and_tables()
    ledger = InventoryLedger(PersistenceGateway(async_session_maker))

    if reset:
        result = await ledger.clear_all()
        print(result.message)

    for sku, name, quantity in DEMO_PRODUCTS:
        result = await ledger.upsert_by_sku(sku, name, quantity)
        print(("ok   " if result.success else "FAIL ") + result.message)

    print(f"[seed_demo_data] products={len(ledger.products)} total_units={ledger.total_units}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Delete every product before seeding")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(seed(reset=bool(args.reset)))
