import os

# Must be set before anything imports core.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"

from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi_users.password import PasswordHelper  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402

from core.auth import current_active_user  # noqa: E402
from core.config import settings  # noqa: E402
from core.context import build_context  # noqa: E402
from db.database import create_db_and_tables, make_engine  # noqa: E402
from db.users import User  # noqa: E402
from schemas.requests import RequestSubmission  # noqa: E402

password_helper = PasswordHelper()


@pytest.fixture
async def session_maker():
    """Fresh in-memory database per test."""
    engine = make_engine("sqlite+aiosqlite://")
    await create_db_and_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def ctx(session_maker):
    return build_context(session_maker, settings)


@pytest.fixture
async def ledger(ctx):
    await ctx.ledger.refresh()
    return ctx.ledger


@pytest.fixture
async def lifecycle(ctx, ledger):
    await ctx.requests.refresh()
    return ctx.requests


@pytest.fixture
def app(ctx):
    from main import create_app

    application = create_app()
    application.state.ctx = ctx
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def login_as(app):
    """Make every request in the test act as ``user``."""

    def _login(user: User) -> None:
        app.dependency_overrides[current_active_user] = lambda: user

    return _login


@pytest.fixture
def make_account(ctx):
    async def _make(role: str = "shop", city: str | None = "SYDNEY", metadata: bool = True) -> User:
        email = f"{role}-{uuid4().hex[:8]}@example.com"
        user_metadata = None
        if metadata:
            user_metadata = {"name": role.title(), "username": email.split("@")[0], "role": role}
            if city:
                user_metadata["city"] = city
        return await ctx.gateway.insert(
            User,
            email=email,
            hashed_password=password_helper.hash("password123"),
            is_active=True,
            is_superuser=(role == "admin"),
            is_verified=True,
            user_metadata=user_metadata,
        )

    return _make


async def make_product(ledger, sku: str = "ABC-001", name: str = "Widget", quantity: int = 5):
    result = await ledger.upsert_by_sku(sku, name, quantity)
    assert result.success, result.message
    return ledger.find_by_sku(sku)


async def submit_request(lifecycle, product, quantity=3, user_id=None, notes=None) -> str:
    payload = RequestSubmission(
        product_id=product.id,
        requested_quantity=quantity,
        shop_name="SYDNEY Store",
        shop_location="SYDNEY",
        notes=notes,
    )
    result = await lifecycle.submit(payload, user_id or uuid4())
    assert result.success, result.message
    return result.data["id"]
