import uuid
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.auth import auth_backend, fastapi_users
from core.config import settings
from core.context import build_context
from core.logging import add_context, clear_context, configure_logging
from db.database import async_session_maker, create_db_and_tables
from routers.branding import router as branding_router
from routers.images import router as images_router
from routers.products import router as products_router
from routers.requests import router as requests_router
from routers.users import router as users_router
from schemas.users import UserCreate, UserRead, UserUpdate

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.environment)
    await create_db_and_tables()
    ctx = build_context(async_session_maker, settings)
    app.state.ctx = ctx
    await ctx.ledger.refresh()
    await ctx.requests.refresh()
    logger.info(
        "app_started",
        environment=settings.environment,
        products=len(ctx.ledger.products),
        requests=len(ctx.requests.requests),
    )
    yield
    logger.info("app_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Stock Request API",
        description="Warehouse inventory and shop restock requests",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        clear_context()
        add_context(request_id=uuid.uuid4().hex[:12], method=request.method, path=request.url.path)
        return await call_next(request)

    # Authentication routes (fastapi-users)
    app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
    app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
    app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

    # Profiles and role administration
    app.include_router(users_router, tags=["profiles"])

    # Inventory and restock requests
    app.include_router(products_router, prefix="/products", tags=["products"])
    app.include_router(requests_router, prefix="/requests", tags=["requests"])

    # Branding and stored images
    app.include_router(branding_router, prefix="/branding", tags=["branding"])
    app.include_router(images_router, prefix="/images", tags=["images"])

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
