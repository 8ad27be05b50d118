import uuid
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.context import AppContext, get_context
from core.logging import add_context
from db.database import get_async_session
from db.users import User
from schemas.users import ProfileRead
from services.identity import IdentityService

logger = structlog.get_logger(__name__)


class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = settings.jwt_secret
    verification_token_secret = settings.jwt_secret

    def __init__(self, user_db: SQLAlchemyUserDatabase, identity: IdentityService):
        super().__init__(user_db)
        self.identity = identity

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info("user_registered", auth_user_id=str(user.id), email=user.email)
        await self.identity.load_profile(user)

    async def on_after_login(self, user: User, request: Optional[Request] = None, response=None):
        await self.identity.on_sign_in(user)


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    yield SQLAlchemyUserDatabase(session, User)


async def get_user_manager(
    user_db: SQLAlchemyUserDatabase = Depends(get_user_db),
    ctx: AppContext = Depends(get_context),
):
    yield UserManager(user_db, ctx.identity)


bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=settings.jwt_secret, lifetime_seconds=settings.jwt_lifetime_seconds)


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend])

current_active_user = fastapi_users.current_user(active=True)


async def current_profile(
    user: User = Depends(current_active_user),
    ctx: AppContext = Depends(get_context),
) -> Optional[ProfileRead]:
    return await ctx.identity.load_profile(user)


def require_roles(*roles: str):
    """Dependency that lets through only profiles holding one of ``roles``."""

    async def dependency(profile: Optional[ProfileRead] = Depends(current_profile)) -> ProfileRead:
        if profile is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User profile unavailable")
        add_context(profile_id=str(profile.id), role=profile.role)
        if profile.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
        return profile

    return dependency
