from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, settings
from db.gateway import PersistenceGateway
from services.branding import BrandingService
from services.identity import IdentityService
from services.ledger import InventoryLedger
from services.requests import RequestLifecycle


@dataclass
class AppContext:
    """The service objects one running app shares. Lives on ``app.state.ctx``."""

    session_maker: async_sessionmaker[AsyncSession]
    gateway: PersistenceGateway
    ledger: InventoryLedger
    requests: RequestLifecycle
    identity: IdentityService
    branding: BrandingService


def build_context(session_maker: async_sessionmaker[AsyncSession], config: Settings = settings) -> AppContext:
    gateway = PersistenceGateway(session_maker)
    ledger = InventoryLedger(gateway)
    return AppContext(
        session_maker=session_maker,
        gateway=gateway,
        ledger=ledger,
        requests=RequestLifecycle(gateway, ledger),
        identity=IdentityService(gateway, timeout_seconds=config.profile_timeout_seconds),
        branding=BrandingService(gateway, max_bytes=config.logo_max_bytes),
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
