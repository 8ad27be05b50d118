"""
Application profiles on top of fastapi-users accounts.

The account (``auth_users``) proves who someone is; the profile (``users``)
says what they may do. Profile reads never block a request for long: after
``timeout_seconds`` the caller continues without a profile.
"""

import asyncio
from typing import Any, List, Optional

import structlog

from core.converters import clean_text, to_uuid
from core.errors import BackendError, NotFoundError, StockError, ValidationError
from core.results import OperationResult, operation
from db.gateway import PersistenceGateway
from db.users import User, UserProfile
from schemas.users import ProfileRead, ProfileUpdate

logger = structlog.get_logger(__name__)

ROLES = ("admin", "warehouse", "shop")
CITIES = ("SYDNEY", "MELBOURNE", "BRISBANE")


def _local_part(email: Optional[str]) -> str:
    return clean_text(email).split("@", 1)[0]


class IdentityService:
    def __init__(self, gateway: PersistenceGateway, timeout_seconds: float = 2.0):
        self._gateway = gateway
        self.timeout_seconds = timeout_seconds

    async def load_profile(self, auth_user: User) -> Optional[ProfileRead]:
        """Profile for a signed-in account, or None when it cannot be had in time."""
        try:
            return await asyncio.wait_for(self._load_or_create(auth_user), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("profile_load_timeout", auth_user_id=str(auth_user.id), timeout=self.timeout_seconds)
        except StockError as e:
            logger.warning("profile_load_failed", auth_user_id=str(auth_user.id), reason=e.message)
        return None

    async def _load_or_create(self, auth_user: User) -> Optional[ProfileRead]:
        row = await self._gateway.find_one(UserProfile, auth_user_id=auth_user.id)
        if row is not None:
            return ProfileRead(**row.to_schema)
        return await self.create_profile_from_metadata(auth_user)

    async def create_profile_from_metadata(self, auth_user: User) -> Optional[ProfileRead]:
        metadata = auth_user.user_metadata or {}
        if not metadata:
            logger.warning("profile_metadata_missing", auth_user_id=str(auth_user.id))
            return None

        fallback = _local_part(auth_user.email)
        role = clean_text(metadata.get("role")).lower()
        if role not in ROLES:
            role = "shop"
        city = clean_text(metadata.get("city")).upper()
        if role != "shop" or city not in CITIES:
            city = None

        try:
            row = await self._gateway.insert(
                UserProfile,
                auth_user_id=auth_user.id,
                username=clean_text(metadata.get("username")) or fallback,
                name=clean_text(metadata.get("name")) or fallback,
                role=role,
                city=city,
            )
        except BackendError:
            # Two sign-ins racing to create the same profile; the other one won.
            row = await self._gateway.find_one(UserProfile, auth_user_id=auth_user.id)
            if row is None:
                raise
        logger.info("profile_created", auth_user_id=str(auth_user.id), role=row.role, city=row.city)
        return ProfileRead(**row.to_schema)

    async def on_sign_in(self, auth_user: User) -> Optional[ProfileRead]:
        profile = await self.load_profile(auth_user)
        logger.info(
            "user_signed_in",
            auth_user_id=str(auth_user.id),
            role=profile.role if profile else None,
        )
        return profile

    async def list_profiles(self) -> List[ProfileRead]:
        rows = await self._gateway.list_rows(UserProfile, order_by="created_at")
        return [ProfileRead(**r.to_schema) for r in rows]

    @operation("Failed to update profile")
    async def update_profile(self, auth_user: User, updates: ProfileUpdate) -> OperationResult:
        row = await self._gateway.find_one(UserProfile, auth_user_id=auth_user.id)
        if row is None:
            raise NotFoundError("Profile not found")

        data = updates.model_dump(exclude_unset=True)
        values = {k: data[k] for k in ("name", "username") if data.get(k) is not None}
        if "city" in data:
            if row.role != "shop":
                raise ValidationError("only shop users have a city")
            if not data["city"]:
                raise ValidationError("shop users must pick a city")
            values["city"] = data["city"]
        if not values:
            raise ValidationError("Nothing to update")

        updated = await self._gateway.update(UserProfile, row.id, **values)
        if updated is None:
            raise NotFoundError("Profile not found")
        logger.info("profile_updated", profile_id=str(row.id), fields=sorted(values))
        return OperationResult.ok(
            "Profile updated successfully",
            data=ProfileRead(**updated.to_schema).model_dump(mode="json"),
        )

    @operation("Failed to update role")
    async def set_role(self, profile_id: Any, role: str, city: Optional[str] = None) -> OperationResult:
        """Admin-only role change. Shops need a city, everyone else loses theirs."""
        role = clean_text(role).lower()
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role or '(empty)'}")
        city = clean_text(city).upper() or None
        if role == "shop":
            if city not in CITIES:
                raise ValidationError("shop users must pick a city")
        else:
            city = None

        pid = to_uuid(profile_id, "Profile")
        updated = await self._gateway.set_profile_role(pid, role, city)
        if updated is None:
            raise NotFoundError("Profile not found")

        logger.info("role_changed", profile_id=str(pid), role=role, city=city)
        return OperationResult.ok(
            f"Role updated to {role}",
            data=ProfileRead(**updated.to_schema).model_dump(mode="json"),
        )
