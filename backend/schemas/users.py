# Pydantic schemas for accounts (fastapi-users) and application profiles

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from fastapi_users import schemas
from pydantic import BaseModel, field_validator, model_validator

Role = Literal["admin", "warehouse", "shop"]
City = Literal["SYDNEY", "MELBOURNE", "BRISBANE"]


def _upper_city(v: Optional[str]) -> Optional[str]:
    if not isinstance(v, str):
        return v
    v = v.strip().upper()
    return v or None


class SignUpMetadata(BaseModel):
    """Sign-up details stored on the account. Admins are not self-registered."""
    name: str
    username: str
    role: Literal["warehouse", "shop"]
    city: Optional[City] = None

    @field_validator("name", "username")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("city", mode="before")
    @classmethod
    def _city(cls, v: Optional[str]) -> Optional[str]:
        return _upper_city(v)

    @model_validator(mode="after")
    def _city_for_shops(self):
        if self.role == "shop" and not self.city:
            raise ValueError("shop users must pick a city")
        if self.role != "shop" and self.city:
            raise ValueError("only shop users have a city")
        return self


class UserRead(schemas.BaseUser[UUID]):
    user_metadata: Optional[Dict[str, Any]] = None


class UserCreate(schemas.BaseUserCreate):
    user_metadata: SignUpMetadata


class UserUpdate(schemas.BaseUserUpdate):
    pass


class ProfileRead(BaseModel):
    id: UUID
    auth_user_id: UUID
    username: str
    name: str
    role: Role
    city: Optional[City] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    city: Optional[City] = None

    @field_validator("name", "username")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("city", mode="before")
    @classmethod
    def _city(cls, v: Optional[str]) -> Optional[str]:
        return _upper_city(v)


class RoleUpdate(BaseModel):
    role: Role
    city: Optional[City] = None

    @field_validator("city", mode="before")
    @classmethod
    def _city(cls, v: Optional[str]) -> Optional[str]:
        return _upper_city(v)
