import uuid
from fastapi_users.db import SQLAlchemyBaseUserTableUUID
from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from .database import Base, utcnow


class User(SQLAlchemyBaseUserTableUUID, Base):
    """Login account managed by fastapi-users.

    ``user_metadata`` keeps what was given at sign-up (name, username, role,
    city) so a missing profile can be rebuilt from it.
    """
    __tablename__ = "auth_users"

    user_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class UserProfile(Base):
    """Application profile: role and shop city for one account."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    auth_user_id = Column(GUID, ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False, unique=True)
    username = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="shop")  # admin|warehouse|shop
    city = Column(String, nullable=True)  # SYDNEY|MELBOURNE|BRISBANE, shops only
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "auth_user_id": self.auth_user_id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "city": self.city,
            "created_at": self.created_at,
        }
