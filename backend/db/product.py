import uuid
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from .database import Base, utcnow


class Product(Base):
    """Stocked product. Quantity is only changed through the inventory ledger."""
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku = Column(String, nullable=False)
    # casefolded sku, set by the ledger on insert
    sku_key = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "quantity": int(self.quantity or 0),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

