import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from .database import Base, utcnow


class StockRequest(Base):
    """Restock request raised by a shop against one product."""
    __tablename__ = "requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    # Requests outlive their product; a NULL product shows as "Unknown Product".
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    shop_name = Column(String, nullable=False)
    shop_location = Column(String, nullable=False)
    requested_quantity = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending|approved|dispatched|cancelled
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "shop_name": self.shop_name,
            "shop_location": self.shop_location,
            "requested_quantity": int(self.requested_quantity),
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at,
        }
