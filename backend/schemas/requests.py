from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from schemas.products import QuantityInput

RequestStatus = Literal["pending", "approved", "dispatched", "cancelled"]


class RequestRead(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    shop_name: str
    shop_location: str
    requested_quantity: int
    status: RequestStatus
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RequestDetail(RequestRead):
    product_sku: str
    product_name: str


class RequestCreate(BaseModel):
    """Shop-facing payload; shop name and location come from the shop's profile."""
    product_id: UUID
    requested_quantity: QuantityInput = None
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class RequestSubmission(RequestCreate):
    shop_name: str
    shop_location: str


class RequestStatusUpdate(BaseModel):
    status: str


class RequestList(BaseModel):
    requests: List[RequestDetail]
    counts: Dict[str, int]
