from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

# Quantities stay loosely typed here so the ledger can report empty or
# non-numeric input with its own message instead of a 422.
QuantityInput = Optional[Union[int, float, str]]


class ProductRead(BaseModel):
    id: UUID
    sku: str
    name: str
    quantity: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductUpsert(BaseModel):
    sku: str = ""
    name: str = ""
    quantity: QuantityInput = None


class QuantityChange(BaseModel):
    quantity: QuantityInput = None


class ProductList(BaseModel):
    products: List[ProductRead]
    total_units: int
