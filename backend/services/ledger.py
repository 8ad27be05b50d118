"""
Inventory ledger.

Holds the process's projection of the products table and is the only code
that changes ``Product.quantity``. Every write goes to the database first and
is followed by a projection refresh (read-after-write); ``total_units`` is
always computed from the projection, never stored.
"""

from typing import Any, List, Optional
from uuid import UUID

import structlog

from core.converters import clean_text, parse_quantity, sku_key, to_uuid
from core.errors import InsufficientStockError, NotFoundError, StockError, ValidationError
from core.results import OperationResult, operation
from db.gateway import PersistenceGateway
from db.product import Product
from schemas.products import ProductRead

logger = structlog.get_logger(__name__)


def _insufficient(available: int, requested: int) -> InsufficientStockError:
    return InsufficientStockError(f"Insufficient stock. Available: {available}, Requested: {requested}")


class InventoryLedger:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway
        self._products: List[ProductRead] = []
        self.loading = True
        self._started = 0
        self._applied = 0

    @property
    def products(self) -> List[ProductRead]:
        return list(self._products)

    @property
    def total_units(self) -> int:
        return sum(p.quantity for p in self._products)

    async def refresh(self) -> None:
        """Reload the projection. On failure the previous projection is kept.

        A refresh that finishes after a later-started one is dropped, so an
        older snapshot never replaces a newer one.
        """
        self._started += 1
        generation = self._started
        try:
            rows = await self._gateway.list_rows(Product, order_by="created_at")
        except StockError as e:
            logger.error("products_load_failed", reason=e.message)
            return
        finally:
            self.loading = False
        if generation < self._applied:
            logger.debug("products_load_superseded", generation=generation)
            return
        self._applied = generation
        # Swapped in one assignment so readers never see a half-built list.
        self._products = [ProductRead(**r.to_schema) for r in rows]
        logger.debug("products_loaded", count=len(self._products))

    def find(self, product_id: Any) -> Optional[ProductRead]:
        key = str(product_id)
        return next((p for p in self._products if str(p.id) == key), None)

    def find_by_sku(self, sku: str) -> Optional[ProductRead]:
        key = sku_key(sku)
        return next((p for p in self._products if sku_key(p.sku) == key), None)

    @operation("Failed to add/update product")
    async def upsert_by_sku(self, sku: str, name: str, quantity_delta: Any) -> OperationResult:
        """Add ``quantity_delta`` to the product with this SKU, or create it.

        The SKU match is case-insensitive and is checked against the database
        rather than the projection, so a stale projection cannot produce a
        duplicate. For a new product the delta is its initial quantity.
        """
        sku = clean_text(sku)
        name = clean_text(name)
        if not sku:
            raise ValidationError("SKU is required")
        if not name:
            raise ValidationError("Name is required")
        delta = parse_quantity(quantity_delta)

        logger.info("product_upsert", sku=sku, delta=delta)
        existing = await self._gateway.find_product_by_sku(sku)
        if existing is not None:
            updated = await self._gateway.increment_quantity(existing.id, delta, name=name)
            if updated is None:
                current = await self._gateway.get(Product, existing.id)
                await self.refresh()
                if current is None:
                    raise NotFoundError(f"Product {sku} not found in inventory")
                raise _insufficient(int(current.quantity), -delta)
            await self.refresh()
            return OperationResult.ok(
                f"Updated {sku}: added {delta} units (total: {updated.quantity})",
                data=ProductRead(**updated.to_schema).model_dump(mode="json"),
            )

        if delta < 0:
            raise ValidationError("Initial quantity cannot be negative")
        created = await self._gateway.insert(Product, sku=sku, sku_key=sku_key(sku), name=name, quantity=delta)
        await self.refresh()
        return OperationResult.ok(
            f"Added new product: {sku}",
            data=ProductRead(**created.to_schema).model_dump(mode="json"),
        )

    @operation("Failed to decrease stock")
    async def decrease(self, product_id: Any, quantity: Any) -> OperationResult:
        qty = parse_quantity(quantity)
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero")

        product = self.find(product_id)
        if product is None or product.quantity < qty:
            # Refuse only on a current projection.
            await self.refresh()
            product = self.find(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found in inventory")
        if product.quantity < qty:
            raise _insufficient(product.quantity, qty)

        # Another process can still take the stock first; the database decides.
        updated = await self._gateway.decrement_if_available(product.id, qty)
        if updated is None:
            current = await self._gateway.get(Product, product.id)
            await self.refresh()
            if current is None:
                raise NotFoundError(f"Product {product_id} not found in inventory")
            raise _insufficient(int(current.quantity), qty)

        logger.info("stock_decreased", product_id=str(product.id), sku=product.sku, quantity=qty, remaining=updated.quantity)
        await self.refresh()
        return OperationResult.ok(
            f"Successfully dispatched {qty} units of {product.sku}",
            data=ProductRead(**updated.to_schema).model_dump(mode="json"),
        )

    @operation("Failed to restock product")
    async def restock(self, product_id: Any, quantity: Any) -> OperationResult:
        """Put units back, e.g. when a dispatch could not be recorded."""
        qty = parse_quantity(quantity)
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero")
        pid = to_uuid(product_id, "Product")
        updated = await self._gateway.increment_quantity(pid, qty)
        if updated is None:
            raise NotFoundError(f"Product {product_id} not found in inventory")
        logger.info("stock_restored", product_id=str(pid), quantity=qty, total=updated.quantity)
        await self.refresh()
        return OperationResult.ok(f"Restocked {qty} units of {updated.sku}")

    @operation("Failed to remove product")
    async def remove(self, product_id: Any) -> OperationResult:
        pid: UUID = to_uuid(product_id, "Product")
        deleted = await self._gateway.delete(Product, pid)
        if not deleted:
            raise NotFoundError(f"Product {product_id} not found")
        logger.info("product_removed", product_id=str(pid))
        await self.refresh()
        return OperationResult.ok("Product removed successfully")

    @operation("Failed to clear products")
    async def clear_all(self) -> OperationResult:
        count = await self._gateway.delete_all(Product)
        logger.warning("products_cleared", count=count)
        await self.refresh()
        return OperationResult.ok("All products cleared successfully")
