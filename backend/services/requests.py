"""
Request lifecycle.

    pending  --approve-->  approved
    pending  --cancel--->  cancelled
    approved --dispatch--> dispatched   (only after the ledger took the stock)
    approved --cancel--->  cancelled

dispatched and cancelled are terminal. Status writes are compare-on-status:
the row is only updated if it still has the status the transition was
checked against.
"""

from typing import Any, Dict, List, Optional

import structlog

from core.converters import clean_text, optional_text, parse_quantity, to_uuid
from core.errors import BackendError, IllegalTransitionError, NotFoundError, StockError, ValidationError
from core.results import OperationResult, operation
from db.gateway import PersistenceGateway
from db.request import StockRequest
from schemas.requests import RequestRead, RequestSubmission
from services.ledger import InventoryLedger

logger = structlog.get_logger(__name__)

REQUEST_STATUSES = ("pending", "approved", "dispatched", "cancelled")

TRANSITIONS: Dict[str, frozenset] = {
    "pending": frozenset({"approved", "cancelled"}),
    "approved": frozenset({"dispatched", "cancelled"}),
    "dispatched": frozenset(),
    "cancelled": frozenset(),
}


def check_transition(current: str, new: str) -> None:
    if new not in TRANSITIONS.get(current, frozenset()):
        raise IllegalTransitionError(f"Cannot change request from {current} to {new}")


def allowed_transitions(current: str) -> List[str]:
    return sorted(TRANSITIONS.get(current, frozenset()))


class RequestLifecycle:
    def __init__(self, gateway: PersistenceGateway, ledger: InventoryLedger):
        self._gateway = gateway
        self._ledger = ledger
        self._requests: List[RequestRead] = []
        self.loading = True
        self._started = 0
        self._applied = 0

    @property
    def requests(self) -> List[RequestRead]:
        return list(self._requests)

    async def refresh(self) -> None:
        self._started += 1
        generation = self._started
        try:
            rows = await self._gateway.list_rows(StockRequest, order_by="created_at", descending=True)
        except StockError as e:
            logger.error("requests_load_failed", reason=e.message)
            return
        finally:
            self.loading = False
        if generation < self._applied:
            logger.debug("requests_load_superseded", generation=generation)
            return
        self._applied = generation
        self._requests = [RequestRead(**r.to_schema) for r in rows]
        logger.debug("requests_loaded", count=len(self._requests))

    def filtered(self, status: Optional[str] = None, user_id: Any = None) -> List[RequestRead]:
        out = self._requests
        if status and status != "all":
            out = [r for r in out if r.status == status]
        if user_id is not None:
            out = [r for r in out if str(r.user_id) == str(user_id)]
        return sorted(out, key=lambda r: r.created_at, reverse=True)

    def status_counts(self) -> Dict[str, int]:
        counts = {s: 0 for s in REQUEST_STATUSES}
        for r in self._requests:
            counts[r.status] = counts.get(r.status, 0) + 1
        return counts

    @operation("Failed to submit request")
    async def submit(self, request: RequestSubmission, user_id: Any) -> OperationResult:
        """Record a new pending request. Stock is not reserved here."""
        qty = parse_quantity(request.requested_quantity, "Requested quantity")
        if qty <= 0:
            raise ValidationError("Requested quantity must be greater than zero")
        shop_name = clean_text(request.shop_name)
        shop_location = clean_text(request.shop_location)
        if not shop_name or not shop_location:
            raise ValidationError("Shop name and location are required")

        product = self._ledger.find(request.product_id)
        if product is None:
            await self._ledger.refresh()
            product = self._ledger.find(request.product_id)
        if product is None:
            raise ValidationError("Please select a product")

        row = await self._gateway.insert(
            StockRequest,
            user_id=to_uuid(user_id, "User"),
            product_id=product.id,
            shop_name=shop_name,
            shop_location=shop_location,
            requested_quantity=qty,
            status="pending",
            notes=optional_text(request.notes),
        )
        logger.info("request_submitted", request_id=str(row.id), sku=product.sku, quantity=qty, shop=shop_name)
        await self.refresh()

        message = "Request submitted successfully!"
        if qty > product.quantity:
            message += f" Warning: requested quantity ({qty}) exceeds available stock ({product.quantity})"
        return OperationResult.ok(message, data=RequestRead(**row.to_schema).model_dump(mode="json"))

    @operation("Failed to update request")
    async def set_status(self, request_id: Any, new_status: str) -> OperationResult:
        new_status = clean_text(new_status).lower()
        if new_status not in REQUEST_STATUSES:
            raise ValidationError(f"Unknown status: {new_status or '(empty)'}")
        if new_status == "dispatched":
            raise IllegalTransitionError("Use dispatch to mark a request as dispatched")

        row = await self._load(request_id)
        check_transition(row.status, new_status)
        updated = await self._gateway.update(StockRequest, row.id, expected={"status": row.status}, status=new_status)
        if updated is None:
            await self.refresh()
            raise IllegalTransitionError("Request was changed by someone else, refresh and try again")

        logger.info("request_status_changed", request_id=str(row.id), old=row.status, new=new_status)
        await self.refresh()
        return OperationResult.ok(
            f"Request {new_status} successfully",
            data=RequestRead(**updated.to_schema).model_dump(mode="json"),
        )

    @operation("Failed to dispatch request")
    async def dispatch(self, request: Any) -> OperationResult:
        """Take the stock for an approved request, then mark it dispatched.

        A failed stock decrease leaves the request approved and returns the
        ledger's failure. If the status write fails after the decrease, the
        units are put back.
        """
        row = await self._load(getattr(request, "id", request))
        check_transition(row.status, "dispatched")
        if row.product_id is None:
            raise NotFoundError("The product for this request no longer exists")

        taken = await self._ledger.decrease(row.product_id, row.requested_quantity)
        if not taken.success:
            logger.info("dispatch_refused", request_id=str(row.id), reason=taken.message)
            return taken

        try:
            updated = await self._gateway.update(
                StockRequest, row.id, expected={"status": "approved"}, status="dispatched"
            )
        except BackendError:
            await self._return_stock(row)
            raise
        if updated is None:
            await self._return_stock(row)
            await self.refresh()
            raise IllegalTransitionError("Request is no longer approved, stock was returned")

        logger.info("request_dispatched", request_id=str(row.id), product_id=str(row.product_id), quantity=row.requested_quantity)
        await self.refresh()
        return OperationResult.ok(taken.message, data=RequestRead(**updated.to_schema).model_dump(mode="json"))

    @operation("Failed to remove request")
    async def remove(self, request_id: Any) -> OperationResult:
        """Delete in any status. Stock taken by a dispatched request stays taken."""
        rid = to_uuid(request_id, "Request")
        deleted = await self._gateway.delete(StockRequest, rid)
        if not deleted:
            raise NotFoundError("Request not found")
        logger.info("request_removed", request_id=str(rid))
        await self.refresh()
        return OperationResult.ok("Request removed successfully")

    @operation("Failed to clear requests")
    async def clear_all(self) -> OperationResult:
        count = await self._gateway.delete_all(StockRequest)
        logger.warning("requests_cleared", count=count)
        await self.refresh()
        return OperationResult.ok("All requests cleared successfully")

    async def _load(self, request_id: Any) -> StockRequest:
        row = await self._gateway.get(StockRequest, to_uuid(request_id, "Request"))
        if row is None:
            raise NotFoundError("Request not found")
        return row

    async def _return_stock(self, row: StockRequest) -> None:
        restored = await self._ledger.restock(row.product_id, row.requested_quantity)
        if restored.success:
            logger.warning("dispatch_rolled_back", request_id=str(row.id), quantity=row.requested_quantity)
        else:
            logger.error(
                "dispatch_rollback_failed",
                request_id=str(row.id),
                product_id=str(row.product_id),
                quantity=row.requested_quantity,
                reason=restored.message,
            )
