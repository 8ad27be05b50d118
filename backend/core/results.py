import functools
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from fastapi import HTTPException, status
from pydantic import BaseModel

from core.errors import ResultKind, StockError

logger = structlog.get_logger(__name__)


class OperationResult(BaseModel):
    """What every ledger/request/identity operation hands back to its caller.

    ``success`` + ``message`` is the presentation contract; ``kind`` keeps the
    reason a failure happened so callers can branch on it.
    """

    success: bool
    message: str
    kind: ResultKind = ResultKind.OK
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, message: str, data: Optional[Dict[str, Any]] = None) -> "OperationResult":
        return cls(success=True, message=message, kind=ResultKind.OK, data=data)

    @classmethod
    def from_error(cls, error: StockError) -> "OperationResult":
        return cls(success=False, message=error.message, kind=error.kind)

    @classmethod
    def failed(cls, message: str) -> "OperationResult":
        return cls(success=False, message=message, kind=ResultKind.BACKEND)


def operation(failure_message: str) -> Callable:
    """Turn raised ``StockError``s (and anything unexpected) into failed results."""

    def decorator(fn: Callable[..., Awaitable[OperationResult]]) -> Callable[..., Awaitable[OperationResult]]:
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> OperationResult:
            try:
                return await fn(*args, **kwargs)
            except StockError as e:
                logger.info("operation_rejected", operation=fn.__qualname__, kind=e.kind.value, reason=e.message)
                return OperationResult.from_error(e)
            except Exception:
                logger.exception("operation_failed", operation=fn.__qualname__)
                return OperationResult.failed(failure_message)

        return wrapper

    return decorator


HTTP_STATUS_BY_KIND = {
    ResultKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ResultKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultKind.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ResultKind.ILLEGAL_TRANSITION: status.HTTP_409_CONFLICT,
    ResultKind.BACKEND: status.HTTP_502_BAD_GATEWAY,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    if result.success:
        return result
    raise HTTPException(
        status_code=HTTP_STATUS_BY_KIND.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=result.message,
    )
