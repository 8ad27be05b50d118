from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from core.auth import require_roles
from core.context import AppContext, get_context
from core.results import OperationResult, raise_for_result
from schemas.requests import RequestCreate, RequestDetail, RequestList, RequestRead, RequestStatusUpdate, RequestSubmission
from schemas.users import ProfileRead

router = APIRouter()


def _with_product(ctx: AppContext, requests: List[RequestRead]) -> List[RequestDetail]:
    out = []
    for r in requests:
        product = ctx.ledger.find(r.product_id) if r.product_id else None
        out.append(
            RequestDetail(
                **r.model_dump(),
                product_sku=product.sku if product else "N/A",
                product_name=product.name if product else "Unknown Product",
            )
        )
    return out


@router.get("", response_model=RequestList)
async def list_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    await ctx.ledger.refresh()
    await ctx.requests.refresh()
    return RequestList(
        requests=_with_product(ctx, ctx.requests.filtered(status=status_filter)),
        counts=ctx.requests.status_counts(),
    )


@router.get("/mine", response_model=List[RequestDetail])
async def list_my_requests(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("shop")),
):
    await ctx.ledger.refresh()
    await ctx.requests.refresh()
    return _with_product(ctx, ctx.requests.filtered(user_id=profile.id))


@router.post("", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: RequestCreate,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("shop", "admin")),
):
    # Shops request on behalf of their city's store.
    city = profile.city or "UNKNOWN"
    submission = RequestSubmission(
        **payload.model_dump(),
        shop_name=f"{city} Store",
        shop_location=city,
    )
    result = await ctx.requests.submit(submission, profile.id)
    return raise_for_result(result)


@router.patch("/{request_id}/status", response_model=OperationResult)
async def update_request_status(
    request_id: UUID,
    payload: RequestStatusUpdate,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    result = await ctx.requests.set_status(request_id, payload.status)
    return raise_for_result(result)


@router.post("/{request_id}/dispatch", response_model=OperationResult)
async def dispatch_request(
    request_id: UUID,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    result = await ctx.requests.dispatch(request_id)
    return raise_for_result(result)


@router.delete("/{request_id}", response_model=OperationResult)
async def remove_request(
    request_id: UUID,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    result = await ctx.requests.remove(request_id)
    return raise_for_result(result)


@router.delete("", response_model=OperationResult)
async def clear_requests(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    result = await ctx.requests.clear_all()
    return raise_for_result(result)
