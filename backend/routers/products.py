from uuid import UUID

from fastapi import APIRouter, Depends

from core.auth import require_roles
from core.context import AppContext, get_context
from core.results import OperationResult, raise_for_result
from schemas.products import ProductList, ProductUpsert, QuantityChange
from schemas.users import ProfileRead

router = APIRouter()


@router.get("", response_model=ProductList)
async def list_products(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse", "shop")),
):
    await ctx.ledger.refresh()
    return ProductList(products=ctx.ledger.products, total_units=ctx.ledger.total_units)


@router.post("", response_model=OperationResult)
async def upsert_product(
    payload: ProductUpsert,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    """Add stock to an existing SKU, or create the product when the SKU is new."""
    result = await ctx.ledger.upsert_by_sku(payload.sku, payload.name, payload.quantity)
    return raise_for_result(result)


@router.post("/{product_id}/decrease", response_model=OperationResult)
async def decrease_stock(
    product_id: UUID,
    payload: QuantityChange,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    result = await ctx.ledger.decrease(product_id, payload.quantity)
    return raise_for_result(result)


@router.delete("/{product_id}", response_model=OperationResult)
async def remove_product(
    product_id: UUID,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin", "warehouse")),
):
    result = await ctx.ledger.remove(product_id)
    return raise_for_result(result)


@router.delete("", response_model=OperationResult)
async def clear_products(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    result = await ctx.ledger.clear_all()
    return raise_for_result(result)
