from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from core.context import AppContext, get_context
from core.errors import StockError
from db.image import Image

router = APIRouter()


@router.get("/serve/{image_id}", response_class=Response)
async def serve_image(
    image_id: UUID,
    ctx: AppContext = Depends(get_context),
):
    """Serve a stored logo by id. No auth required so img src works."""
    try:
        row = await ctx.gateway.get(Image, image_id)
    except StockError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    # Ids are never reused, a replaced logo gets a new URL.
    return Response(
        content=bytes(row.data),
        media_type=row.content_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )
