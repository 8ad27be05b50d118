from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from core.auth import require_roles
from core.context import AppContext, get_context
from core.errors import StockError
from core.results import OperationResult, raise_for_result
from schemas.branding import BrandingRead
from schemas.users import ProfileRead
from services.branding import decode_data_url

router = APIRouter()


@router.get("", response_model=BrandingRead)
async def read_branding(ctx: AppContext = Depends(get_context)):
    """Public: the login screen shows the logo before anyone signs in."""
    try:
        return BrandingRead(logo_url=await ctx.branding.logo_url())
    except StockError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post("/logo", response_model=OperationResult)
async def upload_logo(
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    """
    Replace the company logo.
    Accepts either a file upload or a base64 encoded image (optionally a data URL).
    """
    if file:
        data = await file.read()
        result = await ctx.branding.upload_logo(data, file.content_type, file.filename)
    elif base64_image:
        try:
            data, content_type = decode_data_url(base64_image)
        except StockError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
        result = await ctx.branding.upload_logo(data, content_type)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'file' or 'base64_image' must be provided",
        )
    return raise_for_result(result)


@router.delete("/logo", response_model=OperationResult)
async def remove_logo(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    result = await ctx.branding.remove_logo()
    return raise_for_result(result)
