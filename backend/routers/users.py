from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from core.auth import current_active_user, current_profile, require_roles
from core.context import AppContext, get_context
from core.errors import StockError
from core.results import OperationResult, raise_for_result
from db.users import User
from schemas.users import ProfileRead, ProfileUpdate, RoleUpdate

# Profile endpoints. Account endpoints (/auth, /users/me) come from fastapi-users in main.py.
router = APIRouter()


@router.get("/profile", response_model=Optional[ProfileRead])
async def read_profile(profile: Optional[ProfileRead] = Depends(current_profile)):
    return profile


@router.patch("/profile", response_model=OperationResult)
async def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(current_active_user),
    ctx: AppContext = Depends(get_context),
):
    result = await ctx.identity.update_profile(user, payload)
    return raise_for_result(result)


@router.get("/admin/users", response_model=List[ProfileRead])
async def list_profiles(
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    try:
        return await ctx.identity.list_profiles()
    except StockError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.patch("/admin/users/{profile_id}/role", response_model=OperationResult)
async def change_role(
    profile_id: UUID,
    payload: RoleUpdate,
    ctx: AppContext = Depends(get_context),
    profile: ProfileRead = Depends(require_roles("admin")),
):
    result = await ctx.identity.set_role(profile_id, payload.role, payload.city)
    return raise_for_result(result)
