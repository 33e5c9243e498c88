from typing import Optional

from fastapi import APIRouter, Depends, Query

from webnest.models.account_models import PromoteUserRequest, UserUpdateRequest
from webnest.routes.dependencies import PageParams, get_user_service, require_admin_permission
from webnest.services.user_service import UserService

router = APIRouter(prefix="/api/admin/users", tags=["Admin Users"])


@router.get("")
async def list_users(
    pages: PageParams = Depends(),
    role: Optional[str] = Query(None),
    is_premium: Optional[bool] = Query(None, alias="isPremium"),
    search: Optional[str] = Query(None),
    _admin=Depends(require_admin_permission("users", "read")),
    service: UserService = Depends(get_user_service),
):
    return await service.list_users(pages.page, pages.limit, role=role, is_premium=is_premium, search=search)


@router.get("/stats")
async def user_stats(
    _admin=Depends(require_admin_permission("users", "read")),
    service: UserService = Depends(get_user_service),
):
    return {"success": True, "data": await service.stats()}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    _admin=Depends(require_admin_permission("users", "read")),
    service: UserService = Depends(get_user_service),
):
    return {"success": True, "data": await service.get_user(user_id)}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    _admin=Depends(require_admin_permission("users", "update")),
    service: UserService = Depends(get_user_service),
):
    return {"success": True, "data": await service.update_user(user_id, body), "message": "User updated successfully"}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    _admin=Depends(require_admin_permission("users", "delete")),
    service: UserService = Depends(get_user_service),
):
    """Rejected with **400** while the client has a project in progress."""
    await service.delete_user(user_id)
    return {"success": True, "message": "User deleted successfully"}


@router.put("/{user_id}/promote")
async def promote_user(
    user_id: str,
    body: PromoteUserRequest,
    _admin=Depends(require_admin_permission("users", "update")),
    service: UserService = Depends(get_user_service),
):
    data = await service.promote_user(user_id, body.duration)
    return {"success": True, "data": data, "message": f"User promoted to premium for {body.duration} days"}
