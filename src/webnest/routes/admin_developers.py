from typing import Optional

from fastapi import APIRouter, Depends, Query

from webnest.models.account_models import DeveloperUpdateRequest, PromoteDeveloperRequest, VerifyDeveloperRequest
from webnest.models.principal import AdminPrincipal
from webnest.routes.dependencies import PageParams, get_developer_service, require_admin_permission
from webnest.services.developer_service import DeveloperService

router = APIRouter(prefix="/api/admin/developers", tags=["Admin Developers"])


@router.get("")
async def list_developers(
    pages: PageParams = Depends(),
    is_verified: Optional[bool] = Query(None, alias="isVerified"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    skills: Optional[str] = Query(None, description="Comma separated skill names"),
    search: Optional[str] = Query(None),
    _admin=Depends(require_admin_permission("developers", "read")),
    service: DeveloperService = Depends(get_developer_service),
):
    return await service.list_developers(
        pages.page, pages.limit, is_verified=is_verified, is_active=is_active, skills=skills, search=search
    )


@router.get("/stats")
async def developer_stats(
    _admin=Depends(require_admin_permission("developers", "read")),
    service: DeveloperService = Depends(get_developer_service),
):
    return {"success": True, "data": await service.stats()}


@router.get("/{developer_id}")
async def get_developer(
    developer_id: str,
    _admin=Depends(require_admin_permission("developers", "read")),
    service: DeveloperService = Depends(get_developer_service),
):
    return {"success": True, "data": await service.get_developer(developer_id)}


@router.put("/{developer_id}/verify")
async def verify_developer(
    developer_id: str,
    body: VerifyDeveloperRequest,
    admin: AdminPrincipal = Depends(require_admin_permission("developers", "update")),
    service: DeveloperService = Depends(get_developer_service),
):
    data = await service.verify_developer(developer_id, body, admin.id)
    verb = "verified" if body.is_verified else "unverified"
    return {"success": True, "data": data, "message": f"Developer {verb} successfully"}


@router.put("/{developer_id}")
async def update_developer(
    developer_id: str,
    body: DeveloperUpdateRequest,
    _admin=Depends(require_admin_permission("developers", "update")),
    service: DeveloperService = Depends(get_developer_service),
):
    data = await service.update_developer(developer_id, body)
    return {"success": True, "data": data, "message": "Developer updated successfully"}


@router.delete("/{developer_id}")
async def delete_developer(
    developer_id: str,
    _admin=Depends(require_admin_permission("developers", "delete")),
    service: DeveloperService = Depends(get_developer_service),
):
    """Rejected with **400** while the developer holds an open assignment."""
    await service.delete_developer(developer_id)
    return {"success": True, "message": "Developer deleted successfully"}


@router.put("/{developer_id}/promote")
async def promote_developer(
    developer_id: str,
    body: PromoteDeveloperRequest,
    _admin=Depends(require_admin_permission("developers", "update")),
    service: DeveloperService = Depends(get_developer_service),
):
    data = await service.promote_developer(developer_id, body.role)
    return {"success": True, "data": data, "message": f"Developer promoted to {body.role}"}
