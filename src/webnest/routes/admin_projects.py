from typing import Optional

from fastapi import APIRouter, Depends, Query

from webnest.models.principal import AdminPrincipal
from webnest.models.project_models import AssignProjectRequest, ReassignProjectRequest, UpdateProjectStatusRequest
from webnest.routes.dependencies import PageParams, get_project_service, require_admin_permission
from webnest.services.project_service import ProjectService

router = APIRouter(prefix="/api/admin/projects", tags=["Admin Projects"])


@router.get("")
async def list_projects(
    pages: PageParams = Depends(),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    _admin=Depends(require_admin_permission("projects", "read")),
    service: ProjectService = Depends(get_project_service),
):
    return await service.list_projects(pages.page, pages.limit, status=status, priority=priority)


@router.get("/stats")
async def project_stats(
    _admin=Depends(require_admin_permission("projects", "read")),
    service: ProjectService = Depends(get_project_service),
):
    return {"success": True, "data": await service.stats()}


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    _admin=Depends(require_admin_permission("projects", "read")),
    service: ProjectService = Depends(get_project_service),
):
    return {"success": True, "data": await service.get_project(project_id)}


@router.put("/{project_id}/assign")
async def assign_project(
    project_id: str,
    body: AssignProjectRequest,
    admin: AdminPrincipal = Depends(require_admin_permission("projects", "update")),
    service: ProjectService = Depends(get_project_service),
):
    """Set the developer and create the assignment record as one unit of work."""
    data = await service.assign_project(project_id, body, admin.id)
    return {"success": True, "data": data, "message": "Project assigned successfully"}


@router.put("/{project_id}/reassign")
async def reassign_project(
    project_id: str,
    body: ReassignProjectRequest,
    admin: AdminPrincipal = Depends(require_admin_permission("projects", "update")),
    service: ProjectService = Depends(get_project_service),
):
    data = await service.reassign_project(project_id, body, admin.id)
    return {"success": True, "data": data, "message": "Project reassigned successfully"}


@router.put("/{project_id}/status")
async def update_project_status(
    project_id: str,
    body: UpdateProjectStatusRequest,
    _admin=Depends(require_admin_permission("projects", "update")),
    service: ProjectService = Depends(get_project_service),
):
    data = await service.update_status(project_id, body)
    return {"success": True, "data": data, "message": "Project status updated successfully"}
