"""
Deadline routes, mounted once for clients and once for developers.

Each caller only sees and completes deadlines assigned to them.
"""

from typing import Callable

from fastapi import APIRouter, Depends, Query, status

from webnest.models.deadline_models import CreateDeadlineRequest
from webnest.routes.dependencies import PageParams, get_deadline_service
from webnest.services.deadline_service import DeadlineService


def build_deadline_router(prefix: str, principal_dependency: Callable, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_deadline(
        body: CreateDeadlineRequest,
        principal=Depends(principal_dependency),
        service: DeadlineService = Depends(get_deadline_service),
    ):
        """Create a deadline. Its reminder schedule is fixed at this moment."""
        data = await service.create_deadline(body, principal.id, principal.owner_type)
        return {"success": True, "data": data, "message": "Deadline created successfully"}

    @router.get("")
    async def list_deadlines(
        pages: PageParams = Depends(),
        include_completed: bool = Query(False, alias="includeCompleted"),
        principal=Depends(principal_dependency),
        service: DeadlineService = Depends(get_deadline_service),
    ):
        return await service.list_deadlines(principal.id, pages.page, pages.limit, include_completed)

    @router.get("/upcoming")
    async def upcoming_deadlines(
        principal=Depends(principal_dependency),
        service: DeadlineService = Depends(get_deadline_service),
    ):
        return {"success": True, "data": await service.get_upcoming(principal.id)}

    @router.put("/{deadline_id}/complete")
    async def complete_deadline(
        deadline_id: str,
        principal=Depends(principal_dependency),
        service: DeadlineService = Depends(get_deadline_service),
    ):
        data = await service.complete_deadline(deadline_id, principal.id)
        return {"success": True, "data": data, "message": "Deadline marked as completed"}

    return router
