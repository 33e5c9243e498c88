"""
In-app notification routes, mounted once for clients and once for developers.

Each caller only sees and changes notifications addressed to them.
"""

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query

from webnest.routes.dependencies import PageParams, get_notification_service
from webnest.services.notification_service import NotificationService


def build_notification_router(prefix: str, principal_dependency: Callable, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("")
    async def list_notifications(
        pages: PageParams = Depends(),
        is_read: Optional[bool] = Query(None, alias="isRead"),
        type: Optional[str] = Query(None),
        priority: Optional[str] = Query(None),
        principal=Depends(principal_dependency),
        service: NotificationService = Depends(get_notification_service),
    ):
        """Newest first, with the caller's total unread count."""
        return await service.list_for_user(
            principal.id, pages.page, pages.limit, is_read=is_read, type=type, priority=priority
        )

    @router.put("/read-all")
    async def mark_all_notifications_read(
        principal=Depends(principal_dependency),
        service: NotificationService = Depends(get_notification_service),
    ):
        updated = await service.mark_all_read(principal.id)
        return {"success": True, "data": {"updated": updated}, "message": "All notifications marked as read"}

    @router.put("/{notification_id}/read")
    async def mark_notification_read(
        notification_id: str,
        principal=Depends(principal_dependency),
        service: NotificationService = Depends(get_notification_service),
    ):
        return {"success": True, "data": await service.mark_read(principal.id, notification_id)}

    @router.delete("/{notification_id}")
    async def delete_notification(
        notification_id: str,
        principal=Depends(principal_dependency),
        service: NotificationService = Depends(get_notification_service),
    ):
        await service.delete(principal.id, notification_id)
        return {"success": True, "message": "Notification deleted"}

    return router
