from typing import Optional

from fastapi import APIRouter, Depends, Query

from webnest.routes.dependencies import get_analytics_service, require_admin_permission
from webnest.services.analytics_service import AnalyticsService

router = APIRouter(
    prefix="/api/admin/analytics",
    tags=["Admin Analytics"],
    dependencies=[Depends(require_admin_permission("analytics", "read"))],
)


@router.get("/dashboard")
async def dashboard(
    timeframe: Optional[str] = Query(None, description="7d, 30d, 90d or 1y. Anything else means 30d."),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Headline counts, revenue and growth within `timeframe`."""
    return {"success": True, "data": await service.dashboard(timeframe)}


@router.get("/revenue")
async def revenue(
    period: Optional[str] = Query(None, description="daily or monthly. Anything else means monthly."),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return {"success": True, "data": await service.revenue(period or "monthly")}


@router.get("/user-growth")
async def user_growth(service: AnalyticsService = Depends(get_analytics_service)):
    return {"success": True, "data": await service.user_growth()}


@router.get("/projects")
async def project_analytics(service: AnalyticsService = Depends(get_analytics_service)):
    return {"success": True, "data": await service.projects()}


@router.get("/performance")
async def performance(service: AnalyticsService = Depends(get_analytics_service)):
    return {"success": True, "data": await service.performance()}
