"""
Developer-facing routes: account self-service, earnings and in-app notifications.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from webnest.models.auth_models import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterDeveloperRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
)
from webnest.models.earnings_models import PayoutRequest, StatsPeriod
from webnest.models.principal import DeveloperPrincipal
from webnest.routes.deadlines import build_deadline_router
from webnest.routes.dependencies import (
    PageParams,
    device_info_from,
    get_developer_auth_service,
    get_earnings_service,
    require_developer,
)
from webnest.routes.notifications import build_notification_router
from webnest.services.account_auth_service import AccountAuthService
from webnest.services.earnings_service import EarningsService

router = APIRouter(prefix="/api/developer", tags=["Developer"])


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterDeveloperRequest,
    request: Request,
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    fields = body.model_dump()
    fields.update(
        {
            "role": "developer",
            "is_verified": False,
            "is_available": True,
            "rating": {"average": 0, "count": 0},
            "total_projects": 0,
            "completed_projects": 0,
            "total_earnings": 0,
        }
    )
    return {"success": True, "data": await service.register(fields, device_info_from(request))}


@router.post("/auth/login")
async def login(
    body: LoginRequest,
    request: Request,
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    return {"success": True, "data": await service.login(body.email, body.password, device_info_from(request))}


@router.get("/auth/me")
async def get_me(
    developer: DeveloperPrincipal = Depends(require_developer),
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    return {"success": True, "data": await service.get_me(developer.id)}


@router.put("/auth/update-password")
async def update_password(
    body: UpdatePasswordRequest,
    developer: DeveloperPrincipal = Depends(require_developer),
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    await service.update_password(developer.id, body.current_password, body.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.post("/auth/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    await service.forgot_password(body.email)
    return {"success": True, "message": "If that email is registered, a reset link has been sent"}


@router.put("/auth/reset-password/{token}")
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    service: AccountAuthService = Depends(get_developer_auth_service),
):
    await service.reset_password(token, body.password)
    return {"success": True, "message": "Password reset successfully"}


@router.get("/earnings")
async def earnings_overview(
    developer: DeveloperPrincipal = Depends(require_developer),
    service: EarningsService = Depends(get_earnings_service),
):
    """The 10 latest earnings plus totals per status."""
    return {"success": True, "data": await service.overview(developer.id)}


@router.get("/earnings/stats")
async def earnings_stats(
    period: StatsPeriod = Query("month"),
    developer: DeveloperPrincipal = Depends(require_developer),
    service: EarningsService = Depends(get_earnings_service),
):
    return {"success": True, "data": await service.stats(developer.id, period)}


@router.get("/earnings/payments")
async def payment_history(
    pages: PageParams = Depends(),
    status_filter: Optional[str] = Query(None, alias="status"),
    developer: DeveloperPrincipal = Depends(require_developer),
    service: EarningsService = Depends(get_earnings_service),
):
    return await service.payment_history(developer.id, pages.page, pages.limit, status=status_filter)


@router.post("/earnings/payout", status_code=status.HTTP_201_CREATED)
async def request_payout(
    body: PayoutRequest,
    developer: DeveloperPrincipal = Depends(require_developer),
    service: EarningsService = Depends(get_earnings_service),
):
    """Rejected with **400** when the amount is not positive or exceeds available earnings."""
    data = await service.request_payout(developer.id, body)
    return {"success": True, "data": data, "message": "Payout request submitted successfully"}


deadline_router = build_deadline_router("/api/developer/deadlines", require_developer, "Developer Deadlines")
notification_router = build_notification_router(
    "/api/developer/notifications", require_developer, "Developer Notifications"
)
