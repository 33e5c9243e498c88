"""
Client-facing routes: account self-service and in-app notifications.
"""

from fastapi import APIRouter, Depends, Request, status

from webnest.models.auth_models import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterUserRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
)
from webnest.models.principal import UserPrincipal
from webnest.routes.deadlines import build_deadline_router
from webnest.routes.dependencies import (
    device_info_from,
    get_client_auth_service,
    require_user,
)
from webnest.routes.notifications import build_notification_router
from webnest.services.account_auth_service import AccountAuthService

router = APIRouter(prefix="/api/client", tags=["Client"])


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterUserRequest,
    request: Request,
    service: AccountAuthService = Depends(get_client_auth_service),
):
    fields = body.model_dump()
    fields.update({"role": "client", "is_premium": False, "total_spent": 0})
    return {"success": True, "data": await service.register(fields, device_info_from(request))}


@router.post("/auth/login")
async def login(
    body: LoginRequest,
    request: Request,
    service: AccountAuthService = Depends(get_client_auth_service),
):
    return {"success": True, "data": await service.login(body.email, body.password, device_info_from(request))}


@router.get("/auth/me")
async def get_me(
    user: UserPrincipal = Depends(require_user),
    service: AccountAuthService = Depends(get_client_auth_service),
):
    return {"success": True, "data": await service.get_me(user.id)}


@router.put("/auth/update-password")
async def update_password(
    body: UpdatePasswordRequest,
    user: UserPrincipal = Depends(require_user),
    service: AccountAuthService = Depends(get_client_auth_service),
):
    await service.update_password(user.id, body.current_password, body.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.post("/auth/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    service: AccountAuthService = Depends(get_client_auth_service),
):
    await service.forgot_password(body.email)
    return {"success": True, "message": "If that email is registered, a reset link has been sent"}


@router.put("/auth/reset-password/{token}")
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    service: AccountAuthService = Depends(get_client_auth_service),
):
    await service.reset_password(token, body.password)
    return {"success": True, "message": "Password reset successfully"}


deadline_router = build_deadline_router("/api/client/deadlines", require_user, "Client Deadlines")
notification_router = build_notification_router("/api/client/notifications", require_user, "Client Notifications")
