"""
Admin authentication routes: password login with emailed one-time code, profile, password
change and owner-only admin creation.
"""

from fastapi import APIRouter, Depends, Request, status

from webnest.models.auth_models import (
    CreateAdminRequest,
    LoginRequest,
    ResendOTPRequest,
    UpdatePasswordRequest,
    VerifyOTPRequest,
)
from webnest.models.principal import AdminPrincipal
from webnest.routes.dependencies import device_info_from, get_admin_auth_service, require_admin, require_owner
from webnest.services.admin_auth_service import AdminAuthService

router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    service: AdminAuthService = Depends(get_admin_auth_service),
):
    """
    Sign an admin in.

    Unverified accounts receive `requireOTP: true` and a code by email instead of tokens.
    """
    device = device_info_from(request)
    return await service.login(body.email, body.password, device.ip_address, device.user_agent)


@router.post("/verify-otp")
async def verify_otp(body: VerifyOTPRequest, service: AdminAuthService = Depends(get_admin_auth_service)):
    """Confirm the emailed code. Tokens come from the next `/login`."""
    return await service.verify_otp(body.email, body.otp)


@router.post("/resend-otp")
async def resend_otp(body: ResendOTPRequest, service: AdminAuthService = Depends(get_admin_auth_service)):
    await service.otp_service.resend(body.email)
    return {"success": True, "message": "Verification code sent to your email"}


@router.get("/me")
async def get_me(
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminAuthService = Depends(get_admin_auth_service),
):
    return {"success": True, "data": await service.get_me(admin.id)}


@router.put("/update-password")
async def update_password(
    body: UpdatePasswordRequest,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminAuthService = Depends(get_admin_auth_service),
):
    await service.update_password(admin.id, body.current_password, body.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.post("/create-admin", status_code=status.HTTP_201_CREATED)
async def create_admin(
    body: CreateAdminRequest,
    owner: AdminPrincipal = Depends(require_owner),
    service: AdminAuthService = Depends(get_admin_auth_service),
):
    """**Owner only.** The new admin verifies their email with a one-time code on first login."""
    data = await service.create_admin(body, created_by=owner.id)
    return {"success": True, "data": data, "message": "Admin created successfully"}
