"""
Token routes shared by admins, developers and clients.
"""

from fastapi import APIRouter, Depends

from webnest.managers.logging_manager import get_logger
from webnest.models.auth_models import RefreshTokenRequest
from webnest.models.principal import Principal
from webnest.routes.dependencies import get_current_principal, get_token_service
from webnest.services.token_service import TokenService

logger = get_logger(prefix="[Auth Routes]")

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/refresh")
async def refresh(body: RefreshTokenRequest, service: TokenService = Depends(get_token_service)):
    """Exchange a refresh token for a new access token. The refresh token stays valid."""
    access_token = await service.refresh_access_token(body.refresh_token)
    return {"success": True, "data": {"accessToken": access_token, "tokenType": "bearer"}}


@router.post("/logout")
async def logout(body: RefreshTokenRequest, service: TokenService = Depends(get_token_service)):
    await service.revoke_refresh_token(body.refresh_token)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/logout-all")
async def logout_all(
    principal: Principal = Depends(get_current_principal),
    service: TokenService = Depends(get_token_service),
):
    """Revoke every refresh token of the caller, signing out all devices."""
    revoked = await service.revoke_all(principal.id, principal.owner_type)
    logger.info("%s %s signed out of %d sessions", principal.owner_type, principal.email, revoked)
    return {"success": True, "data": {"revoked": revoked}, "message": "Logged out from all devices"}
