"""
# Request Dependencies

FastAPI dependencies shared by every router.

## Principal Resolution

`get_current_principal` is the only place a bearer token is turned into an actor:

1. Decode the access token (`sub` is the account id, `type` is `admin`, `developer` or `user`)
2. Load the account from the collection for that type
3. Reject unknown or deactivated accounts with **401**
4. Return an `AdminPrincipal`, `DeveloperPrincipal` or `UserPrincipal`

Handlers receive the principal as an argument. Role gates (`require_admin`, `require_owner`,
`require_admin_permission`, `require_developer`, `require_user`) narrow it to one kind and
answer **403** for the others.

## Services

Services are constructed per request from `get_db`, which tests override with an in-memory
database.
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer

from webnest.config import settings
from webnest.database import db_manager
from webnest.errors import AuthenticationError, NotFoundError, PermissionDeniedError
from webnest.managers.logging_manager import get_logger
from webnest.models.auth_models import DeviceInfo
from webnest.models.principal import (
    PRINCIPAL_COLLECTIONS,
    AdminPrincipal,
    DeveloperPrincipal,
    Principal,
    UserPrincipal,
)
from webnest.services.account_auth_service import AccountAuthService
from webnest.services.admin_auth_service import AdminAuthService
from webnest.services.analytics_service import AnalyticsService
from webnest.services.deadline_service import DeadlineService
from webnest.services.developer_service import DeveloperService
from webnest.services.earnings_service import EarningsService
from webnest.services.email_service import EmailService
from webnest.services.notification_service import NotificationService
from webnest.services.otp_service import OTPService
from webnest.services.project_service import ProjectService
from webnest.services.token_service import TokenService
from webnest.services.user_service import UserService
from webnest.utils.mongo_utils import to_object_id
from webnest.utils.security_utils import decode_access_token

logger = get_logger(prefix="[Dependencies]")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/auth/login", auto_error=False)


def get_db():
    return db_manager


def get_email_service() -> EmailService:
    return EmailService()


def build_principal(kind: str, account: Dict[str, Any]) -> Principal:
    base = {"id": str(account["_id"]), "name": account.get("name", ""), "email": account.get("email", "")}
    if kind == "admin":
        return AdminPrincipal(
            **base, role=account.get("role", "admin"), permissions=account.get("permissions", [])
        )
    if kind == "developer":
        return DeveloperPrincipal(
            **base, role=account.get("role", "developer"), is_verified=account.get("is_verified", False)
        )
    return UserPrincipal(**base, role=account.get("role", "client"), is_premium=account.get("is_premium", False))


async def get_current_principal(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)) -> Principal:
    """
    Resolve the bearer token into the authenticated principal.

    Raises:
        AuthenticationError: **401** if the token is missing or invalid, or its account is
            gone or deactivated.
    """
    if not token:
        raise AuthenticationError("Not authorized, no token")

    payload = decode_access_token(token)
    kind = payload["type"]
    collection_name = PRINCIPAL_COLLECTIONS.get(kind)
    if collection_name is None:
        raise AuthenticationError("Not authorized, token failed")

    try:
        account_id = to_object_id(payload["sub"])
    except NotFoundError:
        raise AuthenticationError("Not authorized, token failed")

    account = await db.get_collection(collection_name).find_one({"_id": account_id})
    if not account:
        raise AuthenticationError("Not authorized, account not found")
    if not account.get("is_active", True):
        raise AuthenticationError("Not authorized, account deactivated")
    return build_principal(kind, account)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> AdminPrincipal:
    if not isinstance(principal, AdminPrincipal):
        raise PermissionDeniedError("Admin access required")
    return principal


async def require_owner(admin: AdminPrincipal = Depends(require_admin)) -> AdminPrincipal:
    if admin.role != "owner":
        raise PermissionDeniedError("Owner access required")
    return admin


def require_admin_permission(module: str, action: str):
    """Dependency factory gating an admin route on one module/action grant."""

    async def dependency(admin: AdminPrincipal = Depends(require_admin)) -> AdminPrincipal:
        if not admin.has_permission(module, action):
            logger.warning("Admin %s denied %s:%s", admin.email, module, action)
            raise PermissionDeniedError(f"Missing permission {module}:{action}")
        return admin

    return dependency


async def require_developer(principal: Principal = Depends(get_current_principal)) -> DeveloperPrincipal:
    if not isinstance(principal, DeveloperPrincipal):
        raise PermissionDeniedError("Developer access required")
    return principal


async def require_user(principal: Principal = Depends(get_current_principal)) -> UserPrincipal:
    if not isinstance(principal, UserPrincipal):
        raise PermissionDeniedError("Client access required")
    return principal


class PageParams:
    """`page`/`limit` query parameters shared by every list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ):
        self.page = page
        self.limit = limit


def device_info_from(request: Request) -> DeviceInfo:
    return DeviceInfo(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


def get_token_service(db=Depends(get_db)) -> TokenService:
    return TokenService(db)


def get_admin_auth_service(
    db=Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    token_service: TokenService = Depends(get_token_service),
) -> AdminAuthService:
    return AdminAuthService(db, OTPService(db, email_service), token_service)


def get_client_auth_service(
    db=Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    token_service: TokenService = Depends(get_token_service),
) -> AccountAuthService:
    return AccountAuthService(db, token_service, email_service, "users", "User", "User")


def get_developer_auth_service(
    db=Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    token_service: TokenService = Depends(get_token_service),
) -> AccountAuthService:
    return AccountAuthService(db, token_service, email_service, "developers", "Developer", "Developer")


def get_user_service(db=Depends(get_db), email_service: EmailService = Depends(get_email_service)) -> UserService:
    return UserService(db, email_service)


def get_developer_service(db=Depends(get_db)) -> DeveloperService:
    return DeveloperService(db)


def get_project_service(db=Depends(get_db)) -> ProjectService:
    return ProjectService(db)


def get_analytics_service(db=Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


def get_notification_service(db=Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_deadline_service(db=Depends(get_db)) -> DeadlineService:
    return DeadlineService(db)


def get_earnings_service(db=Depends(get_db)) -> EarningsService:
    return EarningsService(db)
