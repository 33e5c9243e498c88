"""
Back office authentication: login with OTP gating, admin management and password changes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo.errors import DuplicateKeyError

from webnest.errors import AccountLockedError, AuthenticationError, BusinessRuleError, NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.auth_models import CreateAdminRequest, DeviceInfo
from webnest.services.otp_service import OTPService
from webnest.services.token_service import TokenService
from webnest.utils.mongo_utils import serialize_document, to_object_id
from webnest.utils.security_utils import hash_password, verify_password

logger = get_logger(prefix="[AdminAuth]")

LOGIN_HISTORY_LIMIT = 50


def admin_profile(admin: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of an admin document."""
    return serialize_document(
        {
            "_id": admin["_id"],
            "name": admin.get("name"),
            "email": admin.get("email"),
            "role": admin.get("role", "admin"),
            "permissions": admin.get("permissions", []),
            "is_verified": admin.get("is_verified", False),
            "last_login": admin.get("last_login"),
        }
    )


class AdminAuthService:
    """
    Service for admin login, OTP verification and account management.
    """

    def __init__(self, db, otp_service: OTPService, token_service: TokenService):
        self.db = db
        self.otp_service = otp_service
        self.token_service = token_service
        self.collection_name = "admins"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def login(
        self,
        email: str,
        password: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Authenticate an admin.

        An unverified account gets a fresh one-time code by email and no token. A verified
        account gets its login recorded and receives an access/refresh token pair.

        Raises:
            AuthenticationError: Unknown email or wrong password.
            AccountLockedError: Account deactivated (including OTP lockout).
        """
        admin = await self.collection.find_one({"email": email.lower()})
        if not admin or not verify_password(password, admin.get("password")):
            logger.info("Failed admin login for %s", email)
            raise AuthenticationError("Invalid credentials")

        if not admin.get("is_active", True):
            raise AccountLockedError("Account is deactivated. Contact the owner")

        if not admin.get("is_verified", False):
            await self.otp_service.issue(admin)
            return {
                "success": True,
                "requireOTP": True,
                "message": "Verification code sent to your email",
                "data": {"email": admin["email"]},
            }

        return await self._complete_login(admin, ip, user_agent)

    async def verify_otp(self, email: str, code: str) -> Dict[str, Any]:
        """
        Mark the admin's email as verified. No token is issued; the admin signs in again with
        their password.
        """
        await self.otp_service.verify(email, code)
        logger.info("Admin %s verified their email", email.lower())
        return {"success": True, "message": "Email verified successfully. Please log in"}

    async def _complete_login(
        self, admin: Dict[str, Any], ip: Optional[str], user_agent: Optional[str]
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"_id": admin["_id"]},
            {
                "$set": {"last_login": now},
                "$push": {
                    "login_history": {
                        "$each": [{"ip": ip, "user_agent": user_agent, "login_at": now}],
                        "$slice": -LOGIN_HISTORY_LIMIT,
                    }
                },
            },
        )
        tokens = await self.token_service.issue_pair(
            str(admin["_id"]),
            "Admin",
            DeviceInfo(user_agent=user_agent, ip_address=ip),
            extra_claims={"role": admin.get("role", "admin")},
        )
        logger.info("Admin %s logged in", admin["email"])
        admin["last_login"] = now
        return {"success": True, "data": {**admin_profile(admin), **tokens.model_dump(by_alias=True)}}

    async def get_me(self, admin_id: str) -> Dict[str, Any]:
        admin = await self.collection.find_one({"_id": to_object_id(admin_id, "Admin")})
        if not admin:
            raise NotFoundError("Admin not found")
        return admin_profile(admin)

    async def update_password(self, admin_id: str, current_password: str, new_password: str) -> None:
        admin = await self.collection.find_one({"_id": to_object_id(admin_id, "Admin")})
        if not admin:
            raise NotFoundError("Admin not found")
        if not verify_password(current_password, admin.get("password")):
            raise AuthenticationError("Current password is incorrect")

        await self.collection.update_one(
            {"_id": admin["_id"]},
            {"$set": {"password": hash_password(new_password), "updated_at": datetime.now(timezone.utc)}},
        )
        logger.info("Admin %s changed password", admin["email"])

    async def create_admin(self, request: CreateAdminRequest, created_by: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a new, unverified admin account.

        Raises:
            BusinessRuleError: If an admin with this email already exists.
        """
        email = request.email.lower()
        if await self.collection.find_one({"email": email}):
            raise BusinessRuleError("Admin already exists")

        now = datetime.now(timezone.utc)
        doc = {
            "name": request.name,
            "email": email,
            "password": hash_password(request.password),
            "role": request.role,
            "permissions": [p.model_dump() for p in request.permissions],
            "is_active": True,
            "is_verified": False,
            "otp_attempts": 0,
            "login_history": [],
            "last_login": None,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise BusinessRuleError("Admin already exists")
        doc["_id"] = result.inserted_id
        logger.info("Admin %s created by %s", email, created_by or "bootstrap")
        return admin_profile(doc)

    async def ensure_owner(self, name: str, email: str, password: str) -> bool:
        """Create the first owner account when no owner exists yet. Returns True if one was created."""
        if await self.collection.find_one({"role": "owner"}):
            return False
        await self.create_admin(CreateAdminRequest(name=name, email=email, password=password, role="owner"))
        return True
