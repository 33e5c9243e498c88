"""
Self-service authentication for client users and developers.

Both account kinds share one flow (register, login, profile, password change and password
reset) and differ only in their collection, owner type and the profile fields they store.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pymongo.errors import DuplicateKeyError

from webnest.config import settings
from webnest.errors import AccountLockedError, AuthenticationError, BusinessRuleError, NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.auth_models import DeviceInfo
from webnest.models.principal import OwnerType
from webnest.services.email_service import EmailService
from webnest.services.token_service import TokenService
from webnest.utils.mongo_utils import serialize_document, to_object_id
from webnest.utils.security_utils import hash_password, verify_password

logger = get_logger(prefix="[AccountAuth]")


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AccountAuthService:
    """
    Authentication for one self-registering account kind.

    Args:
        db: Database handle exposing `get_collection`.
        token_service: Issues token pairs on register/login.
        email_service: Sends password reset links.
        collection_name: `"users"` or `"developers"`.
        owner_type: `"User"` or `"Developer"`.
        label: Human name used in messages ("User", "Developer").
    """

    def __init__(
        self,
        db,
        token_service: TokenService,
        email_service: EmailService,
        collection_name: str,
        owner_type: OwnerType,
        label: str,
    ):
        self.db = db
        self.token_service = token_service
        self.email_service = email_service
        self.collection_name = collection_name
        self.owner_type = owner_type
        self.label = label

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def register(self, fields: Dict[str, Any], device_info: Optional[DeviceInfo] = None) -> Dict[str, Any]:
        """
        Create an account from validated registration fields and sign it in.

        Raises:
            BusinessRuleError: If the email is already registered.
        """
        email = fields["email"].lower()
        if await self.collection.find_one({"email": email}):
            raise BusinessRuleError(f"{self.label} already exists")

        now = datetime.now(timezone.utc)
        doc = {
            **fields,
            "email": email,
            "password": hash_password(fields["password"]),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise BusinessRuleError(f"{self.label} already exists")
        doc["_id"] = result.inserted_id

        logger.info("Registered %s %s", self.owner_type, email)
        tokens = await self.token_service.issue_pair(str(doc["_id"]), self.owner_type, device_info)
        return {**serialize_document(doc), **tokens.model_dump(by_alias=True)}

    async def login(self, email: str, password: str, device_info: Optional[DeviceInfo] = None) -> Dict[str, Any]:
        """
        Raises:
            AuthenticationError: Unknown email or wrong password.
            AccountLockedError: Account deactivated by an admin.
        """
        account = await self.collection.find_one({"email": email.lower()})
        if not account or not verify_password(password, account.get("password")):
            raise AuthenticationError("Invalid credentials")
        if not account.get("is_active", True):
            raise AccountLockedError()

        now = datetime.now(timezone.utc)
        await self.collection.update_one({"_id": account["_id"]}, {"$set": {"last_login": now}})
        account["last_login"] = now
        tokens = await self.token_service.issue_pair(str(account["_id"]), self.owner_type, device_info)
        return {**serialize_document(account), **tokens.model_dump(by_alias=True)}

    async def get_me(self, account_id: str) -> Dict[str, Any]:
        account = await self.collection.find_one({"_id": to_object_id(account_id, self.label)})
        if not account:
            raise NotFoundError(f"{self.label} not found")
        return serialize_document(account)

    async def update_password(self, account_id: str, current_password: str, new_password: str) -> None:
        account = await self.collection.find_one({"_id": to_object_id(account_id, self.label)})
        if not account:
            raise NotFoundError(f"{self.label} not found")
        if not verify_password(current_password, account.get("password")):
            raise AuthenticationError("Current password is incorrect")
        await self.collection.update_one(
            {"_id": account["_id"]},
            {"$set": {"password": hash_password(new_password), "updated_at": datetime.now(timezone.utc)}},
        )

    async def forgot_password(self, email: str) -> None:
        """
        Email a single-use reset link. Unknown emails are ignored silently so the endpoint does
        not reveal which addresses are registered.
        """
        account = await self.collection.find_one({"email": email.lower()})
        if not account:
            logger.info("Password reset requested for unknown %s email", self.owner_type)
            return

        token = secrets.token_urlsafe(32)
        await self.collection.update_one(
            {"_id": account["_id"]},
            {
                "$set": {
                    "reset_password_token": _hash_reset_token(token),
                    "reset_password_expires": datetime.now(timezone.utc)
                    + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
                }
            },
        )
        reset_link = f"{settings.FRONTEND_URL}/reset-password/{token}"
        await self.email_service.send_password_reset(account["email"], account.get("name", ""), reset_link)

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Raises:
            BusinessRuleError: If the token is unknown or expired.
        """
        now = datetime.now(timezone.utc)
        result = await self.collection.update_one(
            {"reset_password_token": _hash_reset_token(token), "reset_password_expires": {"$gt": now}},
            {
                "$set": {"password": hash_password(new_password), "updated_at": now},
                "$unset": {"reset_password_token": "", "reset_password_expires": ""},
            },
        )
        if result.modified_count == 0:
            raise BusinessRuleError("Invalid or expired reset token")
