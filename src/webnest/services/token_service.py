"""
Access and refresh token issuance.

Access tokens are short-lived JWTs. Refresh tokens are opaque 128-character hex strings
stored in `refresh_tokens` with a 30-day expiry, an active flag and a last-used timestamp,
scoped to an owner id plus owner type (`User`, `Developer` or `Admin`). Tokens are not
rotated on use.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from webnest.config import settings
from webnest.errors import AuthenticationError
from webnest.managers.logging_manager import get_logger
from webnest.models.auth_models import DeviceInfo, TokenPair
from webnest.models.principal import OwnerType
from webnest.utils.security_utils import create_access_token, generate_refresh_token

logger = get_logger(prefix="[TokenService]")

# Access token `type` claim for each owner type
PRINCIPAL_KINDS: Dict[str, str] = {"Admin": "admin", "Developer": "developer", "User": "user"}


class TokenService:
    """
    Creates, validates and revokes refresh tokens and mints access tokens.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "refresh_tokens"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def create_refresh_token(
        self,
        owner_id: str,
        owner_type: OwnerType,
        device_info: Optional[DeviceInfo] = None,
        now: Optional[datetime] = None,
    ) -> str:
        now = now or datetime.now(timezone.utc)
        token = generate_refresh_token()
        await self.collection.insert_one(
            {
                "token": token,
                "user_id": str(owner_id),
                "user_type": owner_type,
                "expires_at": now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
                "is_active": True,
                "device_info": (device_info or DeviceInfo()).model_dump(),
                "last_used": now,
                "created_at": now,
            }
        )
        logger.debug("Created refresh token for %s %s", owner_type, owner_id)
        return token

    async def issue_pair(
        self,
        owner_id: str,
        owner_type: OwnerType,
        device_info: Optional[DeviceInfo] = None,
        extra_claims: Optional[Dict[str, Any]] = None,
    ) -> TokenPair:
        """Mint an access token and persist a new refresh token for the owner."""
        access_token = create_access_token(str(owner_id), PRINCIPAL_KINDS[owner_type], extra_claims)
        refresh_token = await self.create_refresh_token(owner_id, owner_type, device_info)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def validate_refresh_token(self, token: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Look up an active, unexpired token and touch its `last_used` timestamp.

        The lookup and the touch are one `find_one_and_update`, so a token revoked or expired
        concurrently can never be reported valid.

        Raises:
            AuthenticationError: If the token is unknown, inactive or expired.
        """
        now = now or datetime.now(timezone.utc)
        record = await self.collection.find_one_and_update(
            {"token": token, "is_active": True, "expires_at": {"$gt": now}},
            {"$set": {"last_used": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not record:
            raise AuthenticationError("Invalid or expired refresh token")
        return record

    async def refresh_access_token(self, token: str) -> str:
        """Exchange a valid refresh token for a new access token."""
        record = await self.validate_refresh_token(token)
        return create_access_token(record["user_id"], PRINCIPAL_KINDS[record["user_type"]])

    async def revoke_refresh_token(self, token: str) -> bool:
        result = await self.collection.update_one({"token": token}, {"$set": {"is_active": False}})
        return result.modified_count > 0

    async def revoke_all(self, owner_id: str, owner_type: OwnerType) -> int:
        """Deactivate every active refresh token of one principal."""
        result = await self.collection.update_many(
            {"user_id": str(owner_id), "user_type": owner_type, "is_active": True},
            {"$set": {"is_active": False}},
        )
        logger.info("Revoked %d refresh tokens for %s %s", result.modified_count, owner_type, owner_id)
        return result.modified_count

    async def cleanup_expired_tokens(self, now: Optional[datetime] = None) -> int:
        """Delete tokens that are expired or inactive. Returns the number removed."""
        now = now or datetime.now(timezone.utc)
        result = await self.collection.delete_many({"$or": [{"expires_at": {"$lt": now}}, {"is_active": False}]})
        logger.info("Cleaned up %d expired or revoked refresh tokens", result.deleted_count)
        return result.deleted_count
