"""
One-time code issuance and verification for back office accounts.

An account moves through four states:

```
unissued --issue()--> issued --verify(ok)--> verified
                        |
                        +--now > expiry--> expired (code cleared, may be re-issued)
                        +--attempts >= limit--> locked (is_active = false)
```

Each transition is a single-document update, so concurrent requests can at worst race on
the attempt counter, which is incremented atomically with `$inc`.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from webnest.config import settings
from webnest.errors import (
    AccountLockedError,
    OTPAlreadyVerifiedError,
    OTPExpiredError,
    OTPInvalidCodeError,
    OTPNotFoundError,
    OTPNotIssuedError,
    OTPTooManyAttemptsError,
)
from webnest.managers.logging_manager import get_logger
from webnest.services.email_service import EmailService
from webnest.utils.security_utils import generate_otp

logger = get_logger(prefix="[OTP]")


class OTPService:
    """
    Issues and verifies email one-time codes stored on the account document.
    """

    def __init__(self, db, email_service: EmailService, collection_name: str = "admins"):
        self.db = db
        self.email_service = email_service
        self.collection_name = collection_name

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def issue(
        self, account: Dict[str, Any], now: Optional[datetime] = None, reset_attempts: bool = True
    ) -> str:
        """
        Store a fresh code and email it to the account.

        Args:
            account: The account document (needs `_id`, `email`, `name`).
            now: Clock override.
            reset_attempts: Zero the attempt counter. Only a password-checked login does this.

        Returns:
            str: The issued code.
        """
        now = now or datetime.now(timezone.utc)
        code = generate_otp()
        fields = {
            "otp": code,
            "otp_expiry": now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
            "updated_at": now,
        }
        if reset_attempts:
            fields["otp_attempts"] = 0
        await self.collection.update_one({"_id": account["_id"]}, {"$set": fields})
        logger.info("Issued verification code for %s", account["email"])
        await self.email_service.send_verification_code(account["email"], account.get("name", ""), code)
        return code

    async def resend(self, email: str, now: Optional[datetime] = None) -> str:
        """
        Issue a new code for an unverified, active account.

        The attempt counter carries over from the previous code.

        Raises:
            OTPNotFoundError, OTPAlreadyVerifiedError, AccountLockedError
            OTPTooManyAttemptsError: Attempt limit already reached. The account is deactivated.
        """
        now = now or datetime.now(timezone.utc)
        account = await self.collection.find_one({"email": email.lower()})
        if not account:
            raise OTPNotFoundError()
        if account.get("is_verified"):
            raise OTPAlreadyVerifiedError()
        if not account.get("is_active", True):
            raise AccountLockedError()
        if account.get("otp_attempts", 0) >= settings.OTP_MAX_ATTEMPTS:
            await self._lock(account, now)
            raise OTPTooManyAttemptsError()
        return await self.issue(account, now=now, reset_attempts=False)

    async def verify(self, email: str, code: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Check a submitted code and advance the account's verification state.

        The checks run in a fixed order so the outcome is deterministic for any stored state.

        Args:
            email: Account email.
            code: Submitted code.
            now: Clock override.

        Returns:
            Dict[str, Any]: The account document as it was before the successful update.

        Raises:
            OTPNotFoundError: No account with this email.
            OTPAlreadyVerifiedError: Account already verified.
            OTPNotIssuedError: No code or expiry on record.
            OTPExpiredError: Code expired. The stored code is cleared.
            OTPTooManyAttemptsError: Attempt limit already reached. The account is deactivated.
            OTPInvalidCodeError: Wrong code. The attempt counter is incremented.
        """
        now = now or datetime.now(timezone.utc)
        account = await self.collection.find_one({"email": email.lower()})
        if not account:
            raise OTPNotFoundError()

        if account.get("is_verified"):
            raise OTPAlreadyVerifiedError()

        stored_code = account.get("otp")
        expiry = account.get("otp_expiry")
        if not stored_code or not expiry:
            raise OTPNotIssuedError()

        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        if now > expiry:
            await self.collection.update_one(
                {"_id": account["_id"]},
                {"$unset": {"otp": "", "otp_expiry": ""}, "$set": {"updated_at": now}},
            )
            logger.info("Verification code expired for %s", email)
            raise OTPExpiredError()

        if account.get("otp_attempts", 0) >= settings.OTP_MAX_ATTEMPTS:
            await self._lock(account, now)
            raise OTPTooManyAttemptsError()

        if code != stored_code:
            await self.collection.update_one({"_id": account["_id"]}, {"$inc": {"otp_attempts": 1}})
            logger.info("Invalid verification code for %s", email)
            raise OTPInvalidCodeError()

        await self.collection.update_one(
            {"_id": account["_id"]},
            {
                "$set": {"is_verified": True, "otp_attempts": 0, "updated_at": now},
                "$unset": {"otp": "", "otp_expiry": ""},
            },
        )
        logger.info("Verified account %s", email)
        return account

    async def _lock(self, account: Dict[str, Any], now: datetime) -> None:
        await self.collection.update_one({"_id": account["_id"]}, {"$set": {"is_active": False, "updated_at": now}})
        logger.warning("Locked %s after too many verification attempts", account["email"])
