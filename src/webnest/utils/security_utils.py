"""
Security primitives: password hashing, access tokens, refresh tokens and OTP codes.

Passwords are hashed with **bcrypt**. Access tokens are HS256 JWTs signed with
`settings.JWT_SECRET` via **python-jose**. Refresh tokens are opaque random strings that
only mean something once stored by the token service.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from webnest.config import settings
from webnest.errors import AuthenticationError
from webnest.managers.logging_manager import get_logger

logger = get_logger(prefix="[Security]")

REFRESH_TOKEN_BYTES = 64


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh bcrypt salt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """
    Check a plaintext password against a stored bcrypt hash.

    Returns `False` for missing or malformed hashes instead of raising.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(
    subject: str,
    principal_type: str,
    extra_claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a short-lived access token.

    Args:
        subject (str): Owner id, stored in `sub`.
        principal_type (str): `"admin"`, `"developer"` or `"user"`, stored in `type`.
        extra_claims (Optional[Dict[str, Any]]): Additional claims, e.g. the admin role.
        expires_delta (Optional[timedelta]): Override for `JWT_EXPIRE_MINUTES`.

    Returns:
        str: Encoded JWT.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    claims: Dict[str, Any] = {"sub": subject, "type": principal_type, "iat": now, "exp": expire}
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.JWT_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Raises:
        AuthenticationError: If the token is expired, tampered with or missing claims.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET.get_secret_value(), algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError as e:
        logger.debug("Rejected access token: %s", e)
        raise AuthenticationError("Not authorized, token failed")

    if not payload.get("sub") or not payload.get("type"):
        raise AuthenticationError("Not authorized, token failed")
    return payload


def generate_refresh_token() -> str:
    """128 hex characters from 64 random bytes."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def generate_otp(length: Optional[int] = None) -> str:
    """Numeric one-time code with no leading zero (e.g. 100000-999999 for six digits)."""
    digits = length or settings.OTP_LENGTH
    low = 10 ** (digits - 1)
    return str(low + secrets.randbelow(9 * low))
