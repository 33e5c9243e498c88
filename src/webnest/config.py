"""
# Configuration Management Module

This module provides the configuration system for the **WebNest** marketplace API.
Built on **Pydantic Settings**, it loads settings from a layered hierarchy, validates them at
import time and exposes a single `settings` singleton to the rest of the application.

## Configuration Loading Hierarchy

```
┌─────────────────────────────────────────────────────────────┐
│  1. Environment Variables (HIGHEST PRIORITY)                │
├─────────────────────────────────────────────────────────────┤
│  2. WEBNEST_CONFIG_PATH (custom config file path)           │
├─────────────────────────────────────────────────────────────┤
│  3. .webnest File (Project Root)                            │
├─────────────────────────────────────────────────────────────┤
│  4. .env File (Project Root)                                │
├─────────────────────────────────────────────────────────────┤
│  5. Default Values (LOWEST PRIORITY)                        │
└─────────────────────────────────────────────────────────────┘
```

If no configuration file is found the application runs in **environment-only mode**.

## Secret Management

- `JWT_SECRET` and `SMTP_PASSWORD` are `SecretStr` so they never leak into logs.
- `JWT_SECRET` has no usable default. Empty values and placeholders containing `"change"` or
  `"0000"` are rejected at startup by `no_hardcoded_secrets`.
- `MONGODB_URL` must be set and non-blank (`no_empty_urls`).

## Configuration Groups

| Group | Purpose |
|-------|---------|
| **Server** | Host, port, debug mode, public URLs, CORS |
| **JWT** | Signing secret, algorithm, access and refresh token lifetimes |
| **MongoDB** | Connection URL, database name, timeouts |
| **Redis** | Optional lock backend for the reminder scheduler |
| **SMTP** | Outbound email transport and sender identity |
| **OTP** | Code length, expiry window and attempt limit |
| **Scheduler** | Cron expressions for deadline reminders and token cleanup |
| **Pagination** | Default and maximum page sizes |

## Usage

```python
from webnest.config import settings

secret = settings.JWT_SECRET.get_secret_value()
if settings.is_production:
    ...
```

```dotenv
# .webnest - Development Configuration
DEBUG=true
MONGODB_URL=mongodb://localhost:27017
MONGODB_DATABASE=webnest_dev
JWT_SECRET=dev-jwt-secret-for-local-testing-abc123
SMTP_EMAIL=noreply@webnest.dev
SMTP_PASSWORD=app-password
EMAIL_ENABLED=false
```

Attributes:
    WEBNEST_FILENAME (str): Primary configuration filename (`.webnest`).
    DEFAULT_ENV_FILENAME (str): Fallback configuration filename (`.env`).
    CONFIG_ENV_VAR (str): Environment variable naming a custom config file.
    PROJECT_ROOT (Path): Repository root, used to locate config files.
    CONFIG_PATH (Optional[str]): Resolved config file or `None` in environment-only mode.
    settings (Settings): Global settings singleton.
"""

import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
WEBNEST_FILENAME: str = ".webnest"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "WEBNEST_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    1.  **Environment Variable**: `WEBNEST_CONFIG_PATH` (if set and the file exists).
    2.  **WebNest Config**: `.webnest` file in the project root directory.
    3.  **Dotenv Config**: `.env` file in the project root directory.
    4.  **Fallback**: `None`, which triggers environment-variable-only mode.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    webnest_path: Path = PROJECT_ROOT / WEBNEST_FILENAME
    if webnest_path.exists():
        return str(webnest_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, public URLs.
    *   **Database**: MongoDB connection details.
    *   **Redis**: Optional connection used for the scheduler tick lock.
    *   **Security**: JWT secret and token lifetimes, OTP policy.
    *   **Email**: SMTP transport settings.
    *   **Scheduler**: Cron expressions for background jobs.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    APP_NAME: str = "WebNest API"
    HOST: str = "127.0.0.1"
    PORT: int = 5000
    DEBUG: bool = True
    BASE_URL: str = "http://localhost:5000"
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"
    LOG_LEVEL: str = "INFO"

    # JWT configuration
    JWT_SECRET: SecretStr = SecretStr("")  # Must be set in .webnest or environment
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # MongoDB configuration
    MONGODB_URL: str = ""  # Must be set in .webnest or environment
    MONGODB_DATABASE: str = "webnest"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Redis configuration
    # When REDIS_URL is unset the reminder scheduler only uses an in-process lock.
    REDIS_URL: Optional[str] = None
    REMINDER_LOCK_KEY: str = "webnest:locks:deadline-reminders"
    REMINDER_LOCK_TTL_SECONDS: int = 55 * 60

    # SMTP configuration
    EMAIL_ENABLED: bool = True
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USE_TLS: bool = True
    SMTP_EMAIL: str = ""
    SMTP_PASSWORD: SecretStr = SecretStr("")
    SMTP_TIMEOUT_SECONDS: int = 30
    EMAIL_FROM_NAME: str = "WebNest"

    # OTP configuration
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5

    # Password hashing
    BCRYPT_ROUNDS: int = 12
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    # First owner account, created at startup when no owner exists
    BOOTSTRAP_OWNER_NAME: str = "Owner"
    BOOTSTRAP_OWNER_EMAIL: Optional[str] = None
    BOOTSTRAP_OWNER_PASSWORD: Optional[SecretStr] = None

    # Scheduler configuration
    SCHEDULER_ENABLED: bool = True
    DEADLINE_REMINDER_CRON: str = "0 * * * *"
    TOKEN_CLEANUP_CRON: str = "30 3 * * *"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    @field_validator("JWT_SECRET", mode="before")
    @classmethod
    def no_hardcoded_secrets(cls, v: Any, info: Any) -> Any:
        """
        Validates that critical secrets are not hardcoded or empty.

        Args:
            v (Any): The value to validate.
            info (Any): Validation info containing the field name.

        Returns:
            Any: The validated value.

        Raises:
            ValueError: If the value is empty, hardcoded, or insecure.
        """
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if not v or "change" in str(v).lower() or "0000" in str(v) or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .webnest and not hardcoded!")
        return v

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """
        Validates that the MongoDB URL is not empty.

        Raises:
            ValueError: If the URL is empty or whitespace.
        """
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .webnest and not empty!")
        return v

    @field_validator(
        "JWT_EXPIRE_MINUTES",
        "REFRESH_TOKEN_EXPIRE_DAYS",
        "OTP_LENGTH",
        "OTP_EXPIRE_MINUTES",
        "OTP_MAX_ATTEMPTS",
        "DEFAULT_PAGE_SIZE",
        "MAX_PAGE_SIZE",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that numeric settings are positive integers.

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @property
    def is_production(self) -> bool:
        """`True` when running with `DEBUG=False`."""
        return not self.DEBUG

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse `CORS_ORIGINS` into a list of origins.

        Returns:
            List[str]: Stripped, non-empty origins from the comma-separated setting.
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def email_sender(self) -> str:
        """Formatted `From` header for outbound mail."""
        return f"{self.EMAIL_FROM_NAME} <{self.SMTP_EMAIL}>"


# Global settings instance
settings: Settings = Settings()
