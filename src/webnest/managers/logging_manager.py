"""
Centralized logger factory for WebNest.

Every module obtains its logger through `get_logger`, optionally with a bracketed prefix
(e.g. `[DATABASE]`, `[OTP]`) that is prepended to every message it emits. The root
`webnest` logger is configured once, on first use, with a stderr handler and the level
taken from `settings.LOG_LEVEL`.

Example:
    ```python
    from webnest.managers.logging_manager import get_logger

    logger = get_logger(prefix="[TokenService]")
    logger.info("Revoked %d tokens", count)
    ```
"""

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple

from webnest.config import settings

ROOT_LOGGER_NAME: str = "webnest"
LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured: bool = False


class PrefixedLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed prefix to each message."""

    def __init__(self, logger: logging.Logger, prefix: str):
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{self.prefix} {msg}", kwargs


def _configure_root_logger() -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.propagate = False
    _configured = True


def get_logger(name: Optional[str] = None, prefix: Optional[str] = None):
    """
    Return a configured logger for the application.

    Args:
        name (Optional[str]): Child logger name under `webnest`. Defaults to the root app logger.
        prefix (Optional[str]): Text prepended to every message, typically `[Component]`.

    Returns:
        logging.Logger | PrefixedLoggerAdapter: Logger ready for use.
    """
    _configure_root_logger()
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)
    if prefix:
        return PrefixedLoggerAdapter(logger, prefix)
    return logger
