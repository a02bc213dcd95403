"""Logging helpers that keep employee data and secrets out of production logs."""

import logging
import re
from functools import lru_cache

from directory_api.config import get_settings

_MAX_MESSAGE_LENGTH = 200

# Order matters: URLs before paths, emails before tokens
_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(postgresql|postgres|mysql|sqlite|redis|http|https)(\+\w+)?://[^\s'\"]+"), "[URL]"),
    (re.compile(r"['\"]?(/[a-zA-Z0-9_.\-]+){2,}['\"]?"), "[PATH]"),
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[EMAIL]"),
    (re.compile(r"-----BEGIN [A-Z ]+-----.*?-----END [A-Z ]+-----", re.DOTALL), "[KEY]"),
    (re.compile(r"[a-zA-Z0-9_\-]{32,}"), "[TOKEN]"),
]


@lru_cache(maxsize=1)
def is_debug_mode() -> bool:
    """Check if application is running in debug mode."""
    return get_settings().debug


def sanitize_exception_message(error: BaseException | str) -> str:
    """Redact URLs, paths, emails, keys and tokens from an error message.

    Used for log lines in production and for failure notes shown in the admin UI.
    """
    message = str(error) or type(error).__name__
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)

    if len(message) > _MAX_MESSAGE_LENGTH:
        message = message[: _MAX_MESSAGE_LENGTH - 3] + "..."
    return message


def _log(logger: logging.Logger, level: int, message: str, error: BaseException | None) -> None:
    if error is None:
        logger.log(level, message)
    elif is_debug_mode():
        logger.log(level, f"{message}: {error}", exc_info=level >= logging.ERROR)
    else:
        logger.log(level, f"{message}: {sanitize_exception_message(error)}")


def log_error(logger: logging.Logger, message: str, error: BaseException | None = None) -> None:
    """Log an error; full traceback in debug mode, sanitized text otherwise.

    Args:
        logger: The logger instance to use
        message: Generic message without sensitive data
        error: Optional exception to include
    """
    _log(logger, logging.ERROR, message, error)


def log_warning(logger: logging.Logger, message: str, error: BaseException | None = None) -> None:
    """Log a warning; exception text is sanitized outside debug mode."""
    _log(logger, logging.WARNING, message, error)
