"""Logging setup for the exam platform API."""

import logging
import re

from app.config import settings

SENSITIVE_KEYS = ("password", "token", "otp", "secret", "authorization")

_SENSITIVE_PATTERN = re.compile(
    r"(?P<key>['\"]?\w*(?:%s)\w*['\"]?\s*[:=]\s*)(?P<value>'[^']*'|\"[^\"]*\"|[^\s,}]+)"
    % "|".join(SENSITIVE_KEYS),
    re.IGNORECASE,
)


def redact(text: str) -> str:
    """Mask the value of any key/value pair whose key looks sensitive."""
    return _SENSITIVE_PATTERN.sub(lambda m: f"{m.group('key')}***", text)


class RedactingFilter(logging.Filter):
    """Rewrites log records so credentials never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = None) -> logging.Logger:
    """Configure the root logger once and return the application logger."""
    root = logging.getLogger()
    if not any(isinstance(f, RedactingFilter) for h in root.handlers for f in h.filters):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        handler.addFilter(RedactingFilter())
        root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())
    return logging.getLogger("app")
