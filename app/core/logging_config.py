import logging
import re
import sys

from app.core.config import settings

_REDACTIONS = [
    # JWTs (header.payload.signature)
    (re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+"), "[REDACTED_TOKEN]"),
    # bcrypt hashes
    (re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}"), "[REDACTED_HASH]"),
    # password=..., "password": "..."
    (re.compile(r"(?i)(password[\"']?\s*[:=]\s*[\"']?)[^\s,\"'}]+"), r"\1[REDACTED]"),
]


def redact(text: str) -> str:
    """Mask secrets (tokens, password hashes, passwords) in a log message."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """
    Scrub secrets from every record before a handler formats it.

    The message is rendered once with its args and the args are dropped,
    so secrets passed as %-style arguments are masked as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


def setup_logging():
    """
    Configure structured logging for the application.

    Sets up logging to stdout with timestamps, log levels, and module names.
    The RedactingFilter sits on the logger itself, so records are scrubbed
    before any handler (including ones attached later) sees them.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    app_logger = logging.getLogger("cms")
    app_logger.setLevel(settings.LOG_LEVEL)
    app_logger.handlers = [handler]
    app_logger.filters = [RedactingFilter()]
    app_logger.propagate = False

    # Reduce SQLAlchemy noise in logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return app_logger


# Create global logger instance
logger = setup_logging()
