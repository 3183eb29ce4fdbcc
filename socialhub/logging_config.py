"""
Logging setup for the API process.

One stdout handler on the root logger; modules log through
``logging.getLogger(__name__)``.
"""
import json
import logging
import sys
import time
from datetime import datetime, timezone

from socialhub.config import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["traceback"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or settings.log_format) == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    # Replace our own handler on reconfigure, keep anything else (e.g. pytest's caplog)
    for h in list(root.handlers):
        if getattr(h, "_socialhub", False):
            root.removeHandler(h)
    handler._socialhub = True
    root.addHandler(handler)

    # httpx logs every request line at INFO, including query strings with access tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)


def request_logging_middleware():
    """Starlette middleware logging method, path, status and duration."""
    from starlette.middleware.base import BaseHTTPMiddleware

    logger = logging.getLogger("socialhub.requests")

    class RequestLoggingMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request, call_next):
            start = time.time()
            response = await call_next(request)
            duration_ms = round((time.time() - start) * 1000, 2)
            level = logging.INFO if response.status_code < 400 else logging.WARNING
            logger.log(level, "%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration_ms)
            return response

    return RequestLoggingMiddleware
