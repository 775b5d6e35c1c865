"""Error handler middleware with PII redaction."""

import logging
import re
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from budget_keeper.config import settings

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_TOKEN_PATTERN = re.compile(r"(token|jwt|bearer)([\"']?\s*[:= ]\s*[\"']?)([A-Za-z0-9._-]{20,})", re.IGNORECASE)


def redact_pii(text: str) -> str:
    """Mask e-mail addresses and bearer tokens in log text."""
    if not text:
        return text
    redacted = _EMAIL_PATTERN.sub("[REDACTED_EMAIL]", text)
    return _TOKEN_PATTERN.sub(r"\1\2[REDACTED_TOKEN]", redacted)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for handling uncaught exceptions.

    - Logs errors with PII redaction
    - Returns safe error messages to clients (no stack traces in production)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle request and catch any uncaught exceptions."""
        try:
            return await call_next(request)

        except Exception as exc:
            logger.error(
                f"Unhandled {type(exc).__name__} on {request.method} "
                f"{request.url.path}: {redact_pii(str(exc))}",
                exc_info=True,
            )

            if settings.DEBUG:
                error_detail = {
                    "error": redact_pii(str(exc)),
                    "type": type(exc).__name__,
                    "detail": "An error occurred processing your request",
                }
            else:
                error_detail = {
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred. Please try again later.",
                }

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_detail
            )
