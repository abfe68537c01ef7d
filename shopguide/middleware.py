import logging
import os
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("shopguide")

SESSION_COOKIE_NAME = "sgk"
SESSION_MAX_AGE = 60 * 60 * 24 * 365  # 1 year

SKIP_LOG_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


def _cookie_secure(request: Request) -> bool:
    configured = os.getenv("COOKIE_SECURE")
    if configured is not None:
        return configured.lower() not in ("0", "false", "no")
    return request.url.hostname not in ("localhost", "127.0.0.1")


class SessionKeyMiddleware(BaseHTTPMiddleware):
    """Assigns a session key cookie to every visitor.

    The key alone does not authenticate anyone: a user is bound to it by
    ``POST /api/session`` and resolved per request in ``deps.get_current_user``.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip session processing for CORS preflight requests
        if request.method == "OPTIONS":
            return await call_next(request)

        session_key = request.cookies.get(SESSION_COOKIE_NAME)
        new_key = False

        if not session_key:
            session_key = secrets.token_urlsafe(24)
            new_key = True

        request.state.session_key = session_key
        request.state.new_session_key = new_key

        response: Response = await call_next(request)

        if new_key:
            response.set_cookie(
                key=SESSION_COOKIE_NAME,
                value=session_key,
                max_age=SESSION_MAX_AGE,
                httponly=True,
                samesite="lax",
                secure=_cookie_secure(request),
                path="/",
                domain=os.getenv("COOKIE_DOMAIN") or None,
            )

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code, duration, and session key prefix for each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        session_key = getattr(request.state, "session_key", None)
        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "session": session_key[:8] if session_key else None,
            }},
        )
        return response
