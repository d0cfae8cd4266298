"""Cross-cutting request wrappers and the order they run in.

``build_middleware`` returns the chain as a list with the outermost entry
first. Starlette wraps the application with that list in reverse, so the
first entry is the first to see a request and the last to see the response.
"""
import time
from typing import Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware

from task_api.auth import AuthGateMiddleware, TokenCodec
from task_api.config import Settings
from task_api.logger import logger

ALLOWED_METHODS = "GET,POST,PUT,DELETE,OPTIONS"
ALLOWED_HEADERS = "Content-Type,Authorization"
EXPOSED_HEADERS = "Content-Type"


class RecoveryMiddleware(BaseHTTPMiddleware):
    """Turns any exception escaping the inner layers into a JSON 500"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "internal error"},
            )


class OriginAllowListMiddleware(BaseHTTPMiddleware):
    """Adds CORS headers for allowed origins and answers every preflight.

    ``origins`` of ``["*"]`` allows any origin. Requests from other origins
    are served without CORS headers, not rejected.
    """

    def __init__(self, app, origins: list[str]):
        super().__init__(app)
        self.origins = frozenset(origins)
        self.allow_all = self.origins == {"*"}

    def is_allowed(self, origin: str) -> bool:
        return bool(origin) and (self.allow_all or origin in self.origins)

    def cors_headers(self, origin: str) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": "*" if self.allow_all else origin,
            "Vary": "Origin",
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Expose-Headers": EXPOSED_HEADERS,
        }

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("Origin", "")
        headers = self.cors_headers(origin) if self.is_allowed(origin) else {}

        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of each request"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.2f}ms)"
        )
        return response


def build_middleware(settings: Settings, codec: Optional[TokenCodec] = None) -> list[Middleware]:
    """Middleware chain for the app, outermost first.

    The auth gate is appended innermost when ``settings.auth_enabled`` so
    preflight requests are answered before credentials are checked.
    """
    chain = [
        Middleware(RecoveryMiddleware),
        Middleware(OriginAllowListMiddleware, origins=settings.allowed_origins),
        Middleware(RequestLoggingMiddleware),
    ]
    if settings.auth_enabled:
        chain.append(Middleware(AuthGateMiddleware, codec=codec or TokenCodec(settings)))
    return chain
