from datetime import datetime, timedelta, timezone

from fastapi import Request, status
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware

from task_api.config import HMAC_ALGORITHMS, Settings
from task_api.errors import ConfigurationError, Unauthenticated
from task_api.logger import logger

TOKEN_TTL = timedelta(hours=2)

# No authenticated user
ANONYMOUS_USER_ID = 0

EXEMPT_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


class TokenCodec:
    """Issues and verifies signed, expiring user-id tokens"""

    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm

    def _require_secret(self) -> str:
        if not self.secret:
            raise ConfigurationError("JWT secret not set")
        return self.secret

    def issue(self, user_id: int) -> str:
        """Return a token for ``user_id`` that expires two hours from now"""
        secret = self._require_secret()
        expire = datetime.now(timezone.utc) + TOKEN_TTL
        claims = {"userId": user_id, "exp": int(expire.timestamp())}
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the user id carried by ``token``.

        Raises Unauthenticated on any defect: bad structure or signature, a
        non-HMAC algorithm, a missing or past expiry, or a non-integer id.
        """
        secret = self._require_secret()
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=list(HMAC_ALGORITHMS),
                options={"require_exp": True},
            )
        except JWTError as e:
            raise Unauthenticated(str(e)) from e

        user_id = claims.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise Unauthenticated("invalid user id claim")
        return user_id


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Rejects requests without a valid bearer token.

    The verified user id is stored on ``request.state.user_id``.
    """

    def __init__(self, app, codec: TokenCodec):
        super().__init__(app)
        self.codec = codec

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return _unauthorized("missing or invalid token")

        try:
            user_id = self.codec.verify(header[len("Bearer "):])
        except Unauthenticated as e:
            logger.info(f"Rejected token for {request.method} {request.url.path}: {e}")
            return _unauthorized("invalid token")

        request.state.user_id = user_id
        return await call_next(request)


def get_user_id(request: Request) -> int:
    """Authenticated user id for this request, or ANONYMOUS_USER_ID"""
    return getattr(request.state, "user_id", ANONYMOUS_USER_ID)
