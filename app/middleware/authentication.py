# app/middleware/authentication.py
from typing import Optional, Set, Callable, Awaitable
from fastapi import Request, status
from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp
from loguru import logger
from fastapi.responses import JSONResponse

from app.core.security import decode_access_token


# Paths that do not require a bearer token
PUBLIC_PATHS: Set[str] = {
    "/",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/health/db",
    "/api/v1/auth/token",
}

def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return path.startswith(("/docs", "/redoc", "/health"))

class AuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        request_id = getattr(request.state, 'request_id', 'N/A')

        if is_public_path(path):
            logger.debug(f"RID:{request_id} Public path accessed: {path}. Skipping auth.")
            return await call_next(request)

        authorization: Optional[str] = request.headers.get("Authorization")
        scheme, token = get_authorization_scheme_param(authorization or "")
        if not authorization or scheme.lower() != "bearer" or not token:
            logger.warning(f"RID:{request_id} Auth failed: No valid Bearer token for protected path {path}.")
            return JSONResponse(
                 status_code=status.HTTP_401_UNAUTHORIZED,
                 content={"detail": "Not authenticated"},
                 headers={"WWW-Authenticate": "Bearer"},
            )

        username = decode_access_token(token)
        if not username:
            logger.warning(f"RID:{request_id} Auth failed: Invalid or expired token for path {path}.")
            return JSONResponse(
                 status_code=status.HTTP_401_UNAUTHORIZED,
                 content={"detail": "Invalid token"},
                 headers={"WWW-Authenticate": "Bearer"},
            )

        # Picked up by get_current_user
        request.state.username = username
        logger.debug(f"RID:{request_id} Auth successful for user '{username}' accessing protected path {path}.")
        return await call_next(request)
