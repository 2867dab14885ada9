"""
Market Orders — JWT Authentication Middleware
Decodes an optional Bearer token. Requests without one continue anonymously;
a malformed or expired token is rejected with 401.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from jose import JWTError

from market_orders.core.security import decode_token


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Attaches decoded claims to request.state.user, or None for anonymous callers.
    Routes decide for themselves whether anonymous access is allowed.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user = None

        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            return await call_next(request)

        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid Authorization header. Expected: Bearer <token>"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = auth_header.split(" ", 1)[1]
        try:
            claims = decode_token(token)
            if claims.get("type") != "access":
                raise JWTError("wrong token type")
            request.state.user = claims
        except JWTError as exc:
            return JSONResponse(
                status_code=401,
                content={"detail": f"Invalid or expired JWT: {str(exc)}"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        return await call_next(request)
