"""
Bearer token verification and the middleware that fills the security context.

Tokens are issued by the external login service; this service only checks
the signature and expiry and reads the username from the "sub" claim.
"""
from typing import Optional
import jwt
from fastapi import HTTPException, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core import config
from app.core.security_context import authenticated_as
from app.utils import get_logger


log = get_logger(__name__)


def verify_jwt_token(token: str) -> dict:
    """
    Verify a bearer JWT and return its payload.
    
    Args:
        token: JWT token from Authorization header
        
    Returns:
        Decoded JWT payload
        
    Raises:
        HTTPException: If token is invalid, expired or no secret is configured
    """
    if not config.JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token verification is not configured",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def username_from_authorization(header: Optional[str]) -> Optional[str]:
    """Return the token subject for a valid "Bearer <jwt>" header, else None."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        payload = verify_jwt_token(token.strip())
    except HTTPException as e:
        log.info("Rejected bearer token: %s", e.detail)
        return None
    return payload.get("sub")


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Put the caller's username into the security context for the request.

    Anonymous requests pass through untouched; protected operations fail
    closed further down when no identity is present.

    Usage:
        app.add_middleware(AuthenticationMiddleware)
    """

    async def dispatch(self, request: Request, call_next):
        username = username_from_authorization(request.headers.get("Authorization"))
        request.state.username = username
        with authenticated_as(username):
            return await call_next(request)
