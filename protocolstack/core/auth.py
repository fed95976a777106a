"""
Auth utilities for the ProtocolStack API.

Validates Bearer JWTs and extracts user_id from request context.
Falls back to X-User-Id header for local development and tests.
"""
from fastapi import Header, Request
from typing import List, Optional
from protocolstack.core.config import settings
from protocolstack.core.errors import UnauthorizedError
import jwt
import logging

logger = logging.getLogger("protocolstack")


def _algorithms() -> List[str]:
    return [a.strip() for a in settings.AUTH_JWT_ALGORITHMS.split(",") if a.strip()]


def verify_jwt(token: str) -> Optional[str]:
    """
    Verify a Bearer JWT and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})

    Returns:
        user_id from the 'sub' claim, or None when no secret is configured

    Raises:
        UnauthorizedError: Invalid or expired token
    """
    if not settings.AUTH_JWT_SECRET:
        logger.debug("No AUTH_JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=_algorithms(),
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token has no subject")
    return user_id


def header_fallback_enabled() -> bool:
    """X-User-Id is a development/test convenience, never honoured in production."""
    return (settings.ENV or "").lower() != "production"


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Development/test user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header (outside production)
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_jwt(auth_header[7:])
        if user_id:
            return user_id

    if header_fallback_enabled():
        if x_user_id and x_user_id.strip():
            return x_user_id.strip()
        raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")

    raise UnauthorizedError("Missing Authorization (Bearer JWT)")
