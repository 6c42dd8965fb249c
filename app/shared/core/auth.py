import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, cast

import structlog
from fastapi import Request
from pydantic import BaseModel

from app.shared.core.config import get_settings
from app.shared.core.exceptions import AuthError

logger = structlog.get_logger()

__all__ = [
    "CurrentOperator",
    "create_session_token",
    "decode_session_token",
    "get_operator_from_request",
]


class CurrentOperator(BaseModel):
    """
    The human operator behind a dashboard session.

    The operator's identity doubles as their tenant id: every SCIM path is
    prefixed with it.
    """

    tenant_id: str
    email: Optional[str] = None


def create_session_token(
    data: dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Generate a session JWT signed with the application secret.

    The login flow that mints real sessions lives outside this service; this is
    used by tests and local tooling.
    """
    settings = get_settings()
    if not settings.SESSION_JWT_SECRET:
        raise ValueError("SESSION_JWT_SECRET is not configured")

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.SESSION_TTL_MINUTES)
    )
    to_encode.setdefault("aud", settings.SESSION_JWT_AUDIENCE)
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.SESSION_JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an operator session token.

    Raises:
        AuthError if the token is expired, tampered or signed for another audience.
    """
    settings = get_settings()
    if not settings.SESSION_JWT_SECRET:
        logger.error("session_secret_missing_in_decode")
        raise AuthError("Session authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.SESSION_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SESSION_JWT_AUDIENCE,
        )
        return cast(dict[str, Any], payload)
    except jwt.ExpiredSignatureError:
        logger.warning("session_expired")
        raise AuthError("Session has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("session_invalid", error=str(e))
        raise AuthError("Invalid session")


def get_operator_from_request(request: Request) -> Optional[CurrentOperator]:
    """Return the operator for the session cookie, or None when no cookie is sent."""
    settings = get_settings()
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None

    payload = decode_session_token(token)
    subject = payload.get("sub")
    if not subject:
        raise AuthError("Invalid session payload")
    return CurrentOperator(tenant_id=str(subject), email=payload.get("email"))
