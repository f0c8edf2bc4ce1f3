from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from orgscope.models.security import User

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer"
ORGANIZATION_HEADER = "X-Organization-Id"


def extract_user_id(request: Request) -> str | None:
    """
    Demo auth: extract bearer token and treat it as a user_id.

    - Input: `Authorization: Bearer <token>`
    - Demo behavior: `<token>` is the user id verbatim
    - Production behavior (documented only): an upstream identity layer verifies the
      token and hands over the verified user id
    """

    raw = request.headers.get(AUTHORIZATION_HEADER)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{BEARER_PREFIX} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {AUTHORIZATION_HEADER}. Expected '{BEARER_PREFIX} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {AUTHORIZATION_HEADER}. Missing token after '{BEARER_PREFIX}'.",
        )

    return token


def extract_organization_id(request: Request) -> str | None:
    """Organization the client wants to work in, if it named one."""
    value = request.headers.get(ORGANIZATION_HEADER)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")

    return user
