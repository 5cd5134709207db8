"""Bearer-token authentication for API routes.

Each user holds one opaque bearer token issued by ``relaychat user
create``. Only its SHA-256 digest is stored; requests are resolved to a
User by hashing the presented token and looking up the digest.
"""

import hashlib
import hmac
import logging
import secrets

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from relaychat.db.connection import get_db
from relaychat.db.models import User
from relaychat.errors import ChatError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a bearer token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token() -> tuple[str, str]:
    """Create a new bearer token.

    Returns:
        Tuple of (raw token shown once, digest to store).
    """
    token = secrets.token_urlsafe(TOKEN_BYTES)
    return token, hash_token(token)


def _extract_bearer(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    """Resolve the request's bearer token to a User.

    Returns:
        The authenticated User, or None when the token is missing or unknown.
    """
    token = _extract_bearer(request)
    if token is None:
        return None
    digest = hash_token(token)
    user = db.execute(select(User).where(User.token_hash == digest)).scalar_one_or_none()
    if user is None or not hmac.compare_digest(user.token_hash, digest):
        logger.info("Rejected unknown bearer token")
        return None
    return user


def require_user(user: User | None = Depends(get_current_user)) -> User:
    """Like get_current_user but fails with unauthorized:auth (401)."""
    if user is None:
        raise ChatError.from_code("unauthorized:auth")
    return user
