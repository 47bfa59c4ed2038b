import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from esahayak.api.deps import get_db
from esahayak.core.errors import RateLimited, Unauthorized
from esahayak.core.security import SESSION_COOKIE_NAMES, token_preview
from esahayak.models.auth_models import User
from esahayak.services import auth_adapter
from esahayak.services.auth_adapter import SessionAndUser
from esahayak.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def session_token_from(request: Request) -> Optional[str]:
    for name in SESSION_COOKIE_NAMES:
        token = request.cookies.get(name)
        if token:
            return token
    return None


def resolve_session(db: Session, token: Optional[str]) -> Optional[SessionAndUser]:
    """
    Cookie token -> live (session, user) pair, or None.

    Missing, unknown and expired tokens all come back as None; so do lookup
    failures, which are logged.
    """
    if not token:
        return None
    try:
        found = auth_adapter.get_session_and_user(db, token)
    except SQLAlchemyError:
        logger.exception("Session lookup failed for %s", token_preview(token))
        db.rollback()
        return None
    if found is None:
        return None
    if found.is_expired:
        logger.info("Session %s is expired", token_preview(token))
        return None
    return found


def current_session(request: Request, db: Session = Depends(get_db)) -> SessionAndUser:
    found = resolve_session(db, session_token_from(request))
    if found is None:
        raise Unauthorized()
    return found


def current_user(found: SessionAndUser = Depends(current_session)) -> User:
    """Authenticate with the session cookie and return the User."""
    return found.user


def rate_limit(limiter: RateLimiter):
    """
    Dependency factory that enforces ``limiter``.

    Usage:
        _ = Depends(rate_limit(mutation_limiter))
    """
    def dep(request: Request) -> None:
        result = limiter.check_request(request)
        if not result.allowed:
            now = limiter.clock()
            logger.warning("Rate limit (%s) exceeded for %s", limiter.name, limiter.key_func(request))
            raise RateLimited(
                limit=result.total,
                reset_time_ms=result.reset_time,
                retry_after=result.retry_after(now),
            )

    return dep
