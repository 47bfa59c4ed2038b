import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from esahayak.api.deps import get_db
from esahayak.api.deps_auth import current_session, rate_limit, session_token_from
from esahayak.api.routes.auth_utils import (
    clear_auth_cookies, issue_magic_link, safe_callback, set_session_cookie,
)
from esahayak.core.config import settings
from esahayak.core.errors import BadRequest, DuplicateEmail
from esahayak.core.security import normalize_email, now_utc, token_preview
from esahayak.schemas.auth import (
    CustomVerifyBody, MessageResponse, SessionOut, SignupBody, SignupResponse,
    UserOut, VerificationIssued, VerifyResponse,
)
from esahayak.services import auth_adapter
from esahayak.services.auth_adapter import SessionAndUser
from esahayak.services.rate_limit import auth_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------- SIGNUP ----------
@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user and email a magic link",
    description="""
Create a user with a **unique email**. The account stays unverified until the
emailed link is used. A failed email does not fail the signup.
""",
)
def signup(
    body: SignupBody,
    _rl=Depends(rate_limit(auth_limiter)),
    db: Session = Depends(get_db),
):
    email = normalize_email(body.email)
    if auth_adapter.get_user_by_email(db, email):
        raise DuplicateEmail()

    user = auth_adapter.create_user(db, email=email, name=body.name)
    _, _, sent = issue_magic_link(db, email, body.name)
    if not sent.ok:
        logger.warning("Signup email to %s failed: %s", email, sent.error)
    db.commit()
    db.refresh(user)
    return SignupResponse(user=UserOut.model_validate(user))


# ---------- MAGIC LINK ----------
@router.post(
    "/custom-verify",
    response_model=VerificationIssued,
    summary="Issue a single-use sign-in token",
    description="""
Stores a token valid for `VERIFY_TOKEN_EXP_HOURS` and emails the sign-in link.
The raw token is only echoed back when `EXPOSE_VERIFY_TOKEN` is on.
""",
)
def create_custom_token(
    body: CustomVerifyBody,
    _rl=Depends(rate_limit(auth_limiter)),
    db: Session = Depends(get_db),
):
    auth_adapter.delete_expired_verification_tokens(db)
    token, expires, sent = issue_magic_link(db, body.email, body.name, body.callback_url)
    if not sent.ok:
        logger.warning("Magic link email to %s failed: %s", body.email, sent.error)
    db.commit()
    logger.info("Verification token %s issued for %s", token_preview(token), body.email)
    return VerificationIssued(
        expires=expires,
        token=token if settings.expose_verify_token else None,
        email_sent=sent.ok,
    )


@router.get(
    "/custom-verify",
    response_model=VerifyResponse,
    summary="Consume a sign-in token and start a session",
    description="Sets the session cookie on success.",
)
def verify_custom_token(
    response: Response,
    token: str = Query(..., min_length=1),
    email: str = Query(..., min_length=3),
    callback_url: Optional[str] = Query(None, alias="callbackUrl"),
    _rl=Depends(rate_limit(auth_limiter)),
    db: Session = Depends(get_db),
):
    found = auth_adapter.get_verification_token(db, email, token)
    if found is not None and found.is_expired:
        # left in place for the expiry sweep
        logger.info("Verification failed for %s: token expired", email)
        raise BadRequest("Verification token has expired")

    consumed = auth_adapter.use_verification_token(db, email, token) if found is not None else None
    if consumed is None:
        logger.info("Verification failed for %s: invalid or already used token", email)
        raise BadRequest("Invalid or already used verification token")

    user = auth_adapter.get_user_by_email(db, consumed.identifier)
    if user is None:
        user = auth_adapter.create_user(
            db, email=consumed.identifier, name=consumed.name, email_verified=now_utc()
        )
    elif user.email_verified is None:
        auth_adapter.update_user(db, user, email_verified=now_utc())

    expires = now_utc() + timedelta(days=settings.session_max_age_days)
    sess = auth_adapter.create_session(db, user.id, expires)
    auth_adapter.sweep(db)
    db.commit()
    db.refresh(user)

    set_session_cookie(response, sess.session_token, expires)
    return VerifyResponse(user=UserOut.model_validate(user), callback_url=safe_callback(callback_url))


# ---------- SESSION ----------
@router.get("/session", response_model=SessionOut, summary="Return the current session")
def get_session(found: SessionAndUser = Depends(current_session)):
    return SessionOut(user=UserOut.model_validate(found.user), expires=found.session.expires)


@router.post("/logout", response_model=MessageResponse, summary="Delete the session and clear auth cookies")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = session_token_from(request)
    if token:
        auth_adapter.delete_session(db, token)
    auth_adapter.sweep(db)
    db.commit()
    clear_auth_cookies(response)
    return MessageResponse(message="Signed out successfully")
