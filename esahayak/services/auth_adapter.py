"""
Session/auth bridge over the users, accounts, sessions and
verification_tokens tables.

Lookups return ``None`` on absence and never raise for it. Writes flush but do
not commit: the calling route owns the transaction, so a user, its session and
the consumed token land (or roll back) together.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from esahayak.core.errors import DuplicateEmail
from esahayak.core.security import ensure_aware, new_session_token, normalize_email, now_utc, token_preview
from esahayak.models.auth_models import Account, Session, User, VerificationToken

logger = logging.getLogger(__name__)


@dataclass
class SessionAndUser:
    session: Session
    user: User

    @property
    def is_expired(self) -> bool:
        return ensure_aware(self.session.expires) <= now_utc()


@dataclass
class ConsumedToken:
    identifier: str
    token: str
    expires: datetime
    name: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        return ensure_aware(self.expires) < now_utc()


# ---------- users ----------

def create_user(db: DbSession, email: str, name: Optional[str] = None,
                email_verified: Optional[datetime] = None, image: Optional[str] = None) -> User:
    user = User(email=normalize_email(email), name=name, email_verified=email_verified, image=image)
    try:
        db.add(user)
        db.flush()
    except IntegrityError:
        # the failed flush leaves the transaction unusable; callers start over
        db.rollback()
        raise DuplicateEmail()
    return user


def get_user(db: DbSession, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: DbSession, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == normalize_email(email))).scalars().first()


def get_user_by_account(db: DbSession, provider: str, provider_account_id: str) -> Optional[User]:
    stmt = (
        select(User)
        .join(Account, Account.user_id == User.id)
        .where(Account.provider == provider, Account.provider_account_id == provider_account_id)
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def update_user(db: DbSession, user: User, **fields: Any) -> User:
    for key in ("name", "email", "email_verified", "image"):
        if key in fields:
            value = fields[key]
            setattr(user, key, normalize_email(value) if key == "email" and value else value)
    db.flush()
    return user


def delete_user(db: DbSession, user_id: UUID) -> None:
    user = db.get(User, user_id)
    if user is not None:
        db.delete(user)
        db.flush()


# ---------- linked accounts ----------

def link_account(db: DbSession, user_id: UUID, provider: str, provider_account_id: str,
                 type: str = "oauth", **tokens: Any) -> Account:
    allowed = {"refresh_token", "access_token", "expires_at", "token_type", "scope", "id_token", "session_state"}
    acc = Account(
        user_id=user_id,
        type=type,
        provider=provider,
        provider_account_id=provider_account_id,
        **{k: v for k, v in tokens.items() if k in allowed},
    )
    db.add(acc)
    db.flush()
    return acc


def unlink_account(db: DbSession, provider: str, provider_account_id: str) -> None:
    db.execute(
        delete(Account).where(Account.provider == provider, Account.provider_account_id == provider_account_id)
    )


# ---------- sessions ----------

def create_session(db: DbSession, user_id: UUID, expires: datetime,
                   session_token: Optional[str] = None) -> Session:
    """Persist a new session. The caller sets the token as the session cookie."""
    sess = Session(session_token=session_token or new_session_token(), user_id=user_id, expires=expires)
    db.add(sess)
    db.flush()
    logger.info("Session %s created for user %s", token_preview(sess.session_token), user_id)
    return sess


def get_session_and_user(db: DbSession, session_token: str) -> Optional[SessionAndUser]:
    """Join session and user by token. Expired rows are returned as-is; check ``is_expired``."""
    row = db.execute(
        select(Session, User)
        .join(User, Session.user_id == User.id)
        .where(Session.session_token == session_token)
        .limit(1)
    ).first()
    if row is None:
        return None
    return SessionAndUser(session=row[0], user=row[1])


def update_session(db: DbSession, session_token: str, expires: datetime) -> Optional[Session]:
    sess = db.execute(select(Session).where(Session.session_token == session_token)).scalars().first()
    if sess is None:
        return None
    sess.expires = expires
    db.flush()
    return sess


def delete_session(db: DbSession, session_token: str) -> None:
    # idempotent
    db.execute(delete(Session).where(Session.session_token == session_token))
    logger.info("Session %s deleted", token_preview(session_token))


def delete_expired_sessions(db: DbSession) -> int:
    result = db.execute(
        delete(Session).where(Session.expires < now_utc()).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


# ---------- verification tokens ----------

def create_verification_token(db: DbSession, identifier: str, token: str, expires: datetime,
                              name: Optional[str] = None) -> VerificationToken:
    vt = VerificationToken(identifier=normalize_email(identifier), token=token, expires=expires, name=name)
    db.add(vt)
    db.flush()
    return vt


def get_verification_token(db: DbSession, identifier: str, token: str) -> Optional[ConsumedToken]:
    """Look a token up without consuming it."""
    vt = db.execute(
        select(VerificationToken).where(
            VerificationToken.identifier == normalize_email(identifier), VerificationToken.token == token
        )
    ).scalars().first()
    if vt is None:
        return None
    return ConsumedToken(identifier=vt.identifier, token=vt.token, expires=vt.expires, name=vt.name)


def use_verification_token(db: DbSession, identifier: str, token: str) -> Optional[ConsumedToken]:
    """
    Consume a token: delete it and return the deleted row in one statement.

    Returns ``None`` when nothing matched (never issued, already used, or
    issued for another identifier). An expired token is still consumed and
    returned; the caller checks ``is_expired`` before trusting it.
    """
    row = db.execute(
        delete(VerificationToken)
        .where(VerificationToken.identifier == normalize_email(identifier), VerificationToken.token == token)
        .returning(
            VerificationToken.identifier,
            VerificationToken.token,
            VerificationToken.expires,
            VerificationToken.name,
        )
    ).first()
    if row is None:
        return None
    return ConsumedToken(identifier=row.identifier, token=row.token, expires=row.expires, name=row.name)


def delete_expired_verification_tokens(db: DbSession) -> int:
    result = db.execute(
        delete(VerificationToken)
        .where(VerificationToken.expires < now_utc())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def sweep(db: DbSession) -> Dict[str, int]:
    """Explicit expiry sweep for both sessions and verification tokens."""
    swept = {
        "sessions": delete_expired_sessions(db),
        "verification_tokens": delete_expired_verification_tokens(db),
    }
    if any(swept.values()):
        logger.info("Swept expired rows: %s", swept)
    return swept
