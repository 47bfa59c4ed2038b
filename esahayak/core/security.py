from datetime import datetime, timezone
import secrets
from uuid import uuid4

# dev and production cookie names; both are accepted on read
SESSION_COOKIE_NAMES = ("session-token", "__Secure-session-token")

def ensure_aware(dt: datetime | None) -> datetime | None:
    """Return a timezone-aware UTC datetime. If naive, assume UTC."""
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def random_token(n_bytes: int = 32) -> str:
    return secrets.token_hex(n_bytes)

def new_session_token() -> str:
    return str(uuid4())

def token_preview(token: str | None) -> str:
    if not token:
        return "none"
    return token[:8] + "..."

def normalize_email(email: str) -> str:
    return email.strip().lower()
