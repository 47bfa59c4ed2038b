# esahayak/api/routes/auth_utils.py
from datetime import datetime, timedelta
from typing import Optional, Tuple
from urllib.parse import urlencode

from fastapi import Response
from sqlalchemy.orm import Session

from esahayak.core.config import settings
from esahayak.core.security import SESSION_COOKIE_NAMES, normalize_email, now_utc, random_token
from esahayak.services import auth_adapter
from esahayak.services.mailer import SendResult, send_email

# cookies cleared on logout (current and legacy names)
AUTH_COOKIES = SESSION_COOKIE_NAMES + ("csrf-token", "callback-url", "session")


def safe_callback(url: Optional[str]) -> str:
    """Only same-site relative paths are honoured as post-login destinations."""
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return settings.default_callback_url


def magic_link(token: str, email: str, callback_url: str) -> str:
    query = urlencode({"token": token, "email": email, "callbackUrl": callback_url})
    return f"{settings.app_base_url}/auth/verify-token?{query}"


def issue_magic_link(db: Session, email: str, name: Optional[str],
                     callback_url: Optional[str] = None) -> Tuple[str, datetime, SendResult]:
    """Persist a fresh single-use token and email the sign-in link.

    The send result is returned, never raised: a failed email does not undo the
    token or the account that triggered it.
    """
    email = normalize_email(email)
    raw = random_token(32)
    expires = now_utc() + timedelta(hours=settings.verify_token_exp_hours)
    auth_adapter.create_verification_token(db, email, raw, expires, name=name)

    link = magic_link(raw, email, safe_callback(callback_url))
    display = name or email.split("@")[0].capitalize()
    hours = settings.verify_token_exp_hours
    html = f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Sign in to {settings.app_name}</title>
    <style>
        body {{ font-family: 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; background-color: #f6f8fb; margin: 0; padding: 0; color: #333; }}
        .container {{ max-width: 600px; margin: 40px auto; background-color: #fff; border-radius: 12px; box-shadow: 0 4px 8px rgba(0,0,0,0.05); overflow: hidden; }}
        .header {{ background-color: #1d4ed8; color: #fff; text-align: center; padding: 24px; }}
        .content {{ padding: 28px 32px; line-height: 1.6; }}
        .btn {{ display:inline-block; background:#1d4ed8; color:#ffffff !important; padding:12px 20px; border-radius:8px; text-decoration:none }}
        .footer {{ text-align: center; color: #999; font-size: 12px; padding: 16px 0; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2>{settings.app_name}</h2>
        </div>
        <div class="content">
            <h3>Hello {display},</h3>
            <p>Click the button below to sign in to <strong>{settings.app_name}</strong> and manage your buyer leads.</p>
            <p><a class="btn" href="{link}" style="color:#ffffff !important; text-decoration:none;">Sign in</a></p>
            <p>If the button doesn't work, copy and paste this URL into your browser:<br><a href="{link}">{link}</a></p>
            <p>This link expires in <strong>{hours} hours</strong> and can only be used once. If you didn't request it, ignore this message.</p>
        </div>
        <div class="footer">
            &copy; {now_utc().year} {settings.app_name}
        </div>
    </div>
</body>
</html>
'''
    text = f"Sign in to {settings.app_name}: {link}\nThis link expires in {hours} hours."
    result = send_email(to_email=email, subject=f"Sign in to {settings.app_name}", html=html, text=text)
    return raw, expires, result


def set_session_cookie(response: Response, token: str, expires: datetime) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        expires=expires,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookies(response: Response) -> None:
    for name in AUTH_COOKIES:
        response.delete_cookie(
            name,
            path="/",
            httponly=name != "session",
            secure=settings.is_production,
            samesite="lax",
        )
