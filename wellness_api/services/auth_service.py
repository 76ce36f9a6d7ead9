"""
Password reset.

The raw token only ever travels in the email; the database keeps its sha256
digest and an expiry. A token works once.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from wellness_api.config import RESET_TOKEN_BYTES, RESET_TOKEN_EXPIRE_MINUTES
from wellness_api.database.models import User
from wellness_api.database.store import save
from wellness_api.errors import NotFoundError, UpstreamFailure
from wellness_api.integrations.credentials import hash_password

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Password Reset Token"


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def reset_message(reset_url: str) -> str:
    return (
        "You are receiving this email because you (or someone else) has requested "
        f"the reset of a password. Please make a PUT request to:\n\n{reset_url}"
    )


def forgot_password(db: Session, email: str, notifier, reset_url_base: str) -> None:
    """
    Email a reset link to ``email``.

    An unknown address returns exactly like a known one, so callers cannot
    probe which emails have accounts.
    """
    user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return

    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    user.reset_password_token = hash_reset_token(raw_token)
    user.reset_password_expire = datetime.now() + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)
    save(db, user)

    reset_url = f"{reset_url_base.rstrip('/')}/{raw_token}"
    try:
        notifier.send(user.email, RESET_SUBJECT, reset_message(reset_url))
    except UpstreamFailure:
        user.reset_password_token = None
        user.reset_password_expire = None
        save(db, user)
        logger.warning("Reset email for user %s failed, token cleared", user.id)
        raise

    logger.info("Password reset token issued for user %s", user.id)


def reset_password(db: Session, raw_token: str, new_password: str) -> User:
    user = (
        db.query(User)
        .filter(
            User.reset_password_token == hash_reset_token(raw_token or ""),
            User.reset_password_expire > datetime.now(),
        )
        .first()
    )
    if user is None:
        raise NotFoundError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_expire = None
    save(db, user)
    logger.info("Password reset for user %s", user.id)
    return user
