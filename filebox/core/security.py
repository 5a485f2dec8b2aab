from datetime import datetime, timedelta
from typing import Optional
import hashlib
import re
import secrets
import uuid

import bcrypt
import jwt
from email_validator import EmailNotValidError, validate_email as check_email

from filebox.core.config import settings
from filebox.utils.exceptions import ValidationError

PASSWORD_POLICY_MESSAGE = "Password must be at least 8 characters and contain both letters and digits"


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def validate_password_policy(password: str) -> None:
    """Raise ValidationError unless the password has 8+ chars, a letter and a digit"""
    if (
        len(password) < 8
        or not re.search(r"[A-Za-z]", password)
        or not re.search(r"[0-9]", password)
    ):
        raise ValidationError(PASSWORD_POLICY_MESSAGE)
    # bcrypt only looks at the first 72 bytes
    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password must be at most 72 bytes long")


def validate_email(email: str) -> None:
    """Apply the same address rules as the request schemas, without DNS lookups"""
    try:
        check_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}")


def create_access_token(user_id: uuid.UUID, jti: str, issued_at: datetime, expires_at: datetime) -> str:
    """Create a signed access token bound to one session"""
    payload = {
        "sub": str(user_id),
        "jti": jti,
        "type": "access",
        "iat": _epoch(issued_at),
        "exp": _epoch(expires_at),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, verify_exp: bool = True) -> Optional[dict]:
    """Decode and verify a token, returning None when it is invalid"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": verify_exp, "require": ["sub", "jti", "exp"]},
        )
    except jwt.PyJWTError:
        return None


def create_refresh_token() -> str:
    """Opaque refresh token; only its hash is stored"""
    return secrets.token_urlsafe(48)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_token_id() -> str:
    return uuid.uuid4().hex


def access_token_expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)


def refresh_token_expiry(now: datetime) -> datetime:
    return now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)


def _epoch(value: datetime) -> int:
    # Columns hold naive UTC, so compute the epoch without local-time conversion
    return int((value - datetime(1970, 1, 1)).total_seconds())
