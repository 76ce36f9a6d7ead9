# integrations/credentials.py - password hashing and access tokens
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from wellness_api.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET
from wellness_api.errors import AuthenticationError

# ==================== PASSWORDS ====================

def hash_password(password: str) -> str:
    """Hash password before storing"""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash; a malformed hash never matches"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


# ==================== ACCESS TOKENS ====================

def create_access_token(user) -> str:
    """Create JWT access token"""
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "role": user.role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Decode and validate JWT token, returning the user id it was issued for"""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid token payload")
    return user_id
