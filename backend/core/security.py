"""
Password hashing, access tokens and password-reset tokens.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Tuple

import jwt
from werkzeug.security import generate_password_hash, check_password_hash

from core.config import (
    JWT_SECRET,
    JWT_ALGORITHM,
    JWT_EXPIRES_IN_DAYS,
    PASSWORD_HASH_METHOD,
    RESET_TOKEN_TTL_MINUTES,
)
from core.errors import UnauthorizedError


def hash_password(password: str) -> str:
    """One-way hash with a fixed cost; the raw password is not recoverable."""
    return generate_password_hash(password, method=PASSWORD_HASH_METHOD)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(user_id: str, email: str, role: str) -> str:
    """Sign a bearer token carrying the user's id, email and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRES_IN_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry; raises UnauthorizedError on any failure."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired. Please log in again.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token. Please log in again.")

    if not payload.get("id"):
        raise UnauthorizedError("Invalid token")
    return payload


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def generate_reset_token() -> Tuple[str, str, datetime]:
    """
    Create a password reset token.

    Returns (raw_token, token_hash, expires_at). Only the hash and the
    expiry are stored; the raw token goes back to the requester.
    """
    raw_token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=RESET_TOKEN_TTL_MINUTES)
    return raw_token, hash_reset_token(raw_token), expires_at
