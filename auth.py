"""
Password hashing, JWT sessions and the FastAPI dependencies that resolve the
current user.
"""
import os
import hmac
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Request

from database import to_object_id
from errors import AuthenticationFailed, ConfigurationError, PermissionDenied

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
PBKDF2_ROUNDS = 200_000


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ROUNDS)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored or "$" not in stored:
        return False
    salt_hex, digest_hex = stored.split("$", 1)
    candidate = hash_password(password, bytes.fromhex(salt_hex)).split("$", 1)[1]
    return hmac.compare_digest(candidate, digest_hex)


def _secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ConfigurationError("JWT secret not configured")
    return secret


def issue_token(user: Dict[str, Any]) -> str:
    days = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
    payload = {
        "user_id": str(user["_id"]),
        "role": user.get("role", "student"),
        "exp": datetime.now(timezone.utc) + timedelta(days=days),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationFailed("Invalid token")


def token_from_request(request: Request) -> Optional[str]:
    """Bearer header first, then the session cookie set by login."""
    parts = request.headers.get("authorization", "").split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return request.cookies.get(TOKEN_COOKIE)


def authenticate(db, request: Request) -> Dict[str, Any]:
    token = token_from_request(request)
    if not token:
        raise AuthenticationFailed("Unauthorized")
    payload = decode_token(token)
    oid = to_object_id(payload.get("user_id"))
    user = db["user"].find_one({"_id": oid}) if oid else None
    if not user:
        raise AuthenticationFailed("Unauthorized")
    return user


def ensure_admin(user: Dict[str, Any]) -> Dict[str, Any]:
    if user.get("role") != "admin":
        logger.warning("Access denied for user %s (%s) to admin endpoint", user.get("email"), user.get("role"))
        raise PermissionDenied("Access denied. Administrator privileges required.")
    return user
