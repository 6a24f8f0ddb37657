"""
Admin authentication: PBKDF2 password hashes and signed session tokens.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from storefront.db import AdminUserRecord, DbClient
from storefront.errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
SESSION_SALT = "admin-session-v1"


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _pbkdf2(password: str, salt: str, iterations: int) -> str:
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return _b64(digest)


def hash_password(password: str, iterations: int = HASH_ITERATIONS) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hash>``."""
    salt = _b64(secrets.token_bytes(16))
    return f"{HASH_ALGORITHM}${iterations}${salt}${_pbkdf2(password, salt, iterations)}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, rounds), expected)


def _serializer(secret: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret, salt=SESSION_SALT)


def create_session_token(secret: str, user: AdminUserRecord) -> str:
    return _serializer(secret).dumps({"uid": user.id, "email": user.email})


def read_session_token(secret: str, token: str, max_age: int) -> Optional[dict]:
    """Decode a session token; ``None`` when it is tampered with or expired."""
    try:
        payload = _serializer(secret).loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Admin session expired")
        return None
    except BadSignature:
        logger.warning("Rejected admin session with a bad signature")
        return None
    if not isinstance(payload, dict) or "email" not in payload:
        return None
    return payload


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def authenticate(db: DbClient, email: str, password: str) -> AdminUserRecord:
    email = normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = db.get_admin_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed sign-in for %s", email)
        raise AuthenticationError("Invalid email or password")
    return user


def user_for_session(
    db: DbClient, secret: str, token: Optional[str], max_age: int
) -> AdminUserRecord:
    if not token:
        raise AuthenticationError("Not authenticated")
    payload = read_session_token(secret, token, max_age)
    if payload is None:
        raise AuthenticationError("Session is invalid or expired")
    user = db.get_admin_user_by_email(payload["email"])
    if not user or user.id != payload.get("uid"):
        raise AuthenticationError("Unknown user")
    return user


def create_admin_user(db: DbClient, email: str, password: str) -> AdminUserRecord:
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if len(password or "") < 8:
        raise ValidationError("Password must be at least 8 characters")
    if db.get_admin_user_by_email(email):
        raise ValidationError("An admin with that email already exists")
    return db.create_admin_user(email=email, password_hash=hash_password(password))
