from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import sqlite3
import time
import uuid
from typing import Dict, Optional

from fastapi import Depends, Request

from config import DEFAULT_TOKEN_MINUTES, load_config, set_auth_secret_key
from db.database import get_db
from utils.errors import AuthenticationError, ConflictError
from utils.timestamps import to_iso, utc_now

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session"
PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 200_000


def _get_auth_config() -> dict:
    config = load_config()
    return config.get("auth", {})


def get_secret_key() -> str:
    """Return the token signing key, generating and persisting one if unset."""
    secret_key = _get_auth_config().get("secret_key")
    if secret_key:
        return secret_key
    secret_key = secrets.token_urlsafe(32)
    set_auth_secret_key(secret_key)
    logger.info("Generated a new token signing key")
    return secret_key


def get_token_minutes() -> int:
    minutes = _get_auth_config().get("token_minutes", DEFAULT_TOKEN_MINUTES)
    try:
        return int(minutes)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_MINUTES


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    )
    digest = base64.urlsafe_b64encode(dk).decode("utf-8")
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt}${digest}"


def verify_password(password: str, stored_hash: str) -> bool:
    if not stored_hash:
        return False
    try:
        algo, iterations_str, salt, digest = stored_hash.split("$", 3)
    except ValueError:
        return False
    if algo != PASSWORD_HASH_ALGO:
        return False
    try:
        iterations = int(iterations_str)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    )
    computed = base64.urlsafe_b64encode(dk).decode("utf-8")
    return hmac.compare_digest(computed, digest)


def _sign(payload: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_token(user_id: str, duration_minutes: int, secret_key: str) -> tuple[str, int]:
    """Return (token, expires_at_epoch) for user_id."""
    expires_at = int(time.time()) + int(duration_minutes) * 60
    payload = f"{user_id}:{expires_at}"
    return f"{payload}:{_sign(payload, secret_key)}", expires_at


def verify_session_token(token: Optional[str], secret_key: Optional[str]) -> Optional[str]:
    """Return the user id carried by a valid, unexpired token, else None."""
    if not token or not secret_key:
        return None
    try:
        user_id, expires_str, signature = token.rsplit(":", 2)
    except ValueError:
        return None
    expected = _sign(f"{user_id}:{expires_str}", secret_key)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        return None
    try:
        expires_at = int(expires_str)
    except ValueError:
        return None
    if expires_at < int(time.time()):
        return None
    return user_id


def get_user(conn: sqlite3.Connection, user_id: str) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT id, email, username, created_at, COALESCE(updated_at, created_at) AS updated_at
        FROM users WHERE id = ?
        """,
        (user_id,),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def create_user(conn: sqlite3.Connection, email: str, password: str) -> Dict:
    user = {"id": str(uuid.uuid4()), "email": email, "created_at": to_iso(utc_now())}
    cursor = conn.cursor()
    try:
        cursor.execute(
            "INSERT INTO users (id, email, password_hash, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (user["id"], email, hash_password(password), user["created_at"], user["created_at"]),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("User with this email already exists")
    return user


def authenticate_user(conn: sqlite3.Connection, email: str, password: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute("SELECT id, email, password_hash, created_at FROM users WHERE email = ?", (email,))
    row = cursor.fetchone()
    if not row or not verify_password(password, row["password_hash"]):
        logger.warning("Failed login for %s", email)
        raise AuthenticationError("Invalid email or password")
    return {"id": row["id"], "email": row["email"], "created_at": row["created_at"]}


def update_username(conn: sqlite3.Connection, user_id: str, username: str) -> Dict:
    """Set the user's display name; names are unique ignoring case."""
    try:
        conn.execute(
            "UPDATE users SET username = ?, updated_at = ? WHERE id = ?",
            (username, to_iso(utc_now()), user_id),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("Username already taken")
    return get_user(conn, user_id)


def token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def require_user(request: Request, conn=Depends(get_db)) -> Dict:
    """FastAPI dependency returning the authenticated user row."""
    user_id = verify_session_token(token_from_request(request), get_secret_key())
    user = get_user(conn, user_id) if user_id else None
    if not user:
        raise AuthenticationError("Authentication required")
    return user
