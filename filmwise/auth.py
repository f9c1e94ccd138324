from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from .db import execute, query_one
from .errors import AuthError, InputError, PermissionDenied, ValidationError
from .validator import Validator

logger = logging.getLogger(__name__)

ISSUER = "filmwise"
AUDIENCE = "filmwise"
ALGORITHM = "HS256"


def issue_token(user: dict) -> dict:
    """Sign a token for `user` (id, name, user_type)."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=current_app.config.get("JWT_TTL_HOURS", 24))
    claims = {
        "sub": str(user["id"]),
        "name": user["name"],
        "user_type": user["user_type"],
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "nbf": now,
        "exp": expires,
    }
    token = jwt.encode(claims, current_app.config["JWT_SECRET"], algorithm=ALGORITHM)
    return {"token": token, "expiry": expires.isoformat()}


def verify_token(token: str) -> dict:
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("token has expired")
    except jwt.InvalidTokenError:
        raise AuthError("invalid token")

    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthError("invalid token")
    if claims.get("user_type") not in ("user", "admin"):
        raise AuthError("invalid user type")
    return {"id": user_id, "name": claims.get("name", ""), "user_type": claims["user_type"]}


def parse_header_token() -> dict:
    """Verify the `Authorization: Bearer <token>` header of the current request."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise AuthError("no auth header")
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise AuthError("invalid auth header")
    return verify_token(parts[1])


def viewer_id() -> int | None:
    """User id of an authenticated request, or None for anonymous viewers."""
    if not request.headers.get("Authorization"):
        return None
    try:
        return parse_header_token()["id"]
    except AuthError:
        return None


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.user = parse_header_token()
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = parse_header_token()
        if user["user_type"] != "admin":
            raise PermissionDenied()
        g.user = user
        return fn(*args, **kwargs)

    return wrapper


def authenticate(email: str, password: str) -> dict:
    if not email or not password:
        raise InputError("Missing email or password")
    row = query_one(
        "SELECT id, name, email, password, user_type FROM users WHERE lower(email) = lower(?) LIMIT 1",
        (email,),
    )
    if not row or not check_password_hash(row["password"], password):
        raise InputError("invalid email or password")
    return {"id": row["id"], "name": row["name"], "email": row["email"], "user_type": row["user_type"]}


def register_user(full_name: str | None, email: str | None, password: str | None) -> int:
    v = Validator()
    v.is_email(email, "email", "invalid email address")
    if email and query_one("SELECT 1 FROM users WHERE lower(email) = lower(?) LIMIT 1", (email,)):
        v.add_error("email", "email is already exist")
    v.is_valid_password(password, "password")
    v.required(full_name, "full_name", "Full Name is required")
    v.is_length(full_name, "full_name", 5, 55)
    v.is_valid_full_name(full_name, "full_name")
    v.raise_if_invalid()

    try:
        cur = execute(
            "INSERT INTO users (name, email, password, user_type) VALUES (?, ?, ?, 'user')",
            (full_name.strip(), email.strip(), generate_password_hash(password)),
        )
    except sqlite3.IntegrityError:
        raise ValidationError({"email": "email is already exist"})
    logger.info("user %s signed up", cur.lastrowid)
    return int(cur.lastrowid)
