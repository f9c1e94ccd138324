from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from typing import Any

from .errors import ValidationError

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
FULL_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9 ]*$")


class Validator:
    """
    Collects field errors for one request payload.

    Only the first error recorded for a key is kept, so checks can be chained
    from the most to the least specific without overwriting each other.
    """

    def __init__(self):
        self.errors: dict[str, str] = {}

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def required(self, data: Any, key: str, message: str | None = None) -> None:
        if data is None or not str(data).strip():
            self.add_error(key, message or f"{key} is required")

    def is_length(self, data: str | None, key: str, min_length: int, max_length: int, message: str | None = None) -> None:
        size = len(str(data).strip()) if data is not None else 0
        if size < min_length or size > max_length:
            self.add_error(key, message or f"{key} must be between {min_length} and {max_length} characters")

    def is_email(self, email: str | None, key: str, message: str = "invalid email address") -> None:
        if not EMAIL_RE.match(email or ""):
            self.add_error(key, message)

    def is_int(self, value: Any, key: str, message: str | None = None) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError):
            self.add_error(key, message or f"invalid {key}!")
            return None

    def is_date(self, value: Any, key: str, fmt: str = "%Y-%m-%d", message: str | None = None) -> str | None:
        try:
            return datetime.strptime(str(value or ""), fmt).strftime(fmt)
        except ValueError:
            self.add_error(key, message or f"invalid {key}!")
            return None

    def is_valid_password(self, password: str | None, key: str, min_length: int = 8) -> None:
        password = password or ""
        if len(password) < min_length:
            self.add_error(key, f"Password must have at least {min_length} characters")
        if not any(ch.isupper() for ch in password):
            self.add_error(key, "Password must have at least one uppercase letter")
        if not any(ch.islower() for ch in password):
            self.add_error(key, "Password must have at least one lowercase letter")
        if not any(ch.isdigit() for ch in password):
            self.add_error(key, "Password must have at least one number")
        if not any(unicodedata.category(ch)[0] in ("P", "S") for ch in password):
            self.add_error(key, "Password must have at least one special character")
        if any(ch.isspace() for ch in password):
            self.add_error(key, "Password cannot contain whitespace or tab characters")

    def is_valid_full_name(self, full_name: str | None, key: str) -> None:
        if not FULL_NAME_RE.match(full_name or ""):
            self.add_error(
                key,
                "Invalid full name. Please enter a valid full name that contains only letters, numbers, and spaces.",
            )

    def valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)
