"""
Exception types raised by the data layer and mapped to JSON responses by the
app factory. Route functions raise these instead of building error payloads.
"""
from __future__ import annotations


class FilmwiseError(Exception):
    status_code = 400
    message = "bad request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message}


class InputError(FilmwiseError):
    status_code = 400


class ValidationError(FilmwiseError):
    status_code = 400
    message = "invalid input"

    def __init__(self, errors: dict[str, str]):
        super().__init__(next(iter(errors.values()), self.message))
        self.errors = dict(errors)

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message, "errors": self.errors}


class AuthError(FilmwiseError):
    status_code = 401
    message = "authentication required"


class PermissionDenied(FilmwiseError):
    status_code = 403
    message = "unauthorized - user does not have permission"


class NotFoundError(FilmwiseError):
    status_code = 404
    message = "not found"


class ConflictError(FilmwiseError):
    status_code = 409
    message = "already exists"


class StoreError(FilmwiseError):
    """Storage failure. The message stays generic; the cause is only logged."""

    status_code = 500
    message = "internal server error"


class QueryTimeout(StoreError):
    message = "the request took too long to complete"
