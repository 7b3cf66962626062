"""Error taxonomy for the movie list API.

Every error is an ``HTTPException`` so FastAPI short-circuits the request the
usual way, but the body is rendered by the application's exception handler instead of the
default ``{"detail": ...}`` shape. Each error carries two kinds of context:

* ``details`` / ``extra``: safe to show to the caller (field values, user id).
* ``internal``: driver messages, error codes and stack traces. Always logged,
  only included in the response body when ``EXPOSE_ERROR_DETAILS`` is on.
"""

import traceback
from typing import Any

from fastapi import HTTPException


class ApiError(HTTPException):
    status_code = 500
    message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: Any = None,
        extra: dict | None = None,
        internal: dict | None = None,
    ):
        self.message = message or self.message
        self.details = details
        self.extra = extra or {}
        self.internal = internal or {}
        super().__init__(status_code=type(self).status_code, detail=self.message)

    def to_body(self, expose_internal: bool = False) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        if expose_internal:
            for key, value in self.internal.items():
                if value is not None:
                    body[key] = value
        return body


class Unauthorized(ApiError):
    status_code = 401
    message = "Unauthorized"


class InvalidUser(ApiError):
    status_code = 401
    message = "Invalid user ID"


class MissingFields(ApiError):
    status_code = 400
    message = "Missing required fields"


class InvalidCategory(ApiError):
    status_code = 400
    message = "Invalid category"


class UserNotFound(ApiError):
    status_code = 404
    message = "User not found"


class FetchError(ApiError):
    message = "Failed to fetch movies"


class UpdateFailed(ApiError):
    message = "Failed to update movie"


class CreateFailed(ApiError):
    message = "Failed to create movie"


class InternalError(ApiError):
    message = "Internal server error"


def describe_exception(exc: BaseException) -> dict:
    """Diagnostic payload for a caught exception: message, driver code and stack."""
    orig = getattr(exc, "orig", None)
    code = None
    if orig is not None:
        code = (
            getattr(orig, "sqlstate", None)
            or getattr(orig, "pgcode", None)
            or getattr(orig, "sqlite_errorname", None)
        )
    return {
        "details": str(exc),
        "code": code,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }
