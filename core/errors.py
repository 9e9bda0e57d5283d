"""
core/errors.py -- Typed application errors.

Services raise these; they never build HTTP responses themselves. The single
exception handler in api/main.py turns any AppError into the standard error
envelope using status_code, code, and message.

is_operational separates expected failures (bad credentials, missing record)
from programming errors. Only operational errors have their message shown to
the client; anything else is rendered as a generic 500.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str | None = None, *, is_operational: bool = True) -> None:
        self.message = message or HTTPStatus(self.status_code).phrase
        self.is_operational = is_operational
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class BadRequest(AppError):
    status_code = HTTPStatus.BAD_REQUEST
    code = "bad_request"


class Unauthorized(AppError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"


class Forbidden(AppError):
    status_code = HTTPStatus.FORBIDDEN
    code = "forbidden"


class NotFound(AppError):
    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"
