"""canvas_cli.errors

Closed set of failures the Canvas client can report. Errors are built once,
at the HTTP boundary, and carried to the caller unchanged.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import requests

__all__ = [
    "ErrorKind",
    "CanvasError",
    "Unauthorized",
    "NotFound",
    "RateLimited",
    "RemoteError",
    "TransportError",
    "CredentialDecodeError",
    "error_from_response",
    "error_from_exception",
]


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    REMOTE = "remote"
    TRANSPORT = "transport"
    CREDENTIAL_DECODE = "credential_decode"


class CanvasError(Exception):
    """Base class for every error raised by the Canvas client."""

    kind: ErrorKind = ErrorKind.REMOTE
    default_message = "Canvas request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message or self.default_message
        self.status = status
        self.cause = cause
        super().__init__(self.message)

    def with_context(self, prefix: str) -> "CanvasError":
        """Return an error of the same kind with *prefix* and the HTTP status in its message."""
        message = f"{prefix}: {self.message}"
        if self.status is not None:
            message += f" (HTTP {self.status})"
        return type(self)(message, status=self.status, cause=self.cause)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class Unauthorized(CanvasError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Invalid API token or unauthorized access"


class NotFound(CanvasError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class RateLimited(CanvasError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Rate limit exceeded. Please try again later"


class RemoteError(CanvasError):
    kind = ErrorKind.REMOTE


class TransportError(CanvasError):
    kind = ErrorKind.TRANSPORT
    default_message = "Could not reach Canvas"


class CredentialDecodeError(CanvasError):
    kind = ErrorKind.CREDENTIAL_DECODE
    default_message = "Stored credential could not be decoded"


_BY_STATUS = {
    401: Unauthorized,
    404: NotFound,
    429: RateLimited,
}


def _service_message(response: requests.Response) -> Optional[str]:
    """Pull the human-readable message out of a Canvas error body, if any."""
    try:
        body: Any = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    if body.get("message"):
        return str(body["message"])
    errors = body.get("errors")
    if isinstance(errors, list):
        msgs = [e.get("message") for e in errors if isinstance(e, dict) and e.get("message")]
        if msgs:
            return "; ".join(msgs)
    if isinstance(errors, dict) and errors:
        # e.g. {"errors": {"title": [{"message": "..."}]}}
        return "; ".join(f"{k}: {v}" for k, v in errors.items())
    return None


def error_from_response(response: requests.Response) -> CanvasError:
    """Map a failed HTTP response onto the error taxonomy."""
    status = response.status_code
    cls = _BY_STATUS.get(status)
    if cls is not None:
        return cls(status=status)
    message = _service_message(response) or response.reason or f"HTTP {status}"
    return RemoteError(message, status=status)


def error_from_exception(exc: requests.RequestException) -> CanvasError:
    """Map a requests exception onto the taxonomy; no response means a transport failure."""
    response = getattr(exc, "response", None)
    if response is not None:
        return error_from_response(response)
    return TransportError(str(exc) or TransportError.default_message, cause=exc)
