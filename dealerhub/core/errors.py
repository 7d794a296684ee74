from __future__ import annotations

from typing import Any


class HubError(Exception):
    """
    Base for caller-visible failures.

    Every subclass carries a stable machine-readable `kind`, the HTTP status the
    API layer renders it with, a human message and optional field-level details.
    """

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class UnauthorizedError(HubError):
    kind = "unauthorized"
    status_code = 401


class ForbiddenError(HubError):
    kind = "forbidden"
    status_code = 403


class ValidationError(HubError):
    kind = "validation_error"
    status_code = 422


class NotFoundError(HubError):
    kind = "not_found"
    status_code = 404


class ConflictError(HubError):
    # Caller should re-fetch and retry; never retried internally.
    kind = "conflict"
    status_code = 409


class InvalidStateError(HubError):
    kind = "invalid_state"
    status_code = 409


class UpstreamError(HubError):
    kind = "upstream_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        details: list[dict[str, Any]] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message, details=details)
        self.retryable = retryable
