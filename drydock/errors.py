"""Drydock error types.

Every error carries a stable machine-readable ``code`` and the HTTP status
the API layer renders it with.
"""

from __future__ import annotations

from typing import Any


class DrydockError(Exception):
    """Base error for drydock."""

    code: str = "internal_error"
    message: str = "Internal server error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        """Render as the JSON error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(DrydockError):
    code = "validation_error"
    message = "Invalid request"
    status_code = 400


class UnauthorizedError(DrydockError):
    code = "unauthorized"
    message = "Unauthorized"
    status_code = 401


class ForbiddenError(DrydockError):
    code = "forbidden"
    message = "Forbidden"
    status_code = 403


class NotFoundError(DrydockError):
    code = "not_found"
    message = "Resource not found"
    status_code = 404


class PoolExhaustedError(NotFoundError):
    """No AVAILABLE pool server could be claimed."""

    code = "pool_exhausted"
    message = "No pool server available"
    status_code = 404


class InvalidTransitionError(DrydockError):
    """A stage change outside the lifecycle DAG was requested."""

    code = "invalid_transition"
    message = "Invalid pool server stage transition"
    status_code = 409


class AssignmentConflictError(DrydockError):
    """The request id already holds a different server."""

    code = "assignment_conflict"
    message = "Request already holds a pool server"
    status_code = 409


class ProviderError(DrydockError):
    """Cloud provider call failed."""

    code = "provider_error"
    message = "Cloud provider request failed"
    status_code = 502


class ProviderTimeoutError(ProviderError):
    code = "provider_timeout"
    message = "Cloud provider request timed out"
    status_code = 504


class ConfigError(DrydockError):
    code = "config_error"
    message = "Invalid configuration"
    status_code = 500
