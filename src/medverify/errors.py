from __future__ import annotations

from typing import Any, Optional

from fastapi import status


class MedVerifyError(Exception):
    """Base class for domain errors raised by services and repositories.

    Each subclass carries the HTTP status it maps to so the exception handlers
    in ``main`` can render a consistent JSON error body.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ConfigurationError(MedVerifyError):
    """Missing or malformed configuration (credentials, database URL)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(MedVerifyError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(MedVerifyError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(MedVerifyError):
    status_code = status.HTTP_404_NOT_FOUND


class StateConflictError(MedVerifyError):
    """A write was rejected because the stored state moved on."""

    status_code = status.HTTP_409_CONFLICT


class CollaboratorError(MedVerifyError):
    """An external collaborator (LLM, messaging channel) failed.

    Normally recovered where it is raised; the status code only applies if
    one escapes to a handler.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        collaborator: str,
        code: Optional[str] = None,
        detail: Optional[Any] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.collaborator = collaborator
        self.code = code
