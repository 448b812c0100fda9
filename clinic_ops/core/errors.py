"""Domain exceptions mapped onto the API error envelope."""

from typing import Any, Optional


class ClinicOpsError(Exception):
    """Base exception for clinic_ops errors."""

    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ValidationFailedError(ClinicOpsError):
    """Request data failed a business validation rule."""

    status_code = 400


class AuthenticationError(ClinicOpsError):
    status_code = 401


class AuthorizationError(ClinicOpsError):
    status_code = 403


class NotFoundError(ClinicOpsError):
    status_code = 404


class ConflictError(ClinicOpsError):
    """Request is valid but conflicts with current state (bookability, slots)."""

    status_code = 409


class UpstreamError(ClinicOpsError):
    """A third-party collaborator (PracticeQ, Resend) failed."""

    status_code = 500
