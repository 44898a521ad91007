"""Error handling utilities."""

from typing import Any, Optional


class EstateHubError(Exception):
    """Base exception for EstateHub backend."""
    status_code = 500

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(EstateHubError):
    """Record does not exist."""
    status_code = 404


class AlreadyProcessedError(EstateHubError):
    """Transition attempted on a record that is no longer pending."""
    status_code = 409


AlreadyReviewedError = AlreadyProcessedError


class UnauthorizedError(EstateHubError):
    """Actor lacks the required role or ownership."""
    status_code = 403


class AuthenticationError(UnauthorizedError):
    """Credentials rejected or account not allowed to sign in."""
    status_code = 401


class ValidationFailedError(EstateHubError):
    """Malformed input."""
    status_code = 400

    def __init__(self, message: str = "", details: Optional[list] = None, **context: Any):
        super().__init__(message, **context)
        self.details = details or []


class MissingReasonError(ValidationFailedError):
    """Rejection attempted without a reason."""
    pass


class DuplicateIdentityError(EstateHubError):
    """An identity with this email already exists."""
    status_code = 409


class DependencyUnavailableError(EstateHubError):
    """Store or blob delegate call failed."""
    status_code = 503


class SupabaseError(DependencyUnavailableError):
    """Supabase operation error."""
    pass


class StorageError(DependencyUnavailableError):
    """Blob storage operation error."""
    pass
