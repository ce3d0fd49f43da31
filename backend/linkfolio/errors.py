"""Typed exceptions raised by the service layer and mapped to HTTP responses."""


class ServiceError(Exception):
    """Base class for expected, client-facing failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Client error: malformed input (bad URL, bad dates, bad lengths)."""

    status_code = 400


class InvalidAliasError(ValidationError):
    """Custom short id does not match the allowed pattern."""


class BadDestinationError(ValidationError):
    """Stored destination is not an http/https URL."""


class AuthenticationError(ServiceError):
    """Missing, invalid or expired session, or wrong credentials."""

    status_code = 401


class PermissionDeniedError(ServiceError):
    """Authenticated, but not allowed (role, inactive account)."""

    status_code = 403


class NotFoundError(ServiceError):
    """Record is absent or belongs to someone else."""

    status_code = 404


class ConflictError(ServiceError):
    """Duplicate value or an operation not allowed in the current state."""

    status_code = 409


class AliasTakenError(ConflictError):
    """Short id already in use (case-insensitive, across all links)."""


class NameConflictError(ConflictError):
    """Active folder with the same name already exists for the owner."""


class GoneError(ServiceError):
    """Link exists but was deactivated or has expired."""

    status_code = 410


class AllocationExhaustedError(ServiceError):
    """Random short id draw hit its retry cap."""

    status_code = 503
