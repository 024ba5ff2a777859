"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    category = "internal_error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    category = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    category = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    category = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    category = "bad_request"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    category = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    category = "validation_error"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidRelationshipException(BadRequestException):
    """Two referenced entities are not related the way the request assumes."""

    category = "invalid_relationship"

    def __init__(self, message: str = "Doctor does not belong to the specified clinic"):
        """Initialize with 400 status code."""
        super().__init__(message)


class InvalidTransitionException(BadRequestException):
    """Requested appointment status change is not allowed from the current status."""

    category = "invalid_transition"

    def __init__(self, source: str, target: str, message: str | None = None):
        """Initialize with the source and requested target status."""
        self.source = source
        self.target = target
        super().__init__(message or f"Cannot change appointment status from {source} to {target}")


class SlotUnavailableException(ConflictException):
    """Requested time overlaps an existing booking."""

    category = "slot_unavailable"

    def __init__(self, message: str = "The selected time slot is not available"):
        """Initialize with 409 status code."""
        super().__init__(message)


class ConcurrencyConflictException(ConflictException):
    """A concurrent booking won the race for the same time range."""

    category = "concurrency_conflict"

    def __init__(
        self,
        message: str = "The time slot was booked concurrently by another request, please retry",
    ):
        """Initialize with 409 status code."""
        super().__init__(message)
