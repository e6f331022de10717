class BreakTrackerError(Exception):
    """Base class for domain errors surfaced to API callers as a structured failure."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConflictError(BreakTrackerError):
    """The agent already has an ongoing break."""

    status_code = 409
    kind = "conflict"


class NotFoundError(BreakTrackerError):
    status_code = 404
    kind = "not_found"


class ValidationError(BreakTrackerError):
    """Unknown or unusable agent / break type reference."""

    status_code = 422
    kind = "validation"


class PermissionDeniedError(BreakTrackerError):
    status_code = 403
    kind = "forbidden"
