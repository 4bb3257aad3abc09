from __future__ import annotations


class ApplyDayError(Exception):
    """Base class for failures surfaced by the records service and the controllers."""

    code = "error"

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkFailure(ApplyDayError):
    code = "network_failure"


class NotFound(ApplyDayError):
    code = "not_found"


class ValidationFailure(ApplyDayError):
    code = "validation_failure"


class InvalidResponse(ApplyDayError):
    code = "invalid_response"


class ConcurrentMutationRejected(ApplyDayError):
    code = "concurrent_mutation_rejected"
