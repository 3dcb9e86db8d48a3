"""Error taxonomy shared by the core services, the worker and the HTTP layer."""

from typing import Optional


class FactCheckError(Exception):
    """Base error with a stable code and the HTTP status it maps to."""

    code = "FACTCHECK_ERROR"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FactCheckError):
    """Malformed input: text length, missing fields, unusable payload."""

    code = "VALIDATION_ERROR"
    http_status = 400


class OwnershipViolation(FactCheckError):
    """An id does not belong to the parent it was submitted under."""

    code = "OWNERSHIP_VIOLATION"
    http_status = 403


class NotFound(FactCheckError):
    code = "NOT_FOUND"
    http_status = 404


class Forbidden(FactCheckError):
    code = "FORBIDDEN"
    http_status = 403


class InvalidState(FactCheckError):
    """Operation disallowed by the verification's current status."""

    code = "INVALID_STATE"
    http_status = 409

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class InvalidTransition(FactCheckError):
    """Status change not present in the transition table."""

    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, current: Optional[str], target: str):
        super().__init__(f"invalid transition: {current} -> {target}")
        self.current = current
        self.target = target


class OrchestrationError(FactCheckError):
    """Failure while driving an external job. Always audited before raising."""

    code = "ORCHESTRATION_ERROR"
    http_status = 502

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.cause = message


class TransientError(OrchestrationError):
    """Submission retries exhausted."""

    code = "TRANSIENT"


class JobFailed(OrchestrationError):
    """The external system reported the job as failed."""

    code = "JOB_FAILED"


class PollingTimeout(OrchestrationError):
    """No terminal job status observed within the poll budget."""

    code = "POLLING_TIMEOUT"
    http_status = 504


class EmptyResult(OrchestrationError):
    """Job completed without a usable payload."""

    code = "EMPTY_RESULT"


class PollingCancelled(FactCheckError):
    """Polling abandoned by the caller. Leaves the verification untouched."""

    code = "POLLING_CANCELLED"
    http_status = 503
