"""Error taxonomy for the editorial workflow.

Every failure a workflow operation can report is one of these types. The DRF
exception handler in ``core.exceptions`` turns them into the API envelope, so
views never build error responses by hand.
"""

from typing import Any


class WorkflowError(Exception):
    """Base class for typed workflow failures."""

    status_code = 400
    code = "workflow_error"
    default_message = "The operation could not be completed."

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class Unauthenticated(WorkflowError):
    """No actor could be resolved for the call."""

    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication credentials were not provided or are invalid."


class NotFound(WorkflowError):
    """The target resource does not exist."""

    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Forbidden(WorkflowError):
    """The actor's role or ownership does not grant the capability."""

    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action on this resource."


class InvalidTransition(WorkflowError):
    """The action is not legal from the article's current status."""

    status_code = 409
    code = "invalid_transition"
    default_message = "This action is not allowed in the article's current status."


class Conflict(WorkflowError):
    """The article changed between read and write; re-read and retry."""

    status_code = 409
    code = "conflict"
    default_message = "The article was modified concurrently. Reload it and try again."


class ValidationError(WorkflowError):
    """Malformed input, e.g. an empty title or a duplicate slug."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid input."


class AuditWriteFailed(WorkflowError):
    """An audit entry could not be stored.

    Never returned as an API error: the workflow layer reports it as a
    warning next to the otherwise successful result.
    """

    status_code = 500
    code = "audit_write_failed"
    default_message = "The audit entry for this action could not be recorded."


__all__ = [
    "WorkflowError",
    "Unauthenticated",
    "NotFound",
    "Forbidden",
    "InvalidTransition",
    "Conflict",
    "ValidationError",
    "AuditWriteFailed",
]
