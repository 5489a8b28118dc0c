"""
Domain exceptions for the workforce planning workflow.

Services raise these; app.main maps each one to an HTTP status code.
"""
from typing import Dict, Optional


class WorkforcePlanningError(Exception):
    """Base exception for workforce planning errors."""
    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ForbiddenError(WorkforcePlanningError):
    """Authenticated, but not allowed to act on the resource."""
    status_code = 403


class NotFoundError(WorkforcePlanningError):
    """Referenced entity does not exist."""
    status_code = 404


class InvalidStateError(WorkforcePlanningError):
    """Operation precondition failed (wrong status, missing data or comment)."""
    status_code = 400


class InvalidTransitionError(InvalidStateError):
    """Plan status change not present in the transition table."""

    def __init__(self, from_status: str, to_status: str, allowed: Optional[list] = None):
        self.from_status = from_status
        self.to_status = to_status
        allowed = allowed or []
        if allowed:
            message = (
                f"Cannot transition workforce plan from '{from_status}' to '{to_status}'. "
                f"Allowed transitions: {', '.join(allowed)}"
            )
        else:
            message = (
                f"Cannot transition workforce plan from '{from_status}' to '{to_status}'. "
                f"'{from_status}' is a terminal state."
            )
        super().__init__(
            message,
            details={"from_status": from_status, "to_status": to_status, "allowed": allowed},
        )


class UnresolvedApproverError(WorkforcePlanningError):
    """An approval chain level exists but no assignee resolves to a user."""
    status_code = 422


class ConcurrentUpdateError(WorkforcePlanningError):
    """Row was modified by another transaction since it was read."""
    status_code = 409
