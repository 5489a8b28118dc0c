"""
Workforce Plan State Machine

This module is the SINGLE SOURCE OF TRUTH for all workforce plan status
transitions. All status changes must go through this module.
"""

from typing import List, Dict
from datetime import datetime, timezone
import logging

from app.core.exceptions import InvalidTransitionError


logger = logging.getLogger(__name__)


# =============================================================================
# STATUS DEFINITIONS (Single Source of Truth)
# =============================================================================

class PlanStatus:
    """Workforce plan status constants - use these instead of strings."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    LOCKED = "LOCKED"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.DRAFT, cls.SUBMITTED, cls.APPROVED, cls.REJECTED, cls.LOCKED]


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
PLAN_TRANSITIONS: Dict[str, List[str]] = {
    PlanStatus.DRAFT: [
        PlanStatus.SUBMITTED,       # Submit for approval
    ],
    PlanStatus.SUBMITTED: [
        PlanStatus.APPROVED,        # Final approval
        PlanStatus.REJECTED,        # Rejected by an approver
        PlanStatus.DRAFT,           # Sent back for revision
    ],
    PlanStatus.APPROVED: [
        PlanStatus.LOCKED,          # Freeze plan of record
    ],
    PlanStatus.REJECTED: [
        PlanStatus.DRAFT,           # Reopen for editing
    ],
    PlanStatus.LOCKED: [],          # Terminal state - no transitions
}

# Human-readable action names for each transition
TRANSITION_ACTIONS: Dict[tuple, str] = {
    (PlanStatus.DRAFT, PlanStatus.SUBMITTED): "Submit for Approval",
    (PlanStatus.SUBMITTED, PlanStatus.APPROVED): "Approve",
    (PlanStatus.SUBMITTED, PlanStatus.REJECTED): "Reject",
    (PlanStatus.SUBMITTED, PlanStatus.DRAFT): "Request Revision",
    (PlanStatus.APPROVED, PlanStatus.LOCKED): "Lock",
    (PlanStatus.REJECTED, PlanStatus.DRAFT): "Reopen",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in PLAN_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return list(PLAN_TRANSITIONS.get(current_status, []))


def get_transition_action(current_status: str, new_status: str) -> str:
    """Get human-readable action name for a transition."""
    return TRANSITION_ACTIONS.get((current_status, new_status), f"{current_status} -> {new_status}")


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Validate a status transition. Raises InvalidTransitionError if invalid.

    A self-transition is not in the table and is rejected like any other
    unlisted pair.
    """
    if not can_transition(current_status, new_status):
        raise InvalidTransitionError(
            current_status,
            new_status,
            allowed=get_allowed_transitions(current_status),
        )


# =============================================================================
# STATUS CHECK HELPERS (for common operations)
# =============================================================================

def can_submit(status: str) -> bool:
    """Can this plan be submitted for approval? REJECTED plans reopen first."""
    return status in (PlanStatus.DRAFT, PlanStatus.REJECTED)


def can_decide(status: str) -> bool:
    """Can an approver approve, reject or send back this plan?"""
    return status == PlanStatus.SUBMITTED


def can_edit(status: str) -> bool:
    """Can scenarios, entries and exits of this plan be modified?"""
    return status not in (PlanStatus.APPROVED, PlanStatus.LOCKED)


def can_delete(status: str) -> bool:
    """Can this plan be deleted?"""
    return status == PlanStatus.DRAFT


def is_terminal(status: str) -> bool:
    """Is this a terminal (final) state?"""
    return not PLAN_TRANSITIONS.get(status)


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_plan(plan, new_status: str, user_id=None) -> None:
    """
    Transition a workforce plan to a new status.

    This function:
    1. Validates the transition is allowed
    2. Updates the status
    3. Sets audit fields based on the transition

    Raises:
        InvalidTransitionError: If transition is not allowed
    """
    current_status = plan.status

    validate_transition(current_status, new_status)

    plan.status = new_status

    if new_status == PlanStatus.SUBMITTED:
        plan.submitted_at = datetime.now(timezone.utc)
        plan.submitted_by_id = user_id

    logger.info(
        f"Workforce plan {plan.id}: {get_transition_action(current_status, new_status)} "
        f"({current_status} -> {new_status}) by {user_id}"
    )
