from types import SimpleNamespace
import uuid

import pytest

from app.core.exceptions import InvalidStateError, InvalidTransitionError
from app.services.workforce_state_machine import (
    PLAN_TRANSITIONS,
    PlanStatus,
    can_decide,
    can_delete,
    can_edit,
    can_submit,
    can_transition,
    get_allowed_transitions,
    is_terminal,
    transition_plan,
    validate_transition,
)


ALLOWED = {
    (PlanStatus.DRAFT, PlanStatus.SUBMITTED),
    (PlanStatus.SUBMITTED, PlanStatus.APPROVED),
    (PlanStatus.SUBMITTED, PlanStatus.REJECTED),
    (PlanStatus.SUBMITTED, PlanStatus.DRAFT),
    (PlanStatus.APPROVED, PlanStatus.LOCKED),
    (PlanStatus.REJECTED, PlanStatus.DRAFT),
}


def _plan(status):
    return SimpleNamespace(id=uuid.uuid4(), status=status, submitted_at=None, submitted_by_id=None)


@pytest.mark.parametrize("current", PlanStatus.all())
@pytest.mark.parametrize("target", PlanStatus.all())
def test_transition_table_is_exactly_the_allowed_set(current, target):
    assert can_transition(current, target) == ((current, target) in ALLOWED)


def test_every_status_has_an_entry():
    assert set(PLAN_TRANSITIONS) == set(PlanStatus.all())


def test_locked_is_the_only_terminal_status():
    assert [s for s in PlanStatus.all() if is_terminal(s)] == [PlanStatus.LOCKED]
    assert get_allowed_transitions(PlanStatus.LOCKED) == []


def test_self_transition_is_rejected():
    with pytest.raises(InvalidTransitionError) as exc_info:
        validate_transition(PlanStatus.DRAFT, PlanStatus.DRAFT)
    assert exc_info.value.details["allowed"] == [PlanStatus.SUBMITTED]


def test_invalid_transition_is_a_bad_request():
    with pytest.raises(InvalidStateError) as exc_info:
        validate_transition(PlanStatus.LOCKED, PlanStatus.DRAFT)
    assert exc_info.value.status_code == 400
    assert "terminal" in exc_info.value.message


def test_submit_stamps_submitter():
    plan = _plan(PlanStatus.DRAFT)
    user_id = uuid.uuid4()

    transition_plan(plan, PlanStatus.SUBMITTED, user_id)

    assert plan.status == PlanStatus.SUBMITTED
    assert plan.submitted_by_id == user_id
    assert plan.submitted_at is not None


def test_failed_transition_leaves_plan_untouched():
    plan = _plan(PlanStatus.APPROVED)
    with pytest.raises(InvalidTransitionError):
        transition_plan(plan, PlanStatus.DRAFT, uuid.uuid4())
    assert plan.status == PlanStatus.APPROVED
    assert plan.submitted_at is None


def test_status_guards():
    assert can_submit(PlanStatus.DRAFT) and can_submit(PlanStatus.REJECTED)
    assert not can_submit(PlanStatus.SUBMITTED)

    assert can_decide(PlanStatus.SUBMITTED)
    assert not can_decide(PlanStatus.APPROVED)

    assert can_edit(PlanStatus.DRAFT) and can_edit(PlanStatus.REJECTED)
    assert not can_edit(PlanStatus.APPROVED) and not can_edit(PlanStatus.LOCKED)

    assert can_delete(PlanStatus.DRAFT)
    assert not can_delete(PlanStatus.REJECTED)
