# budgets/policies.py
"""
Business policy functions for budgets.

Same shape as ledger/policies.py: can_* returns (allowed, reason),
assert_* raises.
"""

from budgets.models import Budget
from ledger.exceptions import InvalidStateError


Status = Budget.Status

# =============================================================================
# Budget State Machine
# =============================================================================

TRANSITIONS = {
    Status.DRAFT: {Status.PENDING_APPROVAL},
    Status.PENDING_APPROVAL: {Status.APPROVED, Status.REJECTED},
    Status.REJECTED: {Status.DRAFT},
    Status.APPROVED: {Status.ACTIVE, Status.CLOSED},
    Status.ACTIVE: {Status.CLOSED},
    Status.CLOSED: set(),
}

# Items may be added directly (without a revision) only while drafting.
EDITABLE_STATUSES = {Status.DRAFT, Status.REJECTED}


def can_transition(budget, to_status) -> tuple[bool, str]:
    if to_status not in TRANSITIONS.get(budget.status, set()):
        return False, f"Cannot move a {budget.status} budget to {to_status}."
    return True, ""


def assert_transition(budget, to_status) -> None:
    allowed, reason = can_transition(budget, to_status)
    if not allowed:
        raise InvalidStateError(reason)


def can_edit_items(budget) -> tuple[bool, str]:
    if budget.status not in EDITABLE_STATUSES:
        return False, (
            f"Items of a {budget.status} budget can only be changed through a revision."
        )
    return True, ""


def can_revise(budget) -> tuple[bool, str]:
    """Revisions are accepted in every status except CLOSED."""
    if budget.status == Status.CLOSED:
        return False, "Closed budgets cannot be revised."
    return True, ""
