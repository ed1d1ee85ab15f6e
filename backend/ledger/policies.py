# ledger/policies.py
"""
Business policy functions for ledger operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the lifecycle manager's job.

Workflow rules (status transitions, entry immutability after DRAFT) are
enforced HERE, in one transition table, not scattered across callers.

Usage:
    from ledger.policies import can_transition, assert_transition

    # Option 1: Check and get boolean + reason
    allowed, reason = can_transition(txn, Transaction.Status.APPROVED)
    if not allowed:
        return error(reason)

    # Option 2: Assert and raise on failure
    assert_transition(txn, Transaction.Status.POSTED)  # raises InvalidStateError

Design Principles:
1. Policies are pure functions (no side effects)
2. Policies return (bool, str) tuples for clear error messages
3. Policies check ONE thing conceptually
4. Commands compose policies as needed
"""

from decimal import Decimal

from ledger.exceptions import InvalidStateError, ValidationError
from ledger.models import FiscalPeriod, FiscalYear, Transaction


Status = Transaction.Status

# =============================================================================
# Transaction State Machine
# =============================================================================

TRANSITIONS = {
    Status.DRAFT: {Status.PENDING_APPROVAL, Status.APPROVED, Status.VOIDED},
    Status.PENDING_APPROVAL: {Status.APPROVED, Status.DRAFT, Status.VOIDED},
    Status.APPROVED: {Status.POSTED, Status.DRAFT, Status.VOIDED},
    Status.POSTED: {Status.PARTIALLY_PAID, Status.PAID, Status.VOIDED},
    Status.PARTIALLY_PAID: {Status.PARTIALLY_PAID, Status.PAID, Status.VOIDED},
    Status.PAID: set(),
    Status.VOIDED: set(),
}

# Payment states only exist for bills and invoices.
PAYMENT_STATUSES = {Status.PARTIALLY_PAID, Status.PAID}

# Leaving one of these means the posting must be reversed.
REVERSIBLE_STATUSES = {Status.POSTED, Status.PARTIALLY_PAID}


def can_transition(txn, to_status) -> tuple[bool, str]:
    """
    Check a status change against the transition table.

    Rules:
    - The (from, to) pair must be in TRANSITIONS
    - PARTIALLY_PAID / PAID are only reachable by bills and invoices
    """
    allowed = TRANSITIONS.get(txn.status, set())
    if to_status not in allowed:
        return False, f"Cannot move a {txn.status} transaction to {to_status}."

    if to_status in PAYMENT_STATUSES and txn.transaction_type not in Transaction.PAYABLE_TYPES:
        return False, "Only bills and invoices can be paid."

    return True, ""


def assert_transition(txn, to_status) -> None:
    allowed, reason = can_transition(txn, to_status)
    if not allowed:
        raise InvalidStateError(reason)


def can_edit_entries(txn) -> tuple[bool, str]:
    if txn.status != Status.DRAFT:
        return False, "Entries can only be changed while the transaction is DRAFT."
    return True, ""


# =============================================================================
# Period Policies
# =============================================================================

def can_post_to_period(period) -> tuple[bool, str]:
    """
    Check if a transaction dated in this period may be posted.

    Rules:
    - The period must be OPEN
    - Its fiscal year must not be CLOSED
    """
    if period is None:
        return False, "Transaction has no fiscal period."
    if period.status != FiscalPeriod.Status.OPEN:
        return False, f"Fiscal period {period.name} is {period.status}; posting is not allowed."
    if period.fiscal_year.status == FiscalYear.Status.CLOSED:
        return False, f"Fiscal year {period.fiscal_year.name} is closed."
    return True, ""


def assert_can_post_to_period(period) -> None:
    allowed, reason = can_post_to_period(period)
    if not allowed:
        raise ValidationError(reason)


def can_void(txn) -> tuple[bool, str]:
    """
    Check if a transaction may be voided.

    Rules:
    - The transition table must allow VOIDED
    - A posting can only be reversed while its period is still open
    """
    allowed, why = can_transition(txn, Status.VOIDED)
    if not allowed:
        return False, why

    if txn.status in REVERSIBLE_STATUSES:
        if txn.fiscal_period.status == FiscalPeriod.Status.CLOSED:
            return False, (
                f"Fiscal period {txn.fiscal_period.name} is closed; "
                "record an offsetting entry in an open period instead."
            )
    return True, ""


def can_close_period(period, unfinished_count: int) -> tuple[bool, str]:
    if period.status == FiscalPeriod.Status.CLOSED:
        return False, f"Fiscal period {period.name} is already closed."
    if unfinished_count:
        return False, (
            f"Fiscal period {period.name} has {unfinished_count} draft or pending "
            "transactions. Post, void or move them before closing."
        )
    return True, ""


def can_close_fiscal_year(year, open_period_count: int) -> tuple[bool, str]:
    if year.status == FiscalYear.Status.CLOSED:
        return False, f"Fiscal year {year.name} is already closed."
    if open_period_count:
        return False, (
            f"Fiscal year {year.name} has {open_period_count} periods that are not closed."
        )
    return True, ""


# =============================================================================
# Payment Policies
# =============================================================================

def can_accept_payment(txn) -> tuple[bool, str]:
    """
    Check if a document is in a state that takes payments.

    Rules:
    - Only bills and invoices take payments
    - Only once posted (POSTED or PARTIALLY_PAID)
    """
    if txn.transaction_type not in Transaction.PAYABLE_TYPES:
        return False, "Payments can only be recorded against bills and invoices."
    if txn.status not in (Status.POSTED, Status.PARTIALLY_PAID):
        return False, f"Cannot record a payment on a {txn.status} {txn.transaction_type.lower()}."
    return True, ""


def can_apply_payment_amount(txn, amount: Decimal) -> tuple[bool, str]:
    """
    Rules:
    - Amount must be positive
    - Overpayment is rejected, not clamped
    """
    if amount <= 0:
        return False, "Payment amount must be positive."
    if txn.amount_paid + amount > txn.amount_due:
        return False, (
            f"Payment of {amount} exceeds the outstanding balance of {txn.outstanding_amount}."
        )
    return True, ""


# =============================================================================
# Account Policies
# =============================================================================

def can_delete_account(account, has_entries: bool) -> tuple[bool, str]:
    """
    Rules:
    - Cannot delete an account referenced by any entry (deactivate it)
    - Cannot delete an account that has child accounts
    """
    if has_entries:
        return False, "Cannot delete an account that has transactions. Deactivate it instead."
    if account.children.exists():
        return False, "Cannot delete an account that has child accounts."
    return True, ""


def can_set_parent(account, parent) -> tuple[bool, str]:
    """A parent cannot be the account itself or one of its descendants."""
    if parent is None:
        return True, ""
    node = parent
    while node is not None:
        if node.pk == account.pk:
            return False, "An account cannot be its own ancestor."
        node = node.parent
    return True, ""
