# ledger/lifecycle.py
"""
Transaction Lifecycle Manager.

The single entry point for moving a transaction through its statuses:

    DRAFT -> PENDING_APPROVAL -> APPROVED -> POSTED -> PARTIALLY_PAID / PAID
    any non-terminal status -> VOIDED
    PENDING_APPROVAL / APPROVED -> DRAFT (returned for rework)

Pattern for every operation:
1. Load the transaction (optionally checking the caller's expected version)
2. Apply business policies (ledger/policies.py) and the entry validator
3. Compare-and-swap the status on (status, version) so a concurrent caller
   loses cleanly with ConcurrentModificationError
4. Run side effects (balance aggregator, payments) in the same database
   transaction
5. Write an audit log entry

Nothing is committed if any step fails.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from ledger.exceptions import ConcurrentModificationError, InvalidStateError, ValidationError
from ledger.models import MONEY_Q, ZERO, AuditLogEntry, Payment, Transaction
from ledger.policies import (
    REVERSIBLE_STATUSES,
    assert_can_post_to_period,
    assert_transition,
    can_accept_payment,
    can_apply_payment_amount,
    can_edit_entries,
    can_void,
)
from ledger.types import EntryDraft, TransactionDraft
from ledger.validators import LedgerEntryValidator
from ops.metrics import record_conflict, record_payment, record_posting, record_void


logger = logging.getLogger(__name__)

Status = Transaction.Status
Action = AuditLogEntry.Action


def to_money(value) -> Decimal:
    """Parse an amount and round it to cents."""
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise InvalidOperation
        return amount.quantize(MONEY_Q)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")


class TransactionLifecycleManager:
    def __init__(self, repository, aggregator, validator=None, clock=None):
        self.repository = repository
        self.aggregator = aggregator
        self.validator = validator or LedgerEntryValidator(repository)
        self.clock = clock or timezone.now

    # =========================================================================
    # Drafting
    # =========================================================================

    def create_draft(self, draft: TransactionDraft, created_by: str = "") -> Transaction:
        """
        Record a new DRAFT transaction.

        Lines must be well formed and reference active accounts now; the
        debit/credit totals only have to agree once it leaves DRAFT.
        """
        self.validator.validate(draft, require_balanced=False)

        period = self.repository.fiscal_period_for(draft.date)
        if period is None:
            raise ValidationError(f"No fiscal period covers {draft.date}.")

        amount = draft.total_debit
        txn = Transaction(
            transaction_type=draft.transaction_type,
            reference=draft.reference,
            date=draft.date,
            description=draft.description,
            status=Status.DRAFT,
            fiscal_year=period.fiscal_year,
            fiscal_period=period,
            amount=amount,
            customer_id=draft.customer_id,
            vendor_id=draft.vendor_id,
            due_date=draft.due_date,
            amount_due=amount if draft.transaction_type in Transaction.PAYABLE_TYPES else ZERO,
            created_by=created_by,
        )

        with transaction.atomic():
            self.repository.save_transaction(txn, entries=draft.entries)
            self.repository.record_audit(
                Action.CREATE,
                "Transaction",
                txn.pk,
                user_id=created_by,
                details={
                    "transaction_type": txn.transaction_type,
                    "amount": str(amount),
                    "entries": [e.to_dict() for e in draft.entries],
                },
                new_state={"status": txn.status, "version": txn.version},
            )

        logger.info(
            f"Created {txn.transaction_type} draft {txn.pk} for {amount}",
            extra={"transaction_id": txn.pk, "user_id": created_by},
        )
        return txn

    def replace_entries(
        self,
        txn_id,
        entries: list[EntryDraft],
        updated_by: str = "",
        expected_version: int | None = None,
    ) -> Transaction:
        txn = self._load(txn_id, expected_version)
        allowed, reason = can_edit_entries(txn)
        if not allowed:
            raise InvalidStateError(reason)

        draft = TransactionDraft.from_transaction(txn)
        draft.entries = list(entries)
        self.validator.validate(draft, require_balanced=False)

        amount = draft.total_debit
        changes = {"amount": amount}
        if txn.is_payable_document:
            changes["amount_due"] = amount

        with transaction.atomic():
            previous_version = txn.version
            if not self.repository.compare_and_set(txn, Status.DRAFT, **changes):
                self._conflict("replace_entries", txn)
            self.repository.save_transaction(txn, entries=draft.entries)
            self.repository.record_audit(
                Action.UPDATE,
                "Transaction",
                txn.pk,
                user_id=updated_by,
                details={"entries": [e.to_dict() for e in draft.entries]},
                previous_state={"version": previous_version},
                new_state={"version": txn.version},
            )
        return txn

    # =========================================================================
    # Approval
    # =========================================================================

    def submit_for_approval(
        self,
        txn_id,
        submitted_by: str = "",
        expected_version: int | None = None,
    ) -> Transaction:
        txn = self._load(txn_id, expected_version)
        if txn.status != Status.DRAFT:
            raise InvalidStateError(
                f"Only DRAFT transactions can be submitted for approval (status is {txn.status})."
            )
        self.validator.validate(TransactionDraft.from_transaction(txn))

        with transaction.atomic():
            self._transition(txn, Status.PENDING_APPROVAL, Action.SUBMIT, user_id=submitted_by)
        return txn

    def approve(
        self,
        txn_id,
        approver_id: str,
        expected_version: int | None = None,
    ) -> Transaction:
        txn = self._load(txn_id, expected_version)
        if txn.status not in (Status.DRAFT, Status.PENDING_APPROVAL):
            raise InvalidStateError(
                f"Only DRAFT or PENDING_APPROVAL transactions can be approved (status is {txn.status})."
            )
        self.validator.validate(TransactionDraft.from_transaction(txn))

        with transaction.atomic():
            self._transition(
                txn,
                Status.APPROVED,
                Action.APPROVE,
                user_id=approver_id,
                approved_by=approver_id or "",
                approved_at=self.clock(),
            )
        return txn

    def return_to_draft(
        self,
        txn_id,
        reason: str = "",
        returned_by: str = "",
        expected_version: int | None = None,
    ) -> Transaction:
        """Send a submitted or approved transaction back for rework."""
        txn = self._load(txn_id, expected_version)
        if txn.status not in (Status.PENDING_APPROVAL, Status.APPROVED):
            raise InvalidStateError(
                f"Only PENDING_APPROVAL or APPROVED transactions can be returned (status is {txn.status})."
            )

        with transaction.atomic():
            self._transition(
                txn,
                Status.DRAFT,
                Action.RETURN,
                user_id=returned_by,
                details={"reason": reason},
                approved_by="",
                approved_at=None,
                returned_reason=reason,
            )
        return txn

    # =========================================================================
    # Posting
    # =========================================================================

    def post(
        self,
        txn_id,
        posted_by: str = "",
        expected_version: int | None = None,
    ) -> Transaction:
        """
        APPROVED -> POSTED, and apply the entries to the balances.

        The validator runs again right before the flip: an account may have
        been deactivated since approval. On any failure the transaction
        stays APPROVED and no balance moves.
        """
        txn = self._load(txn_id, expected_version)
        if txn.status in Transaction.POSTED_STATUSES:
            self._conflict("post", txn, f"Transaction {txn.pk} has already been posted.")
        if txn.status != Status.APPROVED:
            raise InvalidStateError(
                f"Only APPROVED transactions can be posted (status is {txn.status})."
            )

        self.validator.validate(TransactionDraft.from_transaction(txn))
        assert_can_post_to_period(txn.fiscal_period)

        with transaction.atomic():
            self._transition(
                txn,
                Status.POSTED,
                Action.POST,
                user_id=posted_by,
                posted_by=posted_by,
                posted_at=self.clock(),
            )
            self.aggregator.apply_posting(txn)

        record_posting(txn.transaction_type)
        logger.info(
            f"Posted transaction {txn.pk} ({txn.amount})",
            extra={"transaction_id": txn.pk, "user_id": posted_by},
        )
        return txn

    def void(
        self,
        txn_id,
        reason: str,
        voided_by: str = "",
        expected_version: int | None = None,
    ) -> Transaction:
        """
        Void a transaction. Entries and payments are kept for audit.

        Voiding a posted (or partially paid) transaction reverses its
        balance effect; recorded payments are frozen, not reversed.
        """
        if not reason or not reason.strip():
            raise ValidationError("A void reason is required.")

        txn = self._load(txn_id, expected_version)
        allowed, why = can_void(txn)
        if not allowed:
            raise InvalidStateError(why)

        from_status = txn.status
        with transaction.atomic():
            self._transition(
                txn,
                Status.VOIDED,
                Action.VOID,
                user_id=voided_by,
                details={"reason": reason.strip()},
                voided_by=voided_by,
                voided_at=self.clock(),
                void_reason=reason.strip(),
            )
            if from_status in REVERSIBLE_STATUSES:
                self.aggregator.reverse_posting(txn)

        record_void(from_status)
        logger.info(
            f"Voided transaction {txn.pk} from {from_status}",
            extra={"transaction_id": txn.pk, "user_id": voided_by},
        )
        return txn

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        txn_id,
        amount,
        payment_date=None,
        method: str = Payment.Method.OTHER,
        reference: str = "",
        recorded_by: str = "",
        expected_version: int | None = None,
    ) -> Payment:
        """
        Apply a payment to a posted bill or invoice.

        Overpayment is rejected. The document becomes PAID once
        amount_paid reaches amount_due, PARTIALLY_PAID before that.
        """
        amount = to_money(amount)
        txn = self._load(txn_id, expected_version)

        allowed, reason = can_accept_payment(txn)
        if not allowed:
            raise InvalidStateError(reason)
        allowed, reason = can_apply_payment_amount(txn, amount)
        if not allowed:
            raise ValidationError(reason)

        new_paid = txn.amount_paid + amount
        to_status = Status.PAID if new_paid >= txn.amount_due else Status.PARTIALLY_PAID

        with transaction.atomic():
            self._transition(
                txn,
                to_status,
                Action.PAYMENT,
                user_id=recorded_by,
                details={"amount": str(amount), "method": method, "reference": reference},
                amount_paid=new_paid,
            )
            payment = self.repository.add_payment(Payment(
                transaction=txn,
                amount=amount,
                date=payment_date or timezone.localdate(self.clock()),
                method=method,
                reference=reference,
                created_by=recorded_by,
            ))

        record_payment(txn.transaction_type, to_status)
        logger.info(
            f"Recorded payment of {amount} on {txn.transaction_type} {txn.pk}; now {to_status}",
            extra={"transaction_id": txn.pk, "user_id": recorded_by},
        )
        return payment

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, txn_id, expected_version: int | None) -> Transaction:
        txn = self.repository.load_transaction(txn_id)
        if expected_version is not None and txn.version != expected_version:
            self._conflict(
                "load",
                txn,
                f"Transaction {txn.pk} is at version {txn.version}, not {expected_version}; "
                "reload and retry.",
            )
        return txn

    def _transition(self, txn, to_status, action, user_id: str = "", details=None, **changes) -> None:
        """Check the transition table, then compare-and-swap status and version."""
        assert_transition(txn, to_status)

        from_status = txn.status
        from_version = txn.version
        if not self.repository.compare_and_set(txn, from_status, status=to_status, **changes):
            self._conflict(action.lower(), txn)

        self.repository.record_audit(
            action,
            "Transaction",
            txn.pk,
            user_id=user_id,
            details=details,
            previous_state={"status": from_status, "version": from_version},
            new_state={"status": to_status, "version": txn.version},
        )

    def _conflict(self, operation: str, txn, message: str | None = None):
        record_conflict(operation)
        logger.warning(
            f"Concurrent modification of transaction {txn.pk} during {operation}",
            extra={"transaction_id": txn.pk},
        )
        raise ConcurrentModificationError(
            message or f"Transaction {txn.pk} was modified concurrently; reload and retry."
        )
