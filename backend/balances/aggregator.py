# balances/aggregator.py
"""
Balance Aggregator.

Maintains AccountBalance buckets from posted transactions. It is the
single source of truth for "what is the balance of account X in period P?"

Flow:
1. TransactionLifecycleManager.post() flips a transaction to POSTED
2. In the same database transaction it calls apply_posting()
3. apply_posting() locks the affected buckets and adds the signed amounts
4. void() of a posted transaction calls reverse_posting(), the exact negation

Both directions are idempotent: a PostingApplication row keyed by
(transaction, kind) is claimed first, so a retry cannot double-count.

rebuild_from_log() recomputes everything from the posted entries and must
land on exactly what the incremental path produced.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from balances.models import AccountBalance, BalanceRebuildLock, PostingApplication
from balances.write_barrier import aggregator_writes_allowed, rebuild_writes_allowed
from ledger.exceptions import ConcurrentModificationError, ConsistencyError
from ledger.models import ZERO, Account
from ops.metrics import record_conflict, record_rebuild


logger = logging.getLogger(__name__)


@dataclass
class BucketState:
    """Expected values of one bucket, computed from the log."""

    account_id: int
    fund_id: int | None
    fiscal_period_id: int
    fiscal_year_id: int
    opening_balance: Decimal = ZERO
    current_balance: Decimal = ZERO
    closing_balance: Decimal = ZERO
    debit_total: Decimal = ZERO
    credit_total: Decimal = ZERO
    entry_count: int = 0

    @property
    def key(self) -> tuple:
        return (self.account_id, self.fund_id, self.fiscal_period_id)


@dataclass
class _Delta:
    account: Account
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    count: int = 0


def _carries(account, from_period, to_period) -> bool:
    """Does activity in from_period roll into the opening balance of to_period?"""
    if account.carries_across_years:
        return True
    return from_period.fiscal_year_id == to_period.fiscal_year_id


class BalanceAggregator:
    def __init__(self, repository, clock=None):
        self.repository = repository
        self.clock = clock or timezone.now

    # =========================================================================
    # Incremental maintenance
    # =========================================================================

    def apply_posting(self, txn) -> bool:
        """
        Add a posted transaction's entries to its period's buckets.

        Returns False (and changes nothing) if this transaction was already
        applied. All buckets change together or not at all.
        """
        with transaction.atomic(), aggregator_writes_allowed():
            deltas = self._collect_deltas(txn)
            self._assert_not_rebuilding({account_id for account_id, _ in deltas})

            if not self._claim(txn, PostingApplication.Kind.APPLY):
                logger.debug(f"Transaction {txn.pk} already applied to balances")
                return False

            self._apply_deltas(txn, deltas, sign=1)

        logger.info(
            f"Applied transaction {txn.pk} to {len(deltas)} balance buckets",
            extra={"transaction_id": txn.pk, "fiscal_period_id": txn.fiscal_period_id},
        )
        return True

    def reverse_posting(self, txn) -> bool:
        """
        Remove a transaction's effect from the balances.

        A no-op if the posting was never applied, or was already reversed.
        """
        with transaction.atomic(), aggregator_writes_allowed():
            applied = PostingApplication.objects.filter(
                transaction=txn,
                kind=PostingApplication.Kind.APPLY,
            ).exists()
            if not applied:
                logger.debug(f"Transaction {txn.pk} was never applied; nothing to reverse")
                return False

            deltas = self._collect_deltas(txn)
            self._assert_not_rebuilding({account_id for account_id, _ in deltas})

            if not self._claim(txn, PostingApplication.Kind.REVERSE):
                logger.debug(f"Transaction {txn.pk} already reversed")
                return False

            self._apply_deltas(txn, deltas, sign=-1)

        logger.info(
            f"Reversed transaction {txn.pk} from {len(deltas)} balance buckets",
            extra={"transaction_id": txn.pk, "fiscal_period_id": txn.fiscal_period_id},
        )
        return True

    def _claim(self, txn, kind) -> bool:
        try:
            with transaction.atomic():
                PostingApplication.objects.create(
                    transaction=txn,
                    kind=kind,
                    applied_at=self.clock(),
                )
        except IntegrityError:
            return False
        return True

    def _collect_deltas(self, txn) -> dict:
        deltas = {}
        for entry in txn.entries.select_related("account").order_by("line_number"):
            key = (entry.account_id, entry.fund_id)
            delta = deltas.get(key)
            if delta is None:
                delta = deltas[key] = _Delta(account=entry.account)
            delta.debit += entry.debit_amount
            delta.credit += entry.credit_amount
            delta.count += 1
        return deltas

    def _assert_not_rebuilding(self, account_ids) -> None:
        scopes = [BalanceRebuildLock.ALL_ACCOUNTS] + [str(a) for a in account_ids]
        if BalanceRebuildLock.objects.filter(scope__in=scopes).exists():
            record_conflict("apply_posting")
            raise ConcurrentModificationError(
                "A balance rebuild is running for the affected accounts; retry when it finishes."
            )

    def _apply_deltas(self, txn, deltas: dict, sign: int) -> None:
        period = txn.fiscal_period
        now = self.clock()
        # Deterministic lock order so concurrent postings cannot deadlock.
        for account_id, fund_id in sorted(deltas, key=lambda k: (k[0], k[1] or 0)):
            delta = deltas[(account_id, fund_id)]
            self._apply_to_bucket(
                delta.account,
                fund_id,
                period,
                debit=delta.debit * sign,
                credit=delta.credit * sign,
                count=delta.count * sign,
                now=now,
            )

    def _apply_to_bucket(self, account, fund_id, period, debit, credit, count, now) -> None:
        buckets = self.repository.balances_for_account_fund(account.pk, fund_id, for_update=True)
        target = next((b for b in buckets if b.fiscal_period_id == period.pk), None)
        if target is None:
            target = self._create_bucket(account, fund_id, period, buckets)

        net = account.signed_amount(debit, credit)

        target.debit_total += debit
        target.credit_total += credit
        target.entry_count += count
        target.current_balance += net
        target.closing_balance = target.opening_balance + target.current_balance
        target.version += 1
        target.last_updated = now
        self.repository.save_balance(target)

        # Later periods open with this period's activity rolled in.
        for later in buckets:
            if later.pk == target.pk:
                continue
            if later.fiscal_period.start_date <= period.start_date:
                continue
            if not _carries(account, period, later.fiscal_period):
                continue
            later.opening_balance += net
            later.closing_balance += net
            later.version += 1
            later.last_updated = now
            self.repository.save_balance(later)

    def _create_bucket(self, account, fund_id, period, buckets) -> AccountBalance:
        opening = sum(
            (
                b.current_balance
                for b in buckets
                if b.fiscal_period.start_date < period.start_date
                and _carries(account, b.fiscal_period, period)
            ),
            ZERO,
        )
        try:
            with transaction.atomic():
                return AccountBalance.objects.create(
                    account=account,
                    fund_id=fund_id,
                    fiscal_year_id=period.fiscal_year_id,
                    fiscal_period=period,
                    opening_balance=opening,
                    closing_balance=opening,
                )
        except IntegrityError:
            # Another posting created it between our read and insert.
            return self.repository.load_balance(account.pk, period.pk, fund_id, for_update=True)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_balance(self, account_id, fiscal_period_id, fund_id=None) -> AccountBalance:
        """
        Materialized bucket, or an unsaved zero-valued bucket when the
        account has no activity in that period.
        """
        balance = self.repository.load_balance(account_id, fiscal_period_id, fund_id)
        if balance is not None:
            return balance
        return AccountBalance(
            account_id=account_id,
            fiscal_period_id=fiscal_period_id,
            fund_id=fund_id,
        )

    def get_running_balance(self, account_id, fiscal_period_id, fund_id=None) -> Decimal:
        """Point-in-time balance at the end of the period."""
        account = self.repository.load_account(account_id)
        period = self.repository.load_fiscal_period(fiscal_period_id)
        total = ZERO
        for bucket in self.repository.balances_for_account_fund(account_id, fund_id):
            if bucket.fiscal_period.start_date > period.start_date:
                continue
            if _carries(account, bucket.fiscal_period, period):
                total += bucket.current_balance
        return total

    def get_period_activity(self, account_id, period_ids, fund_id=None) -> Decimal:
        """
        Net activity of an account over a set of periods.

        fund_id=None sums every fund (including entries with no fund).
        """
        period_ids = list(period_ids)
        if not period_ids:
            return ZERO
        qs = AccountBalance.objects.filter(account_id=account_id, fiscal_period_id__in=period_ids)
        if fund_id is not None:
            qs = qs.filter(fund_id=fund_id)
        return sum((b.current_balance for b in qs), ZERO)

    def trial_balance(self, fiscal_period_id) -> dict:
        """
        Cumulative trial balance through the end of a period.

        Every posting balances, so the debit and credit columns agree.
        Revenue and expense are shown cumulatively too (pre-closing view).

        Returns:
            {
                "fiscal_period_id": 3,
                "accounts": [
                    {"number": "1000", "name": "Cash", "debit": "500.00", "credit": "0.00", ...},
                    ...
                ],
                "total_debit": "500.00",
                "total_credit": "500.00",
                "is_balanced": True,
            }
        """
        period = self.repository.load_fiscal_period(fiscal_period_id)
        buckets = (
            AccountBalance.objects
            .filter(fiscal_period__start_date__lte=period.start_date)
            .select_related("account")
            .order_by("account__number")
        )

        balances: dict[int, Decimal] = {}
        accounts: dict[int, Account] = {}
        for bucket in buckets:
            accounts[bucket.account_id] = bucket.account
            balances[bucket.account_id] = balances.get(bucket.account_id, ZERO) + bucket.current_balance

        rows = []
        total_debit = ZERO
        total_credit = ZERO
        for account_id, balance in balances.items():
            account = accounts[account_id]
            debit_side = (account.normal_balance == Account.NormalBalance.DEBIT) == (balance >= 0)
            debit = abs(balance) if debit_side else ZERO
            credit = ZERO if debit_side else abs(balance)
            rows.append({
                "account_id": account_id,
                "number": account.number,
                "name": account.name,
                "account_type": account.account_type,
                "normal_balance": account.normal_balance,
                "balance": str(balance),
                "debit": str(debit),
                "credit": str(credit),
            })
            total_debit += debit
            total_credit += credit

        return {
            "fiscal_period_id": period.pk,
            "period_name": period.name,
            "accounts": rows,
            "total_debit": str(total_debit),
            "total_credit": str(total_credit),
            "is_balanced": total_debit == total_credit,
        }

    def close_period_balances(self, period) -> int:
        """Stamp the period's buckets as final. Returns how many were touched."""
        now = self.clock()
        touched = 0
        with transaction.atomic(), aggregator_writes_allowed():
            for bucket in AccountBalance.objects.select_for_update().filter(fiscal_period=period):
                bucket.closing_balance = bucket.opening_balance + bucket.current_balance
                bucket.last_updated = now
                bucket.version += 1
                self.repository.save_balance(bucket)
                touched += 1
        logger.info(f"Stamped closing balances on {touched} buckets for period {period.pk}")
        return touched

    # =========================================================================
    # Recovery
    # =========================================================================

    def compute_from_log(self, account_id=None, extra_keys=()) -> dict:
        """
        Recompute bucket values from the posted-entry log.

        extra_keys are (account_id, fund_id, period_id) buckets that exist in
        the table but may have no posted entries left; they are computed
        too (as zero activity) so their openings can be checked.
        """
        states: dict[tuple, BucketState] = {}
        account_ids = set()
        period_ids = set()

        for entry in self.repository.list_posted_entries(account_id):
            key = (entry.account_id, entry.fund_id, entry.transaction.fiscal_period_id)
            state = states.get(key)
            if state is None:
                state = states[key] = BucketState(
                    account_id=entry.account_id,
                    fund_id=entry.fund_id,
                    fiscal_period_id=entry.transaction.fiscal_period_id,
                    fiscal_year_id=entry.transaction.fiscal_year_id,
                )
            state.debit_total += entry.debit_amount
            state.credit_total += entry.credit_amount
            state.entry_count += 1
            state.current_balance += entry.account.signed_amount(
                entry.debit_amount,
                entry.credit_amount,
            )
            account_ids.add(entry.account_id)
            period_ids.add(key[2])

        for key in extra_keys:
            account_ids.add(key[0])
            period_ids.add(key[2])

        periods = self.repository.periods_by_id(period_ids)
        accounts = self.repository.accounts_by_id(account_ids)

        for key in extra_keys:
            if key not in states:
                period = periods[key[2]]
                states[key] = BucketState(
                    account_id=key[0],
                    fund_id=key[1],
                    fiscal_period_id=key[2],
                    fiscal_year_id=period.fiscal_year_id,
                )

        # Openings: walk each (account, fund) series in period order.
        series: dict[tuple, list[BucketState]] = {}
        for state in states.values():
            series.setdefault((state.account_id, state.fund_id), []).append(state)

        for (acct_id, _fund_id), chain in series.items():
            account = accounts[acct_id]
            chain.sort(key=lambda s: periods[s.fiscal_period_id].start_date)
            for index, state in enumerate(chain):
                target_period = periods[state.fiscal_period_id]
                state.opening_balance = sum(
                    (
                        earlier.current_balance
                        for earlier in chain[:index]
                        if _carries(account, periods[earlier.fiscal_period_id], target_period)
                    ),
                    ZERO,
                )
                state.closing_balance = state.opening_balance + state.current_balance

        return states

    def verify(self, account_id=None) -> dict:
        """
        Compare materialized buckets against the log without writing.

        Returns:
            {
                "buckets_checked": 12,
                "mismatches": [{"account_id": 1, "field": "current_balance", ...}],
                "missing": [(account_id, fund_id, period_id), ...],
            }
        """
        existing = self.repository.balances_in_scope(account_id)
        expected = self.compute_from_log(account_id, extra_keys=[b.key for b in existing])
        existing_keys = {b.key for b in existing}
        return {
            "buckets_checked": len(existing),
            "mismatches": self._diff(existing, expected),
            "missing": sorted(
                (k for k in expected if k not in existing_keys),
                key=lambda k: (k[0], k[1] or 0, k[2]),
            ),
        }

    def _diff(self, existing, expected: dict) -> list[dict]:
        mismatches = []
        for bucket in existing:
            state = expected[bucket.key]
            for name in AccountBalance.DERIVED_FIELDS:
                actual_value = getattr(bucket, name)
                expected_value = getattr(state, name)
                if actual_value != expected_value:
                    mismatches.append({
                        "account_id": bucket.account_id,
                        "fund_id": bucket.fund_id,
                        "fiscal_period_id": bucket.fiscal_period_id,
                        "field": name,
                        "materialized": str(actual_value),
                        "expected": str(expected_value),
                    })
        return mismatches

    def rebuild_from_log(self, account_id=None, force: bool = False, owner: str = "") -> dict:
        """
        Recompute balances from the posted-entry log.

        Takes an exclusive rebuild lock for the scope (one account, or all)
        so postings against it are rejected while it runs. Missing buckets
        are created. If existing buckets disagree with the log, raises
        ConsistencyError and writes nothing, unless force=True, in which
        case the log wins.

        Returns:
            {"scope": "*", "buckets_checked": 10, "created": 2, "updated": 0,
             "mismatches": [], "forced": False}
        """
        scope = BalanceRebuildLock.ALL_ACCOUNTS if account_id is None else str(account_id)
        started = time.monotonic()

        self._acquire_rebuild_lock(scope, owner)
        try:
            result = self._rebuild_locked(account_id, force)
        except ConsistencyError as exc:
            record_rebuild("consistency_error", time.monotonic() - started)
            logger.error(
                f"Balance rebuild for scope {scope} found {len(exc.mismatches)} mismatches",
                extra={"scope": scope, "mismatch_count": len(exc.mismatches)},
            )
            raise
        finally:
            self._release_rebuild_lock(scope)

        result["scope"] = scope
        record_rebuild("forced" if result["forced"] else "success", time.monotonic() - started)
        logger.info(
            f"Balance rebuild for scope {scope}: checked={result['buckets_checked']} "
            f"created={result['created']} updated={result['updated']}",
            extra={"scope": scope},
        )
        return result

    def _rebuild_locked(self, account_id, force: bool) -> dict:
        now = self.clock()
        with transaction.atomic(), rebuild_writes_allowed():
            existing = self.repository.balances_in_scope(account_id, for_update=True)
            expected = self.compute_from_log(account_id, extra_keys=[b.key for b in existing])
            mismatches = self._diff(existing, expected)

            if mismatches and not force:
                raise ConsistencyError(
                    f"{len(mismatches)} balance values disagree with the posted-entry log; "
                    "nothing was written. Investigate, then rebuild with force to "
                    "overwrite from the log.",
                    mismatches,
                )

            stale_keys = {(m["account_id"], m["fund_id"], m["fiscal_period_id"]) for m in mismatches}
            updated = 0
            for bucket in existing:
                if bucket.key not in stale_keys:
                    continue
                state = expected[bucket.key]
                for name in AccountBalance.DERIVED_FIELDS:
                    setattr(bucket, name, getattr(state, name))
                bucket.version += 1
                bucket.last_updated = now
                self.repository.save_balance(bucket)
                updated += 1

            existing_keys = {b.key for b in existing}
            created = 0
            for key, state in sorted(
                expected.items(),
                key=lambda item: (item[0][0], item[0][1] or 0, item[0][2]),
            ):
                if key in existing_keys:
                    continue
                AccountBalance.objects.create(
                    account_id=state.account_id,
                    fund_id=state.fund_id,
                    fiscal_year_id=state.fiscal_year_id,
                    fiscal_period_id=state.fiscal_period_id,
                    opening_balance=state.opening_balance,
                    current_balance=state.current_balance,
                    closing_balance=state.closing_balance,
                    debit_total=state.debit_total,
                    credit_total=state.credit_total,
                    entry_count=state.entry_count,
                    version=1,
                    last_updated=now,
                )
                created += 1

        return {
            "buckets_checked": len(existing),
            "created": created,
            "updated": updated,
            "mismatches": mismatches,
            "forced": bool(force and mismatches),
        }

    def _acquire_rebuild_lock(self, scope: str, owner: str) -> None:
        with transaction.atomic(), rebuild_writes_allowed():
            held = BalanceRebuildLock.objects.all()
            if scope != BalanceRebuildLock.ALL_ACCOUNTS:
                held = held.filter(scope__in=[scope, BalanceRebuildLock.ALL_ACCOUNTS])
            if held.exists():
                record_conflict("rebuild")
                raise ConcurrentModificationError(f"A balance rebuild is already running ({scope}).")
            try:
                with transaction.atomic():
                    BalanceRebuildLock.objects.create(
                        scope=scope,
                        owner=owner,
                        acquired_at=self.clock(),
                    )
            except IntegrityError:
                record_conflict("rebuild")
                raise ConcurrentModificationError(f"A balance rebuild is already running ({scope}).")

    def _release_rebuild_lock(self, scope: str) -> None:
        BalanceRebuildLock.objects.filter(scope=scope).delete()
