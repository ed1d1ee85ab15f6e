"""
Celery tasks for balance maintenance.

Tasks:
- rebuild_balances: Recompute balances from the posted-entry log
- verify_balances: Compare balances against the log without writing

Usage:
    from balances.tasks import rebuild_balances
    rebuild_balances.delay(account_id=42)
"""
import logging
from typing import Optional

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def rebuild_balances(
    self,
    account_id: Optional[int] = None,
    force: bool = False,
) -> dict:
    """
    Rebuild balances for one account, or every account when account_id is None.

    A ConsistencyError (mismatch without force) or ConcurrentModificationError
    (another rebuild holds the scope) is reported in the result rather than
    retried: both need an operator to look.

    Returns:
        Dict with rebuild results
    """
    from ledger.exceptions import ConcurrentModificationError, ConsistencyError
    from ledger.services import build_aggregator

    scope = account_id if account_id is not None else "all accounts"
    logger.info(f"Rebuilding balances for {scope}")

    aggregator = build_aggregator()
    try:
        result = aggregator.rebuild_from_log(
            account_id=account_id,
            force=force,
            owner=f"celery:{self.request.id or 'local'}",
        )
    except ConsistencyError as e:
        return {
            "account_id": account_id,
            "status": "mismatch",
            "error": str(e),
            "mismatches": e.mismatches,
        }
    except ConcurrentModificationError as e:
        logger.warning(f"Balance rebuild for {scope} skipped: {e}")
        return {
            "account_id": account_id,
            "status": "locked",
            "error": str(e),
        }

    result["status"] = "success"
    return result


@shared_task(bind=True)
def verify_balances(self, account_id: Optional[int] = None) -> dict:
    """Read-only check of balances against the posted-entry log."""
    from ledger.services import build_aggregator

    report = build_aggregator().verify(account_id=account_id)
    if report["mismatches"] or report["missing"]:
        logger.warning(
            f"Balance verification found {len(report['mismatches'])} mismatches "
            f"and {len(report['missing'])} missing buckets"
        )
    return {
        "account_id": account_id,
        "buckets_checked": report["buckets_checked"],
        "mismatches": report["mismatches"],
        "missing": [list(key) for key in report["missing"]],
        "status": "ok" if not (report["mismatches"] or report["missing"]) else "drift",
    }
