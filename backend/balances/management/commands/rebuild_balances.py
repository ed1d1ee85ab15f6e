# balances/management/commands/rebuild_balances.py
"""
Management command to rebuild account balances from the posted-entry log.

Posted transaction entries are the source of truth; balances can always be
rebuilt.

Usage:
    # Rebuild every account
    python manage.py rebuild_balances

    # Rebuild one account
    python manage.py rebuild_balances --account 42

    # Report drift without writing
    python manage.py rebuild_balances --verify-only

    # Overwrite buckets that disagree with the log
    python manage.py rebuild_balances --force
"""

import time
import logging

from django.core.management.base import BaseCommand, CommandError

from ledger.exceptions import ConcurrentModificationError, ConsistencyError
from ledger.services import build_aggregator

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Rebuild balances from posted entries."""

    help = "Rebuild account balances from the posted-entry log"

    def add_arguments(self, parser):
        parser.add_argument(
            "--account",
            type=int,
            help="Account id to rebuild (default: all accounts)",
        )
        parser.add_argument(
            "--verify-only",
            action="store_true",
            help="Compare balances against the log without making changes",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Overwrite balances that disagree with the log",
        )

    def handle(self, *args, **options):
        if options["verify_only"] and options["force"]:
            raise CommandError("Cannot use --verify-only and --force together")

        aggregator = build_aggregator()
        account_id = options["account"]

        if options["verify_only"]:
            return self._verify(aggregator, account_id)

        start_time = time.time()
        try:
            result = aggregator.rebuild_from_log(
                account_id=account_id,
                force=options["force"],
                owner="manage.py rebuild_balances",
            )
        except ConsistencyError as exc:
            self._show_mismatches(exc.mismatches)
            raise CommandError(
                f"{len(exc.mismatches)} mismatches found; nothing was written. "
                "Re-run with --force to let the log win."
            )
        except ConcurrentModificationError as exc:
            raise CommandError(str(exc))

        elapsed = time.time() - start_time
        self.stdout.write("\n" + "=" * 60)
        self.stdout.write(self.style.SUCCESS("REBUILD COMPLETE"))
        self.stdout.write("=" * 60)
        self.stdout.write(f"Scope: {result['scope']}")
        self.stdout.write(f"Buckets checked: {result['buckets_checked']:,}")
        self.stdout.write(f"Buckets created: {result['created']:,}")
        self.stdout.write(f"Buckets updated: {result['updated']:,}")
        if result["forced"] and result["mismatches"]:
            self.stdout.write(
                self.style.WARNING(f"Overwrote {len(result['mismatches'])} mismatched values")
            )
        self.stdout.write(f"Total time: {elapsed:.2f} seconds")

    def _verify(self, aggregator, account_id):
        report = aggregator.verify(account_id=account_id)
        self.stdout.write(f"Buckets checked: {report['buckets_checked']:,}")

        if not report["mismatches"] and not report["missing"]:
            self.stdout.write(self.style.SUCCESS("Balances match the posted-entry log."))
            return

        self._show_mismatches(report["mismatches"])
        for account, fund, period in report["missing"]:
            self.stdout.write(
                self.style.WARNING(f"  missing bucket: account={account} fund={fund} period={period}")
            )
        raise CommandError("Balances have drifted from the posted-entry log.")

    def _show_mismatches(self, mismatches):
        for m in mismatches:
            self.stdout.write(
                self.style.ERROR(
                    f"  account={m['account_id']} fund={m['fund_id']} "
                    f"period={m['fiscal_period_id']} {m['field']}: "
                    f"materialized={m['materialized']} expected={m['expected']}"
                )
            )
