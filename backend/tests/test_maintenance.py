# tests/test_maintenance.py
"""
Tests for the operational surface: the rebuild_balances management command,
the Celery maintenance tasks and the health/metrics endpoints.
"""

import json
import logging
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from balances import tasks
from balances.models import AccountBalance, BalanceRebuildLock
from ops.health import HealthCheck
from ops.logging_config import JsonFormatter, get_logging_config


@pytest.fixture
def activity(post_journal, cash_account, revenue_account, expense_account):
    post_journal(cash_account, revenue_account, "500.00", day=date(2024, 1, 10))
    post_journal(expense_account, cash_account, "75.00", day=date(2024, 2, 3))


@pytest.fixture
def drifted(activity, cash_account, periods):
    AccountBalance.objects.filter(account=cash_account, fiscal_period=periods[0]).update(
        current_balance=Decimal("1.00")
    )


def _run(*args):
    out = StringIO()
    call_command("rebuild_balances", *args, stdout=out)
    return out.getvalue()


# =============================================================================
# Management command
# =============================================================================

@pytest.mark.django_db
class TestRebuildCommand:
    def test_rebuild_all(self, activity):
        AccountBalance.objects.all().delete()

        output = _run()

        assert "REBUILD COMPLETE" in output
        assert "Scope: *" in output
        assert AccountBalance.objects.exists()

    def test_rebuild_one_account(self, activity, cash_account):
        output = _run("--account", str(cash_account.pk))

        assert f"Scope: {cash_account.pk}" in output

    def test_mismatch_fails_without_force(self, drifted):
        with pytest.raises(CommandError, match="--force"):
            _run()

    def test_force_repairs(self, drifted, cash_account, periods):
        output = _run("--force")

        assert "mismatched values" in output
        bucket = AccountBalance.objects.get(account=cash_account, fiscal_period=periods[0], fund=None)
        assert bucket.current_balance == Decimal("500.00")

    def test_verify_only_clean(self, activity):
        output = _run("--verify-only")

        assert "Balances match the posted-entry log." in output

    def test_verify_only_drift(self, drifted):
        with pytest.raises(CommandError, match="drifted"):
            _run("--verify-only")

    def test_verify_only_and_force_conflict(self, db):
        with pytest.raises(CommandError, match="together"):
            _run("--verify-only", "--force")

    def test_held_lock(self, activity):
        BalanceRebuildLock.objects.create(scope="*", owner="other", acquired_at=timezone.now())

        with pytest.raises(CommandError):
            _run()


# =============================================================================
# Celery tasks
# =============================================================================

@pytest.mark.django_db
class TestTasks:
    def test_rebuild_task_success(self, activity):
        result = tasks.rebuild_balances(force=False)

        assert result["status"] == "success"
        assert result["mismatches"] == []

    def test_rebuild_task_reports_mismatch(self, drifted, cash_account):
        result = tasks.rebuild_balances(account_id=cash_account.pk)

        assert result["status"] == "mismatch"
        assert result["account_id"] == cash_account.pk
        assert result["mismatches"]

    def test_rebuild_task_reports_lock(self, activity):
        BalanceRebuildLock.objects.create(scope="*", owner="other", acquired_at=timezone.now())

        result = tasks.rebuild_balances()

        assert result["status"] == "locked"

    def test_verify_task(self, activity):
        assert tasks.verify_balances()["status"] == "ok"

    def test_verify_task_reports_drift(self, drifted):
        result = tasks.verify_balances()

        assert result["status"] == "drift"
        assert {m["field"] for m in result["mismatches"]} >= {"current_balance"}


# =============================================================================
# Health & metrics
# =============================================================================

@pytest.mark.django_db
class TestOps:
    def test_liveness(self, client):
        response = client.get("/_health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness(self, client):
        response = client.get("/_health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_rebuild_locks_healthy_when_none(self):
        check = HealthCheck.check_rebuild_locks()

        assert check["status"] == "healthy"
        assert check["active"] == []

    def test_stale_rebuild_lock_degrades(self, settings):
        settings.REBUILD_LOCK_STALE_SECONDS = 60
        BalanceRebuildLock.objects.create(
            scope="*",
            owner="crashed-worker",
            acquired_at=timezone.now() - timedelta(hours=2),
        )

        check = HealthCheck.check_rebuild_locks()

        assert check["status"] == "degraded"
        assert check["stale"] == 1
        assert check["active"][0]["owner"] == "crashed-worker"

    def test_metrics_expose_postings(self, client, post_journal, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "10.00")

        response = client.get("/_metrics/")

        assert response.status_code == 200
        assert b"fundledger_postings_total" in response.content
        assert b"fundledger_transactions" in response.content


# =============================================================================
# Logging
# =============================================================================

class TestLogging:
    def test_json_formatter_carries_ledger_context(self):
        record = logging.LogRecord("ledger.lifecycle", logging.INFO, __file__, 10, "Posted %s", (42,), None)
        record.transaction_id = 42
        record.amount = Decimal("10.00")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["message"] == "Posted 42"
        assert entry["logger"] == "ledger.lifecycle"
        assert entry["extra"] == {"transaction_id": 42, "amount": "10.00"}

    def test_posting_loggers_follow_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "DEBUG")

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["ledger"]["level"] == "DEBUG"
        assert config["loggers"]["balances"]["level"] == "DEBUG"
        assert config["loggers"]["budgets"]["level"] == "WARNING"
