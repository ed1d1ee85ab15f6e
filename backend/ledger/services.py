# ledger/services.py
"""
Service wiring.

Each factory builds a fresh service with its collaborators. Nothing here
is cached at module level; views, tasks and tests ask for what they need.
"""

from django.conf import settings

from ledger.repository import LedgerRepository
from ledger.validators import LedgerEntryValidator


def build_repository() -> LedgerRepository:
    return LedgerRepository()


def build_validator(repository=None) -> LedgerEntryValidator:
    return LedgerEntryValidator(
        repository or build_repository(),
        tolerance=getattr(settings, "LEDGER_BALANCE_TOLERANCE", None),
    )


def build_aggregator(repository=None):
    from balances.aggregator import BalanceAggregator

    return BalanceAggregator(repository or build_repository())


def build_lifecycle_manager(repository=None, aggregator=None, validator=None):
    from ledger.lifecycle import TransactionLifecycleManager

    repository = repository or build_repository()
    return TransactionLifecycleManager(
        repository,
        aggregator or build_aggregator(repository),
        validator=validator or build_validator(repository),
    )


def build_budget_engine(repository=None):
    from budgets.revisions import BudgetRevisionEngine

    return BudgetRevisionEngine(repository or build_repository())


def build_aging_engine(repository=None):
    from reporting.aging import AgingEngine

    return AgingEngine(repository or build_repository())


def build_variance_engine(repository=None, aggregator=None):
    from reporting.variance import VarianceEngine

    repository = repository or build_repository()
    return VarianceEngine(repository, aggregator or build_aggregator(repository))
