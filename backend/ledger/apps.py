# ledger/apps.py
"""Ledger app configuration."""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    """Chart of accounts, fiscal calendar and double-entry transactions."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "General Ledger"
