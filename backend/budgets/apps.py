# budgets/apps.py
"""Budgets app configuration."""

from django.apps import AppConfig


class BudgetsConfig(AppConfig):
    """Budgets, line items, period distributions and revisions."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "budgets"
    verbose_name = "Budgets"
