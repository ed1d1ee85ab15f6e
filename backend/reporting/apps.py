# reporting/apps.py
"""Reporting app configuration."""

from django.apps import AppConfig


class ReportingConfig(AppConfig):
    """Receivables/payables aging and budget variance. No models of its own."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "reporting"
    verbose_name = "Reporting"
