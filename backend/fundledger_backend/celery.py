"""
Celery application configuration.

This is the main Celery app for the FundLedger backend.
It runs balance rebuilds and other maintenance jobs off the request path.

Usage:
    # Start worker
    celery -A fundledger_backend worker -l INFO
"""
import os

from celery import Celery

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fundledger_backend.settings")

# Create Celery app
app = Celery("fundledger_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
