# balances/admin.py
"""
Admin for balance tables. Read-only: balances are derived from posted
entries and only the aggregator writes them.
"""

from django.contrib import admin

from ledger.admin import ReadOnlyModelAdmin

from .models import AccountBalance, BalanceRebuildLock, PostingApplication


@admin.register(AccountBalance)
class AccountBalanceAdmin(ReadOnlyModelAdmin):
    list_display = [
        "account", "fund", "fiscal_period",
        "opening_balance", "current_balance", "closing_balance",
        "entry_count", "last_updated",
    ]
    list_filter = ["fiscal_year", "fiscal_period"]
    search_fields = ["account__number", "account__name"]


@admin.register(PostingApplication)
class PostingApplicationAdmin(ReadOnlyModelAdmin):
    list_display = ["transaction", "kind", "applied_at"]
    list_filter = ["kind"]


@admin.register(BalanceRebuildLock)
class BalanceRebuildLockAdmin(ReadOnlyModelAdmin):
    list_display = ["scope", "owner", "acquired_at"]

    def has_delete_permission(self, request, obj=None):
        # Stale locks left by a crashed rebuild are cleared here.
        return True
