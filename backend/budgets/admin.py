# budgets/admin.py
"""Read-only admin for budgets. Changes go through budgets/commands.py and revisions."""

from django.contrib import admin

from ledger.admin import ReadOnlyInline, ReadOnlyModelAdmin

from .models import Budget, BudgetItem, BudgetPeriodDistribution, BudgetRevision, BudgetRevisionChange


class BudgetItemInline(ReadOnlyInline):
    model = BudgetItem
    fields = ["account", "fund", "name", "amount"]
    readonly_fields = fields


class DistributionInline(ReadOnlyInline):
    model = BudgetPeriodDistribution
    fields = ["period_number", "period_name", "start_date", "end_date", "amount"]
    readonly_fields = fields


class RevisionChangeInline(ReadOnlyInline):
    model = BudgetRevisionChange
    fields = ["change_type", "budget_item_id", "account", "previous_amount", "new_amount"]
    readonly_fields = fields


@admin.register(Budget)
class BudgetAdmin(ReadOnlyModelAdmin):
    list_display = ["name", "fiscal_year", "fund", "period_type", "status", "total_amount", "version"]
    list_filter = ["status", "period_type", "fiscal_year"]
    search_fields = ["name"]
    inlines = [BudgetItemInline]


@admin.register(BudgetItem)
class BudgetItemAdmin(ReadOnlyModelAdmin):
    list_display = ["budget", "account", "name", "amount"]
    inlines = [DistributionInline]


@admin.register(BudgetRevision)
class BudgetRevisionAdmin(ReadOnlyModelAdmin):
    list_display = ["budget", "revision_number", "previous_total_amount", "new_total_amount", "created_by", "created_at"]
    inlines = [RevisionChangeInline]
