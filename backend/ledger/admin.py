# ledger/admin.py
"""
Django admin configuration for ledger models.

The admin is for viewing only. Transactions, accounts and the calendar are
changed through the lifecycle manager and commands layer so that workflow
rules, balances and the audit trail stay consistent.
"""

from django.contrib import admin

from .models import (
    Account,
    AuditLogEntry,
    Customer,
    FiscalPeriod,
    FiscalYear,
    Fund,
    Payment,
    Transaction,
    TransactionEntry,
    Vendor,
)


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """
    Base admin class for models that must not be edited in the admin.

    To modify these models, use ledger/lifecycle.py or ledger/commands.py.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(admin.TabularInline):
    extra = 0

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class TransactionEntryInline(ReadOnlyInline):
    model = TransactionEntry
    fields = ["line_number", "account", "fund", "description", "debit_amount", "credit_amount"]
    readonly_fields = fields


class PaymentInline(ReadOnlyInline):
    model = Payment
    fields = ["date", "amount", "method", "reference", "created_by"]
    readonly_fields = fields


class FiscalPeriodInline(ReadOnlyInline):
    model = FiscalPeriod
    fields = ["number", "name", "start_date", "end_date", "status", "closed_at"]
    readonly_fields = fields


@admin.register(Account)
class AccountAdmin(ReadOnlyModelAdmin):
    list_display = ["number", "name", "account_type", "normal_balance", "is_active", "parent", "fund"]
    list_filter = ["account_type", "is_active", "is_cash_account"]
    search_fields = ["number", "name", "description"]
    ordering = ["number"]


@admin.register(Fund)
class FundAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "fund_type", "is_active"]
    list_filter = ["fund_type", "is_active"]
    search_fields = ["code", "name"]


@admin.register(Customer, Vendor)
class CounterpartyAdmin(admin.ModelAdmin):
    list_display = ["number", "name", "email", "is_active"]
    search_fields = ["number", "name", "email"]


@admin.register(FiscalYear)
class FiscalYearAdmin(ReadOnlyModelAdmin):
    list_display = ["name", "start_date", "end_date", "status", "is_current"]
    inlines = [FiscalPeriodInline]


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyModelAdmin):
    list_display = ["id", "transaction_type", "reference", "date", "status", "amount", "version"]
    list_filter = ["transaction_type", "status", "fiscal_period"]
    search_fields = ["reference", "description"]
    date_hierarchy = "date"
    inlines = [TransactionEntryInline, PaymentInline]


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(ReadOnlyModelAdmin):
    list_display = ["timestamp", "action", "entity_type", "entity_id", "user_id"]
    list_filter = ["action", "entity_type"]
    search_fields = ["entity_id", "user_id"]
