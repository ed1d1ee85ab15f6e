# ledger/serializers.py
"""
Serializers for the ledger API.

Used for:
1. Input validation (turning request payloads into drafts and arguments)
2. Output formatting

The business rules live in ledger/lifecycle.py and ledger/commands.py.
"""

from rest_framework import serializers

from balances.models import AccountBalance
from ledger.models import (
    ZERO,
    Account,
    FiscalPeriod,
    FiscalYear,
    Fund,
    Payment,
    Transaction,
    TransactionEntry,
)
from ledger.types import EntryDraft, TransactionDraft


# =============================================================================
# Chart of Accounts & calendar
# =============================================================================

class AccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Account
        fields = [
            "id",
            "number",
            "name",
            "description",
            "account_type",
            "subtype",
            "normal_balance",
            "is_active",
            "is_cash_account",
            "parent",
            "fund",
        ]
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    number = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=255)
    account_type = serializers.ChoiceField(choices=Account.AccountType.choices)
    subtype = serializers.ChoiceField(choices=Account.SubType.choices, required=False, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    fund_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    is_cash_account = serializers.BooleanField(required=False, default=False)


class FundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Fund
        fields = ["id", "code", "name", "fund_type", "is_active"]


class FiscalPeriodSerializer(serializers.ModelSerializer):
    class Meta:
        model = FiscalPeriod
        fields = ["id", "number", "name", "start_date", "end_date", "status", "closed_at"]


class FiscalYearSerializer(serializers.ModelSerializer):
    periods = FiscalPeriodSerializer(many=True, read_only=True)

    class Meta:
        model = FiscalYear
        fields = ["id", "name", "start_date", "end_date", "status", "is_current", "closed_at", "periods"]


class FiscalYearCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True, default=None)
    period_count = serializers.IntegerField(required=False, default=12)
    status = serializers.ChoiceField(choices=FiscalYear.Status.choices, required=False, default=FiscalYear.Status.OPEN)
    is_current = serializers.BooleanField(required=False, default=False)


# =============================================================================
# Transactions
# =============================================================================

class EntryInputSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    fund_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    debit_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=ZERO)
    credit_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=ZERO)

    def to_draft(self) -> EntryDraft:
        return EntryDraft(**self.validated_data)


class EntriesSerializer(serializers.Serializer):
    entries = EntryInputSerializer(many=True)
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None)

    def entry_drafts(self) -> list[EntryDraft]:
        return [EntryDraft(**entry) for entry in self.validated_data["entries"]]


class TransactionCreateSerializer(serializers.Serializer):
    transaction_type = serializers.ChoiceField(
        choices=Transaction.TransactionType.choices,
        required=False,
        default=Transaction.TransactionType.JOURNAL_ENTRY,
    )
    date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    reference = serializers.CharField(required=False, allow_blank=True, default="", max_length=50)
    customer_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    vendor_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
    entries = EntryInputSerializer(many=True)

    def to_draft(self) -> TransactionDraft:
        data = dict(self.validated_data)
        entries = [EntryDraft(**entry) for entry in data.pop("entries")]
        return TransactionDraft(entries=entries, **data)


class TransactionEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = TransactionEntry
        fields = ["line_number", "account", "fund", "description", "debit_amount", "credit_amount"]


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "amount", "date", "method", "reference", "created_by", "created_at"]


class TransactionSerializer(serializers.ModelSerializer):
    entries = TransactionEntrySerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "transaction_type",
            "reference",
            "date",
            "description",
            "status",
            "version",
            "fiscal_year",
            "fiscal_period",
            "amount",
            "customer",
            "vendor",
            "due_date",
            "amount_due",
            "amount_paid",
            "created_by",
            "approved_by",
            "approved_at",
            "posted_by",
            "posted_at",
            "voided_by",
            "voided_at",
            "void_reason",
            "returned_reason",
            "entries",
            "payments",
        ]
        read_only_fields = fields


class VersionSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None)


class ReasonSerializer(VersionSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentCreateSerializer(VersionSerializer):
    amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    date = serializers.DateField(required=False, allow_null=True, default=None)
    method = serializers.ChoiceField(choices=Payment.Method.choices, required=False, default=Payment.Method.OTHER)
    reference = serializers.CharField(required=False, allow_blank=True, default="", max_length=100)


# =============================================================================
# Balances
# =============================================================================

class AccountBalanceSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccountBalance
        fields = [
            "account",
            "fund",
            "fiscal_period",
            "opening_balance",
            "current_balance",
            "closing_balance",
            "debit_total",
            "credit_total",
            "entry_count",
            "version",
            "last_updated",
        ]
        read_only_fields = fields


class RebuildRequestSerializer(serializers.Serializer):
    account_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    force = serializers.BooleanField(required=False, default=False)
    verify_only = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs["verify_only"] and attrs["force"]:
            raise serializers.ValidationError("verify_only and force cannot be combined.")
        return attrs
