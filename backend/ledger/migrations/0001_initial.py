# Generated manually

import decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


ACCOUNT_TYPES = [
    ("ASSET", "Asset"),
    ("LIABILITY", "Liability"),
    ("EQUITY", "Equity"),
    ("REVENUE", "Revenue"),
    ("EXPENSE", "Expense"),
]

ACCOUNT_SUBTYPES = [
    ("CURRENT_ASSET", "Current Asset"),
    ("FIXED_ASSET", "Fixed Asset"),
    ("OTHER_ASSET", "Other Asset"),
    ("CURRENT_LIABILITY", "Current Liability"),
    ("LONG_TERM_LIABILITY", "Long-Term Liability"),
    ("RETAINED_EARNINGS", "Retained Earnings"),
    ("FUND_BALANCE", "Fund Balance"),
    ("OPERATING_REVENUE", "Operating Revenue"),
    ("NON_OPERATING_REVENUE", "Non-Operating Revenue"),
    ("GRANT_REVENUE", "Grant Revenue"),
    ("OPERATING_EXPENSE", "Operating Expense"),
    ("ADMINISTRATIVE_EXPENSE", "Administrative Expense"),
    ("PROGRAM_EXPENSE", "Program Expense"),
]

CALENDAR_STATUSES = [("PENDING", "Pending"), ("OPEN", "Open"), ("CLOSED", "Closed")]

TRANSACTION_STATUSES = [
    ("DRAFT", "Draft"),
    ("PENDING_APPROVAL", "Pending Approval"),
    ("APPROVED", "Approved"),
    ("POSTED", "Posted"),
    ("PARTIALLY_PAID", "Partially Paid"),
    ("PAID", "Paid"),
    ("VOIDED", "Voided"),
]

AUDIT_ACTIONS = [
    ("CREATE", "Create"),
    ("UPDATE", "Update"),
    ("SUBMIT", "Submit"),
    ("APPROVE", "Approve"),
    ("REJECT", "Reject"),
    ("RETURN", "Return to Draft"),
    ("POST", "Post"),
    ("VOID", "Void"),
    ("PAYMENT", "Payment"),
    ("CLOSE", "Close"),
    ("REVISION", "Revision"),
    ("ACTIVATE", "Activate"),
    ("DEACTIVATE", "Deactivate"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Fund",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("fund_type", models.CharField(
                    choices=[
                        ("GENERAL", "General"),
                        ("RESTRICTED", "Restricted"),
                        ("TEMPORARILY_RESTRICTED", "Temporarily Restricted"),
                        ("PERMANENTLY_RESTRICTED", "Permanently Restricted"),
                        ("BOARD_DESIGNATED", "Board Designated"),
                    ],
                    default="GENERAL",
                    max_length=30,
                )),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["code"]},
        ),
        migrations.CreateModel(
            name="FiscalYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=CALENDAR_STATUSES, default="PENDING", max_length=10)),
                ("is_current", models.BooleanField(default=False)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={"ordering": ["start_date"]},
        ),
        migrations.CreateModel(
            name="FiscalPeriod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.PositiveSmallIntegerField()),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=CALENDAR_STATUSES, default="OPEN", max_length=10)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("fiscal_year", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="periods", to="ledger.fiscalyear")),
            ],
            options={
                "ordering": ["start_date"],
                "indexes": [models.Index(fields=["start_date", "end_date"], name="ledger_period_dates_idx")],
                "constraints": [models.UniqueConstraint(fields=["fiscal_year", "number"], name="uniq_fiscal_period_number")],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("account_type", models.CharField(choices=ACCOUNT_TYPES, max_length=20)),
                ("subtype", models.CharField(blank=True, choices=ACCOUNT_SUBTYPES, default="", max_length=30)),
                ("normal_balance", models.CharField(choices=[("DEBIT", "Debit"), ("CREDIT", "Credit")], max_length=6)),
                ("is_active", models.BooleanField(default=True)),
                ("is_cash_account", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="ledger.account")),
                ("fund", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="accounts", to="ledger.fund")),
            ],
            options={
                "ordering": ["number"],
                "indexes": [models.Index(fields=["account_type", "is_active"], name="ledger_account_type_idx")],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(
                    choices=[("JOURNAL_ENTRY", "Journal Entry"), ("BILL", "Bill"), ("INVOICE", "Invoice")],
                    default="JOURNAL_ENTRY",
                    max_length=20,
                )),
                ("reference", models.CharField(blank=True, default="", max_length=50)),
                ("date", models.DateField()),
                ("description", models.TextField(blank=True, default="")),
                ("status", models.CharField(choices=TRANSACTION_STATUSES, default="DRAFT", max_length=20)),
                ("version", models.PositiveIntegerField(default=1)),
                ("amount", money(help_text="Total debits")),
                ("due_date", models.DateField(blank=True, null=True)),
                ("amount_due", money()),
                ("amount_paid", money()),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("approved_by", models.CharField(blank=True, default="", max_length=150)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("posted_by", models.CharField(blank=True, default="", max_length=150)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("voided_by", models.CharField(blank=True, default="", max_length=150)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("returned_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("fiscal_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="ledger.fiscalyear")),
                ("fiscal_period", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="ledger.fiscalperiod")),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="ledger.customer")),
                ("vendor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="bills", to="ledger.vendor")),
            ],
            options={
                "ordering": ["date", "id"],
                "indexes": [
                    models.Index(fields=["status"], name="ledger_txn_status_idx"),
                    models.Index(fields=["transaction_type", "status"], name="ledger_txn_type_status_idx"),
                    models.Index(fields=["fiscal_period", "status"], name="ledger_txn_period_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("debit_amount", money()),
                ("credit_amount", money()),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entries", to="ledger.transaction")),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="entries", to="ledger.account")),
                ("fund", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="entries", to="ledger.fund")),
            ],
            options={
                "ordering": ["line_number"],
                "constraints": [
                    models.UniqueConstraint(fields=["transaction", "line_number"], name="uniq_entry_line_number"),
                    models.CheckConstraint(
                        condition=(
                            models.Q(debit_amount__gt=0, credit_amount=0)
                            | models.Q(debit_amount=0, credit_amount__gt=0)
                        ),
                        name="entry_one_sided",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", money()),
                ("date", models.DateField()),
                ("method", models.CharField(
                    choices=[
                        ("CHECK", "Check"),
                        ("ACH", "ACH"),
                        ("WIRE", "Wire"),
                        ("CREDIT_CARD", "Credit Card"),
                        ("CASH", "Cash"),
                        ("OTHER", "Other"),
                    ],
                    default="OTHER",
                    max_length=20,
                )),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger.transaction")),
            ],
            options={
                "ordering": ["date", "id"],
                "constraints": [models.CheckConstraint(condition=models.Q(amount__gt=0), name="payment_positive")],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=AUDIT_ACTIONS, max_length=20)),
                ("entity_type", models.CharField(max_length=50)),
                ("entity_id", models.CharField(max_length=64)),
                ("user_id", models.CharField(blank=True, default="", max_length=150)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("previous_state", models.JSONField(blank=True, null=True)),
                ("new_state", models.JSONField(blank=True, null=True)),
            ],
            options={
                "ordering": ["timestamp", "id"],
                "indexes": [models.Index(fields=["entity_type", "entity_id"], name="ledger_audit_entity_idx")],
            },
        ),
    ]
