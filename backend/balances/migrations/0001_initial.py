# Generated manually

import decimal

import django.db.models.deletion
from django.db import migrations, models


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("ledger", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AccountBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("opening_balance", money()),
                ("current_balance", money(help_text="Net activity in the period (normal direction)")),
                ("closing_balance", money()),
                ("debit_total", money(help_text="Sum of debits posted in the period")),
                ("credit_total", money(help_text="Sum of credits posted in the period")),
                ("entry_count", models.IntegerField(default=0, help_text="Number of posted entries in the period")),
                ("version", models.PositiveIntegerField(default=0)),
                ("last_updated", models.DateTimeField(blank=True, null=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="balances", to="ledger.account")),
                ("fund", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger.fund")),
                ("fiscal_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger.fiscalyear")),
                ("fiscal_period", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="balances", to="ledger.fiscalperiod")),
            ],
            options={
                "verbose_name": "Account Balance",
                "verbose_name_plural": "Account Balances",
                "indexes": [
                    models.Index(fields=["fiscal_period"], name="balances_period_idx"),
                    models.Index(fields=["account", "fund"], name="balances_account_fund_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(fund__isnull=False),
                        fields=["account", "fiscal_period", "fund"],
                        name="uniq_balance_bucket_fund",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(fund__isnull=True),
                        fields=["account", "fiscal_period"],
                        name="uniq_balance_bucket_no_fund",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PostingApplication",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("APPLY", "Apply"), ("REVERSE", "Reverse")], max_length=10)),
                ("applied_at", models.DateTimeField()),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="posting_applications", to="ledger.transaction")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=["transaction", "kind"], name="uniq_posting_application")],
            },
        ),
        migrations.CreateModel(
            name="BalanceRebuildLock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope", models.CharField(max_length=64, unique=True)),
                ("owner", models.CharField(blank=True, default="", max_length=150)),
                ("acquired_at", models.DateTimeField()),
            ],
        ),
    ]
