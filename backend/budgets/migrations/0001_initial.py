# Generated manually

import decimal

import django.db.models.deletion
import django.utils.timezone
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
            name="Budget",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("budget_type", models.CharField(
                    choices=[
                        ("ANNUAL", "Annual"),
                        ("QUARTERLY", "Quarterly"),
                        ("MONTHLY", "Monthly"),
                        ("PROJECT", "Project"),
                        ("PROGRAM", "Program"),
                        ("DEPARTMENT", "Department"),
                    ],
                    default="ANNUAL",
                    max_length=20,
                )),
                ("period_type", models.CharField(
                    choices=[("MONTHLY", "Monthly"), ("QUARTERLY", "Quarterly"), ("ANNUAL", "Annual")],
                    default="MONTHLY",
                    max_length=10,
                )),
                ("status", models.CharField(
                    choices=[
                        ("DRAFT", "Draft"),
                        ("PENDING_APPROVAL", "Pending Approval"),
                        ("APPROVED", "Approved"),
                        ("ACTIVE", "Active"),
                        ("CLOSED", "Closed"),
                        ("REJECTED", "Rejected"),
                    ],
                    default="DRAFT",
                    max_length=20,
                )),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("total_amount", money()),
                ("version", models.PositiveIntegerField(default=1)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("approved_by", models.CharField(blank=True, default="", max_length=150)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("fiscal_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="budgets", to="ledger.fiscalyear")),
                ("fund", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="budgets", to="ledger.fund")),
            ],
            options={
                "ordering": ["-start_date", "name"],
                "indexes": [models.Index(fields=["fiscal_year", "status"], name="budgets_year_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="BudgetItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("amount", money()),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("budget", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="budgets.budget")),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="budget_items", to="ledger.account")),
                ("fund", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="budget_items", to="ledger.fund")),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="BudgetPeriodDistribution",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period_number", models.PositiveSmallIntegerField()),
                ("period_name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("amount", money()),
                ("budget_item", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="distribution", to="budgets.budgetitem")),
            ],
            options={
                "ordering": ["period_number"],
                "constraints": [models.UniqueConstraint(fields=["budget_item", "period_number"], name="uniq_budget_distribution_period")],
            },
        ),
        migrations.CreateModel(
            name="BudgetRevision",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("revision_number", models.PositiveIntegerField()),
                ("description", models.TextField(blank=True, default="")),
                ("reason", models.TextField(blank=True, default="")),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("previous_total_amount", money()),
                ("new_total_amount", money()),
                ("budget", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="revisions", to="budgets.budget")),
            ],
            options={
                "ordering": ["revision_number"],
                "constraints": [models.UniqueConstraint(fields=["budget", "revision_number"], name="uniq_budget_revision_number")],
            },
        ),
        migrations.CreateModel(
            name="BudgetRevisionChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("change_type", models.CharField(choices=[("ADD", "Add"), ("MODIFY", "Modify"), ("REMOVE", "Remove")], max_length=10)),
                ("budget_item_id", models.BigIntegerField(blank=True, null=True)),
                ("description", models.TextField(blank=True, default="")),
                ("previous_amount", money()),
                ("new_amount", money()),
                ("revision", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="changes", to="budgets.budgetrevision")),
                ("account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger.account")),
            ],
            options={"ordering": ["id"]},
        ),
    ]
