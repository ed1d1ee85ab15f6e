# budgets/serializers.py
"""Serializers for the budgets API."""

from rest_framework import serializers

from budgets.models import (
    Budget,
    BudgetItem,
    BudgetPeriodDistribution,
    BudgetRevision,
    BudgetRevisionChange,
)
from budgets.revisions import BudgetChange


def money_field(**kwargs):
    return serializers.DecimalField(max_digits=18, decimal_places=2, **kwargs)


class DistributionSerializer(serializers.ModelSerializer):
    class Meta:
        model = BudgetPeriodDistribution
        fields = ["period_number", "period_name", "start_date", "end_date", "amount"]


class BudgetItemSerializer(serializers.ModelSerializer):
    distribution = DistributionSerializer(many=True, read_only=True)

    class Meta:
        model = BudgetItem
        fields = ["id", "account", "fund", "name", "description", "amount", "distribution"]
        read_only_fields = fields


class BudgetSerializer(serializers.ModelSerializer):
    items = BudgetItemSerializer(many=True, read_only=True)

    class Meta:
        model = Budget
        fields = [
            "id",
            "name",
            "description",
            "fiscal_year",
            "fund",
            "budget_type",
            "period_type",
            "status",
            "start_date",
            "end_date",
            "total_amount",
            "version",
            "notes",
            "created_by",
            "approved_by",
            "approved_at",
            "rejection_reason",
            "items",
        ]
        read_only_fields = fields


class BudgetCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    fiscal_year_id = serializers.IntegerField()
    period_type = serializers.ChoiceField(choices=Budget.PeriodType.choices, required=False, default=Budget.PeriodType.MONTHLY)
    budget_type = serializers.ChoiceField(choices=Budget.BudgetType.choices, required=False, default=Budget.BudgetType.ANNUAL)
    fund_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BudgetItemCreateSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    amount = money_field()
    period_amounts = serializers.ListField(child=money_field(), required=False, allow_null=True, default=None)
    name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    fund_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class BudgetActionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BudgetChangeSerializer(serializers.Serializer):
    change_type = serializers.ChoiceField(choices=BudgetRevisionChange.ChangeType.choices)
    budget_item_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    account_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    amount = money_field(required=False, allow_null=True, default=None)
    period_amounts = serializers.ListField(child=money_field(), required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    fund_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class RevisionCreateSerializer(serializers.Serializer):
    description = serializers.CharField(required=False, allow_blank=True, default="")
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    changes = BudgetChangeSerializer(many=True)

    def budget_changes(self) -> list[BudgetChange]:
        return [BudgetChange(**change) for change in self.validated_data["changes"]]


class RevisionChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = BudgetRevisionChange
        fields = ["change_type", "budget_item_id", "account", "description", "previous_amount", "new_amount"]


class BudgetRevisionSerializer(serializers.ModelSerializer):
    changes = RevisionChangeSerializer(many=True, read_only=True)

    class Meta:
        model = BudgetRevision
        fields = [
            "id",
            "revision_number",
            "description",
            "reason",
            "created_by",
            "created_at",
            "previous_total_amount",
            "new_total_amount",
            "changes",
        ]
        read_only_fields = fields
