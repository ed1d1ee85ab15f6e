# budgets/views.py
"""
Thin views over budgets/commands.py and the revision engine.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from budgets import commands
from budgets.models import Budget
from budgets.serializers import (
    BudgetActionSerializer,
    BudgetCreateSerializer,
    BudgetItemCreateSerializer,
    BudgetItemSerializer,
    BudgetRevisionSerializer,
    BudgetSerializer,
    RevisionCreateSerializer,
)
from ledger.exceptions import LedgerError
from ledger.services import build_budget_engine, build_repository
from ledger.views import error_response, user_id


def _budget_response(budget_id, status_code=status.HTTP_200_OK) -> Response:
    budget = Budget.objects.prefetch_related("items__distribution").get(pk=budget_id)
    return Response(BudgetSerializer(budget).data, status=status_code)


class BudgetListCreateView(APIView):
    """
    GET /api/budgets/?fiscal_year=&status=
    POST /api/budgets/ -> create a DRAFT budget
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Budget.objects.prefetch_related("items__distribution")
        if request.query_params.get("fiscal_year"):
            qs = qs.filter(fiscal_year_id=request.query_params["fiscal_year"])
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        return Response(BudgetSerializer(qs, many=True).data)

    def post(self, request):
        serializer = BudgetCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            budget = commands.create_budget(
                build_repository(),
                created_by=user_id(request),
                **serializer.validated_data,
            )
        except LedgerError as exc:
            return error_response(exc)
        return _budget_response(budget.pk, status.HTTP_201_CREATED)


class BudgetDetailView(APIView):
    """GET /api/budgets/<pk>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        try:
            build_repository().load_budget(pk)
        except LedgerError as exc:
            return error_response(exc)
        return _budget_response(pk)


class BudgetItemCreateView(APIView):
    """POST /api/budgets/<pk>/items/ -> add an item while drafting"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        serializer = BudgetItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            item = commands.add_budget_item(
                build_repository(),
                pk,
                created_by=user_id(request),
                **serializer.validated_data,
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(BudgetItemSerializer(item).data, status=status.HTTP_201_CREATED)


class BudgetActionView(APIView):
    """
    POST /api/budgets/<pk>/submit/
    POST /api/budgets/<pk>/approve/
    POST /api/budgets/<pk>/reject/   {"reason": "..."}
    POST /api/budgets/<pk>/reopen/
    POST /api/budgets/<pk>/activate/
    POST /api/budgets/<pk>/close/
    """
    permission_classes = [IsAuthenticated]
    operation = None

    def post(self, request, pk):
        serializer = BudgetActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        repository = build_repository()
        actor = user_id(request)

        try:
            if self.operation == "submit":
                commands.submit_budget(repository, pk, submitted_by=actor)
            elif self.operation == "approve":
                commands.approve_budget(repository, pk, approver_id=actor)
            elif self.operation == "reject":
                commands.reject_budget(repository, pk, serializer.validated_data["reason"], rejected_by=actor)
            elif self.operation == "reopen":
                commands.reopen_budget(repository, pk, reopened_by=actor)
            elif self.operation == "activate":
                commands.activate_budget(repository, pk, activated_by=actor)
            elif self.operation == "close":
                commands.close_budget(repository, pk, closed_by=actor)
            else:
                return Response({"detail": "Unknown action."}, status=status.HTTP_404_NOT_FOUND)
        except LedgerError as exc:
            return error_response(exc)
        return _budget_response(pk)


class BudgetRevisionListCreateView(APIView):
    """
    GET /api/budgets/<pk>/revisions/
    POST /api/budgets/<pk>/revisions/ -> apply a change-set
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        try:
            budget = build_repository().load_budget(pk)
        except LedgerError as exc:
            return error_response(exc)
        revisions = budget.revisions.prefetch_related("changes")
        return Response(BudgetRevisionSerializer(revisions, many=True).data)

    def post(self, request, pk):
        serializer = RevisionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            revision = build_budget_engine().apply_revision(
                pk,
                serializer.budget_changes(),
                description=serializer.validated_data["description"],
                reason=serializer.validated_data["reason"],
                created_by=user_id(request),
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(BudgetRevisionSerializer(revision).data, status=status.HTTP_201_CREATED)
