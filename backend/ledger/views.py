# ledger/views.py
"""
Thin views that delegate to the lifecycle manager and the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Lifecycle/commands handle: business rules, validation, audit.

Views never call .save() on ledger models.
"""

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from balances.tasks import rebuild_balances, verify_balances
from ledger import commands
from ledger.exceptions import (
    ConcurrentModificationError,
    ConsistencyError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from ledger.models import Account, FiscalYear, Transaction
from ledger.serializers import (
    AccountBalanceSerializer,
    AccountCreateSerializer,
    AccountSerializer,
    EntriesSerializer,
    FiscalPeriodSerializer,
    FiscalYearCreateSerializer,
    FiscalYearSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    ReasonSerializer,
    RebuildRequestSerializer,
    TransactionCreateSerializer,
    TransactionSerializer,
)
from ledger.services import build_aggregator, build_lifecycle_manager, build_repository


ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
    ConsistencyError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    NotFoundError: status.HTTP_404_NOT_FOUND,
}


def error_response(exc: LedgerError) -> Response:
    """Map a ledger error to an HTTP response."""
    body = {"detail": exc.message, "error": exc.__class__.__name__}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    if isinstance(exc, ConsistencyError):
        body["mismatches"] = exc.mismatches
    return Response(body, status=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST))


def user_id(request) -> str:
    return str(request.user.pk) if request.user and request.user.is_authenticated else ""


def _transaction_response(txn, status_code=status.HTTP_200_OK) -> Response:
    txn = build_repository().load_transaction(txn.pk)
    return Response(TransactionSerializer(txn).data, status=status_code)


# =============================================================================
# Chart of Accounts
# =============================================================================

class AccountListCreateView(APIView):
    """
    GET /api/ledger/accounts/ -> list accounts
    POST /api/ledger/accounts/ -> create account
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        accounts = Account.objects.select_related("parent").order_by("number")
        if request.query_params.get("active") == "true":
            accounts = accounts.filter(is_active=True)
        return Response(AccountSerializer(accounts, many=True).data)

    def post(self, request):
        serializer = AccountCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            account = commands.create_account(
                build_repository(),
                created_by=user_id(request),
                **serializer.validated_data,
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(AccountSerializer(account).data, status=status.HTTP_201_CREATED)


class AccountDetailView(APIView):
    """
    GET /api/ledger/accounts/<pk>/
    DELETE /api/ledger/accounts/<pk>/ -> only accounts never used in an entry
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        try:
            account = build_repository().load_account(pk)
        except LedgerError as exc:
            return error_response(exc)
        return Response(AccountSerializer(account).data)

    def delete(self, request, pk):
        try:
            commands.delete_account(build_repository(), pk, deleted_by=user_id(request))
        except LedgerError as exc:
            return error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AccountActivationView(APIView):
    """
    POST /api/ledger/accounts/<pk>/deactivate/
    POST /api/ledger/accounts/<pk>/reactivate/
    """
    permission_classes = [IsAuthenticated]
    activate = False

    def post(self, request, pk):
        command = commands.reactivate_account if self.activate else commands.deactivate_account
        try:
            account = command(build_repository(), pk, updated_by=user_id(request))
        except LedgerError as exc:
            return error_response(exc)
        return Response(AccountSerializer(account).data)


# =============================================================================
# Fiscal calendar
# =============================================================================

class FiscalYearListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        years = FiscalYear.objects.prefetch_related("periods").order_by("start_date")
        return Response(FiscalYearSerializer(years, many=True).data)

    def post(self, request):
        serializer = FiscalYearCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            year = commands.create_fiscal_year(
                build_repository(),
                created_by=user_id(request),
                **serializer.validated_data,
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(FiscalYearSerializer(year).data, status=status.HTTP_201_CREATED)


class FiscalYearCloseView(APIView):
    """POST /api/ledger/fiscal-years/<pk>/close/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        try:
            year = commands.close_fiscal_year(build_repository(), pk, closed_by=user_id(request))
        except LedgerError as exc:
            return error_response(exc)
        return Response(FiscalYearSerializer(year).data)


class FiscalPeriodCloseView(APIView):
    """POST /api/ledger/periods/<pk>/close/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        repository = build_repository()
        try:
            period = commands.close_period(
                repository,
                pk,
                closed_by=user_id(request),
                aggregator=build_aggregator(repository),
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(FiscalPeriodSerializer(period).data)


# =============================================================================
# Transactions
# =============================================================================

class TransactionListCreateView(APIView):
    """
    GET /api/ledger/transactions/?status=&type= -> list
    POST /api/ledger/transactions/ -> create a DRAFT
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Transaction.objects.prefetch_related("entries", "payments").order_by("-date", "-id")
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        if request.query_params.get("type"):
            qs = qs.filter(transaction_type=request.query_params["type"])
        return Response(TransactionSerializer(qs, many=True).data)

    def post(self, request):
        serializer = TransactionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            txn = build_lifecycle_manager().create_draft(
                serializer.to_draft(),
                created_by=user_id(request),
            )
        except LedgerError as exc:
            return error_response(exc)
        return _transaction_response(txn, status.HTTP_201_CREATED)


class TransactionDetailView(APIView):
    """GET /api/ledger/transactions/<pk>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        try:
            txn = build_repository().load_transaction(pk)
        except LedgerError as exc:
            return error_response(exc)
        return Response(TransactionSerializer(txn).data)


class TransactionEntriesView(APIView):
    """PUT /api/ledger/transactions/<pk>/entries/ -> replace a draft's lines"""
    permission_classes = [IsAuthenticated]

    def put(self, request, pk):
        serializer = EntriesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            txn = build_lifecycle_manager().replace_entries(
                pk,
                serializer.entry_drafts(),
                updated_by=user_id(request),
                expected_version=serializer.validated_data["expected_version"],
            )
        except LedgerError as exc:
            return error_response(exc)
        return _transaction_response(txn)


class TransactionActionView(APIView):
    """
    POST /api/ledger/transactions/<pk>/submit/
    POST /api/ledger/transactions/<pk>/approve/
    POST /api/ledger/transactions/<pk>/return/
    POST /api/ledger/transactions/<pk>/post/
    POST /api/ledger/transactions/<pk>/void/

    Body may carry expected_version; return and void take a reason.
    """
    permission_classes = [IsAuthenticated]
    operation = None

    def post(self, request, pk):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        manager = build_lifecycle_manager()
        actor = user_id(request)

        try:
            if self.operation == "submit":
                txn = manager.submit_for_approval(pk, actor, data["expected_version"])
            elif self.operation == "approve":
                txn = manager.approve(pk, actor, data["expected_version"])
            elif self.operation == "return":
                txn = manager.return_to_draft(pk, data["reason"], actor, data["expected_version"])
            elif self.operation == "post":
                txn = manager.post(pk, actor, data["expected_version"])
            elif self.operation == "void":
                txn = manager.void(pk, data["reason"], actor, data["expected_version"])
            else:
                return Response({"detail": "Unknown action."}, status=status.HTTP_404_NOT_FOUND)
        except LedgerError as exc:
            return error_response(exc)
        return _transaction_response(txn)


class TransactionPaymentsView(APIView):
    """
    GET /api/ledger/transactions/<pk>/payments/
    POST /api/ledger/transactions/<pk>/payments/ -> record a payment
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        try:
            txn = build_repository().load_transaction(pk)
        except LedgerError as exc:
            return error_response(exc)
        return Response(PaymentSerializer(txn.payments.all(), many=True).data)

    def post(self, request, pk):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            payment = build_lifecycle_manager().record_payment(
                pk,
                data["amount"],
                payment_date=data["date"],
                method=data["method"],
                reference=data["reference"],
                recorded_by=user_id(request),
                expected_version=data["expected_version"],
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Balances
# =============================================================================

class BalanceView(APIView):
    """GET /api/ledger/balances/<account_id>/<period_id>/?fund=<id>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, account_id, period_id):
        fund = request.query_params.get("fund")
        if fund and not fund.isdigit():
            return Response({"detail": "fund must be an id."}, status=status.HTTP_400_BAD_REQUEST)
        fund_id = int(fund) if fund else None
        repository = build_repository()
        aggregator = build_aggregator(repository)
        try:
            repository.load_account(account_id)
            repository.load_fiscal_period(period_id)
            balance = aggregator.get_balance(account_id, period_id, fund_id)
            running = aggregator.get_running_balance(account_id, period_id, fund_id)
        except LedgerError as exc:
            return error_response(exc)
        data = AccountBalanceSerializer(balance).data
        data["running_balance"] = str(running)
        return Response(data)


class TrialBalanceView(APIView):
    """GET /api/ledger/trial-balance/<period_id>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, period_id):
        try:
            report = build_aggregator().trial_balance(period_id)
        except LedgerError as exc:
            return error_response(exc)
        return Response(report)



class BalanceRebuildView(APIView):
    """
    POST /api/ledger/balances/rebuild/ {"account_id": 42, "force": false}
    POST /api/ledger/balances/rebuild/ {"verify_only": true}

    Runs inline when LEDGER_SYNC_REBUILD is set, otherwise queues the Celery
    task and answers 202 with its id.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = RebuildRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["verify_only"]:
            task, kwargs = verify_balances, {"account_id": data["account_id"]}
        else:
            task, kwargs = rebuild_balances, {"account_id": data["account_id"], "force": data["force"]}

        if not settings.LEDGER_SYNC_REBUILD:
            result = task.delay(**kwargs)
            return Response({"task_id": result.id, "status": "queued"}, status=status.HTTP_202_ACCEPTED)

        outcome = task(**kwargs)
        if outcome["status"] == "locked":
            return Response(outcome, status=status.HTTP_409_CONFLICT)
        return Response(outcome)
