# reporting/views.py
"""
Report endpoints. Read-only; every number comes from the aging and
variance engines.
"""

from datetime import date

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.exceptions import LedgerError
from ledger.services import build_aging_engine, build_variance_engine
from ledger.views import error_response
from reporting.variance import PeriodSelector


def _parse_date(value):
    if not value:
        return None
    return date.fromisoformat(value)


def _parse_id(value):
    if not value:
        return None
    return int(value)


def _bad_request(message: str) -> Response:
    return Response({"detail": message}, status=status.HTTP_400_BAD_REQUEST)


class AgingView(APIView):
    """
    GET /api/reports/aging/receivables/?customer=&as_of=YYYY-MM-DD
    GET /api/reports/aging/payables/?vendor=&as_of=YYYY-MM-DD
    """
    permission_classes = [IsAuthenticated]
    side = "receivables"

    def get(self, request):
        try:
            as_of = _parse_date(request.query_params.get("as_of"))
            if self.side == "payables":
                counterparty = _parse_id(request.query_params.get("vendor"))
            else:
                counterparty = _parse_id(request.query_params.get("customer"))
        except ValueError:
            return _bad_request("Invalid as_of date or counterparty id.")

        engine = build_aging_engine()
        if self.side == "payables":
            report = engine.compute_payables_aging(counterparty, as_of)
        else:
            report = engine.compute_aging(counterparty, as_of)
        return Response(report.to_dict())


class VarianceView(APIView):
    """
    GET /api/reports/variance/<budget_id>/?mode=single&period=3
    GET /api/reports/variance/<budget_id>/?mode=ytd&as_of=YYYY-MM-DD
    GET /api/reports/variance/<budget_id>/?mode=full
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, budget_id):
        mode = request.query_params.get("mode", PeriodSelector.FULL_YEAR)
        try:
            if mode == PeriodSelector.SINGLE:
                selector = PeriodSelector.single(_parse_id(request.query_params.get("period")))
            elif mode == PeriodSelector.YEAR_TO_DATE:
                selector = PeriodSelector.year_to_date(_parse_date(request.query_params.get("as_of")))
            elif mode == PeriodSelector.FULL_YEAR:
                selector = PeriodSelector.full_year()
            else:
                return _bad_request(f"Unknown mode '{mode}'. Use single, ytd or full.")
        except ValueError:
            return _bad_request("Invalid period number or as_of date.")

        try:
            report = build_variance_engine().compute_variance(budget_id, selector)
        except LedgerError as exc:
            return error_response(exc)
        return Response(report.to_dict())
