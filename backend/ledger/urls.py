# ledger/urls.py
"""
URL configuration for the ledger API.

Endpoints:
- /accounts/ - Chart of Accounts
- /fiscal-years/, /periods/ - Fiscal calendar
- /transactions/ - Transactions with workflow actions and payments
- /balances/, /trial-balance/ - Balance queries
- /balances/rebuild/ - Rebuild or verify balances from the posted-entry log
"""

from django.urls import path

from .views import (
    AccountActivationView,
    AccountDetailView,
    AccountListCreateView,
    BalanceRebuildView,
    BalanceView,
    FiscalPeriodCloseView,
    FiscalYearCloseView,
    FiscalYearListCreateView,
    TransactionActionView,
    TransactionDetailView,
    TransactionEntriesView,
    TransactionListCreateView,
    TransactionPaymentsView,
    TrialBalanceView,
)

app_name = "ledger"

urlpatterns = [
    # ==========================================================================
    # Chart of Accounts
    # ==========================================================================
    path("accounts/", AccountListCreateView.as_view(), name="account-list"),
    path("accounts/<int:pk>/", AccountDetailView.as_view(), name="account-detail"),
    path(
        "accounts/<int:pk>/deactivate/",
        AccountActivationView.as_view(activate=False),
        name="account-deactivate",
    ),
    path(
        "accounts/<int:pk>/reactivate/",
        AccountActivationView.as_view(activate=True),
        name="account-reactivate",
    ),

    # ==========================================================================
    # Fiscal calendar
    # ==========================================================================
    path("fiscal-years/", FiscalYearListCreateView.as_view(), name="fiscal-year-list"),
    path("fiscal-years/<int:pk>/close/", FiscalYearCloseView.as_view(), name="fiscal-year-close"),
    path("periods/<int:pk>/close/", FiscalPeriodCloseView.as_view(), name="period-close"),

    # ==========================================================================
    # Transactions
    # ==========================================================================
    path("transactions/", TransactionListCreateView.as_view(), name="transaction-list"),
    path("transactions/<int:pk>/", TransactionDetailView.as_view(), name="transaction-detail"),
    path("transactions/<int:pk>/entries/", TransactionEntriesView.as_view(), name="transaction-entries"),
    path(
        "transactions/<int:pk>/submit/",
        TransactionActionView.as_view(operation="submit"),
        name="transaction-submit",
    ),
    path(
        "transactions/<int:pk>/approve/",
        TransactionActionView.as_view(operation="approve"),
        name="transaction-approve",
    ),
    path(
        "transactions/<int:pk>/return/",
        TransactionActionView.as_view(operation="return"),
        name="transaction-return",
    ),
    path(
        "transactions/<int:pk>/post/",
        TransactionActionView.as_view(operation="post"),
        name="transaction-post",
    ),
    path(
        "transactions/<int:pk>/void/",
        TransactionActionView.as_view(operation="void"),
        name="transaction-void",
    ),
    path("transactions/<int:pk>/payments/", TransactionPaymentsView.as_view(), name="transaction-payments"),

    # ==========================================================================
    # Balances
    # ==========================================================================
    path("balances/rebuild/", BalanceRebuildView.as_view(), name="balance-rebuild"),
    path(
        "balances/<int:account_id>/<int:period_id>/",
        BalanceView.as_view(),
        name="balance-detail",
    ),
    path("trial-balance/<int:period_id>/", TrialBalanceView.as_view(), name="trial-balance"),
]
