# budgets/urls.py
"""
URL configuration for the budgets API.

Endpoints:
- / - Budget list/create
- /<id>/ - Budget detail with items and distributions
- /<id>/items/ - Add items while drafting
- /<id>/<action>/ - Workflow actions
- /<id>/revisions/ - Revision history and new revisions
"""

from django.urls import path

from .views import (
    BudgetActionView,
    BudgetDetailView,
    BudgetItemCreateView,
    BudgetListCreateView,
    BudgetRevisionListCreateView,
)

app_name = "budgets"

urlpatterns = [
    path("", BudgetListCreateView.as_view(), name="budget-list"),
    path("<int:pk>/", BudgetDetailView.as_view(), name="budget-detail"),
    path("<int:pk>/items/", BudgetItemCreateView.as_view(), name="budget-items"),
    path("<int:pk>/revisions/", BudgetRevisionListCreateView.as_view(), name="budget-revisions"),
]

for _operation in ("submit", "approve", "reject", "reopen", "activate", "close"):
    urlpatterns.append(
        path(
            f"<int:pk>/{_operation}/",
            BudgetActionView.as_view(operation=_operation),
            name=f"budget-{_operation}",
        )
    )
