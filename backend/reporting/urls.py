# reporting/urls.py
"""URL configuration for reports."""

from django.urls import path

from .views import AgingView, VarianceView

app_name = "reporting"

urlpatterns = [
    path("aging/receivables/", AgingView.as_view(side="receivables"), name="aging-receivables"),
    path("aging/payables/", AgingView.as_view(side="payables"), name="aging-payables"),
    path("variance/<int:budget_id>/", VarianceView.as_view(), name="variance"),
]
