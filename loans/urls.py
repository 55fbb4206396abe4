from django.urls import path

from .views import (
    DueInstallmentListView,
    InstallmentDetailView,
    LoanCloseView,
    LoanDetailView,
    LoanInstallmentListView,
    LoanListCreateView,
)

urlpatterns = [
    path("loans/", LoanListCreateView.as_view(), name="loan-list"),
    path("loans/<int:loan_id>/", LoanDetailView.as_view(), name="loan-detail"),
    path("loans/<int:loan_id>/close/", LoanCloseView.as_view(), name="loan-close"),
    path(
        "loans/<int:loan_id>/payments/",
        LoanInstallmentListView.as_view(),
        name="loan-installments",
    ),
    path("loan-payments/due/", DueInstallmentListView.as_view(), name="installments-due"),
    path(
        "loan-payments/<int:installment_id>/",
        InstallmentDetailView.as_view(),
        name="installment-detail",
    ),
]
