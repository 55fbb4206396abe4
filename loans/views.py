from rest_framework import generics, serializers, status
from rest_framework.response import Response

from . import services
from .context import RequestContext
from .models import LoanStatus
from .serializers import (
    DueInstallmentsQuerySerializer,
    InstallmentActionSerializer,
    InstallmentSerializer,
    LoanCreateSerializer,
    LoanDetailSerializer,
    LoanSerializer,
    LoanUpdateSerializer,
)


class LoanListCreateView(generics.ListCreateAPIView):
    serializer_class = LoanSerializer

    def get_serializer_class(self):
        if self.request.method == "POST":
            return LoanCreateSerializer
        return LoanSerializer

    def get_queryset(self):
        params = self.request.query_params
        employee_id = params.get("employee_id") or None
        if employee_id is not None:
            try:
                employee_id = int(employee_id)
            except ValueError as exc:
                raise serializers.ValidationError(
                    {"employee_id": ["A valid integer is required."]}
                ) from exc
        loan_status = params.get("status") or None
        if loan_status is not None and loan_status not in LoanStatus.values:
            raise serializers.ValidationError(
                {"status": [f"Status must be one of {', '.join(LoanStatus.values)}."]}
            )
        return services.list_loans(employee_id=employee_id, status=loan_status)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.create_loan(
            RequestContext.from_request(request), **serializer.validated_data
        )
        data = LoanDetailSerializer(result.loan).data
        data["schedule_total"] = str(result.schedule_total)
        data["schedule_mismatch"] = result.schedule_mismatch
        return Response(data, status=status.HTTP_201_CREATED)


class LoanDetailView(generics.GenericAPIView):
    serializer_class = LoanUpdateSerializer

    def get(self, request, loan_id: int, *args, **kwargs):
        loan = services.get_loan(loan_id)
        return Response(LoanDetailSerializer(loan).data)

    def patch(self, request, loan_id: int, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        loan = services.update_loan(
            RequestContext.from_request(request), loan_id, dict(serializer.validated_data)
        )
        return Response(LoanSerializer(loan).data)

    def delete(self, request, loan_id: int, *args, **kwargs):
        services.delete_loan(RequestContext.from_request(request), loan_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class LoanCloseView(generics.GenericAPIView):
    serializer_class = LoanSerializer

    def post(self, request, loan_id: int, *args, **kwargs):
        loan = services.close_loan(RequestContext.from_request(request), loan_id)
        return Response(LoanSerializer(loan).data)


class LoanInstallmentListView(generics.ListAPIView):
    serializer_class = InstallmentSerializer
    pagination_class = None

    def get_queryset(self):
        return services.list_installments(self.kwargs["loan_id"]).select_related("loan")


class InstallmentDetailView(generics.GenericAPIView):
    serializer_class = InstallmentActionSerializer

    def get(self, request, installment_id: int, *args, **kwargs):
        installment = services.get_installment(installment_id)
        return Response(InstallmentSerializer(installment).data)

    def patch(self, request, installment_id: int, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        installment = services.apply_installment_action(
            RequestContext.from_request(request, source=data["source"]),
            installment_id,
            data["action"],
            {"due_date": data.get("due_date")},
        )
        return Response(InstallmentSerializer(installment).data, status=status.HTTP_200_OK)


class DueInstallmentListView(generics.ListAPIView):
    """Installments a payroll run should withhold on ``run_date``."""

    serializer_class = InstallmentSerializer
    pagination_class = None

    def get_queryset(self):
        query = DueInstallmentsQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return services.list_due_installments(
            query.validated_data["run_date"],
            employee_id=query.validated_data.get("employee_id"),
        )
