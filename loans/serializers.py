from collections.abc import Mapping

from django.utils import timezone
from rest_framework import serializers

from .conf import get_loan_settings
from .exceptions import ImmutableField
from .models import Currency, Installment, InstallmentSource, Loan, LoanStatus
from .schedules import MODES, ScheduledInstallment, build_schedule_request
from .services import IMMUTABLE_LOAN_FIELDS

DATE_INPUT_FORMATS = ["%Y-%m-%d", "%d-%m-%Y"]

# Keys used by the admin front end, mapped to their snake_case names.
SCHEDULE_ALIASES = {"intervalDays": "interval_days", "n": "count"}


class InstallmentSerializer(serializers.ModelSerializer):
    loan_id = serializers.IntegerField(read_only=True)
    loan_status = serializers.CharField(source="loan.status", read_only=True)

    class Meta:
        model = Installment
        fields = [
            "id",
            "loan_id",
            "loan_status",
            "sequence",
            "due_date",
            "amount",
            "status",
            "source",
            "remarks",
            "settled_at",
            "skipped_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LoanSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(
        source="principal", max_digits=12, decimal_places=2, read_only=True
    )
    installment_count = serializers.IntegerField(read_only=True)
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    outstanding_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Loan
        fields = [
            "id",
            "employee_id",
            "principal",
            "amount",
            "currency",
            "granted_at",
            "start_date",
            "status",
            "notes",
            "installment_count",
            "paid_amount",
            "outstanding_amount",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LoanDetailSerializer(LoanSerializer):
    installments = InstallmentSerializer(many=True, read_only=True)

    class Meta(LoanSerializer.Meta):
        fields = LoanSerializer.Meta.fields + ["installments"]
        read_only_fields = fields


class CustomInstallmentSerializer(serializers.Serializer):
    due_date = serializers.DateField(input_formats=DATE_INPUT_FORMATS)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")


class ScheduleSerializer(serializers.Serializer):
    """Parses the ``mode``-tagged schedule payload into a schedule request."""

    mode = serializers.ChoiceField(choices=MODES)
    interval_days = serializers.IntegerField(required=False, allow_null=True)
    count = serializers.IntegerField(required=False, allow_null=True)
    installments = CustomInstallmentSerializer(many=True, required=False)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            data = dict(data)
            for alias, name in SCHEDULE_ALIASES.items():
                if alias in data:
                    value = data.pop(alias)
                    data.setdefault(name, value)
        return super().to_internal_value(data)

    def validate(self, attrs):
        installments = [
            ScheduledInstallment(
                due_date=item["due_date"],
                amount=item["amount"],
                remarks=item.get("remarks") or "",
            )
            for item in attrs.get("installments", [])
        ]
        return build_schedule_request(
            attrs["mode"],
            interval_days=attrs.get("interval_days"),
            count=attrs.get("count"),
            installments=installments,
            default_interval_days=get_loan_settings().default_interval_days,
        )


class LoanCreateSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField(min_value=1)
    principal = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    # The admin form sends ``amount``; it stands in for a missing ``principal``.
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, write_only=True
    )
    currency = serializers.ChoiceField(choices=Currency.choices)
    granted_at = serializers.DateField(input_formats=DATE_INPUT_FORMATS)
    start_date = serializers.DateField(
        input_formats=DATE_INPUT_FORMATS, required=False, allow_null=True
    )
    status = serializers.ChoiceField(choices=LoanStatus.choices, default=LoanStatus.ACTIVE)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    schedule = ScheduleSerializer()

    def validate(self, attrs):
        amount = attrs.pop("amount", None)
        if attrs.get("principal") is None:
            if amount is None:
                raise serializers.ValidationError({"principal": ["This field is required."]})
            attrs["principal"] = amount
        attrs["notes"] = attrs.get("notes") or ""
        return attrs


class LoanUpdateSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=LoanStatus.choices, required=False)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            for name in IMMUTABLE_LOAN_FIELDS:
                if name in data:
                    raise ImmutableField(field=name)
        return super().to_internal_value(data)


class InstallmentActionSerializer(serializers.Serializer):
    action = serializers.CharField()
    due_date = serializers.DateField(
        input_formats=DATE_INPUT_FORMATS, required=False, allow_null=True
    )
    source = serializers.ChoiceField(
        choices=InstallmentSource.choices, default=InstallmentSource.MANUAL
    )


class DueInstallmentsQuerySerializer(serializers.Serializer):
    run_date = serializers.DateField(input_formats=DATE_INPUT_FORMATS, default=timezone.localdate)
    employee_id = serializers.IntegerField(min_value=1, required=False)
