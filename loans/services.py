import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.db.models import QuerySet

from . import lifecycle
from .conf import get_loan_settings
from .context import RequestContext
from .directory import get_employee_directory
from .exceptions import (
    EmployeeNotFound,
    ImmutableField,
    InstallmentNotFound,
    InvalidAmount,
    InvalidCurrency,
    LoanEngineError,
    LoanNotFound,
)
from .models import Currency, Installment, InstallmentStatus, Loan, LoanStatus
from .schedules import CustomInstallments, ScheduleRequest, quantize_money, resolve_schedule

logger = logging.getLogger(__name__)

MUTABLE_LOAN_FIELDS = ("notes", "status")
IMMUTABLE_LOAN_FIELDS = ("employee_id", "principal", "amount", "currency", "granted_at", "start_date")


@dataclass
class LoanCreation:
    loan: Loan
    schedule_total: Decimal
    schedule_mismatch: bool = False


def create_loan(
    context: RequestContext,
    *,
    employee_id: int,
    principal: Decimal,
    currency: str,
    granted_at: date,
    schedule: ScheduleRequest,
    start_date: Optional[date] = None,
    status: str = LoanStatus.ACTIVE,
    notes: str = "",
) -> LoanCreation:
    """Validate a loan, resolve its schedule and persist both atomically."""

    if principal is None or Decimal(principal) <= 0:
        raise InvalidAmount("Principal must be greater than zero.", field="principal")
    if currency not in Currency.values:
        raise InvalidCurrency(f"Currency must be one of {', '.join(Currency.values)}.", field="currency")
    if status not in LoanStatus.values:
        raise LoanEngineError(f"Status must be one of {', '.join(LoanStatus.values)}.", field="status")
    if not get_employee_directory().employee_exists(employee_id):
        raise EmployeeNotFound(f"Employee {employee_id} does not exist.", field="employee_id")

    principal = quantize_money(principal)
    start_date = start_date or granted_at
    resolved = resolve_schedule(schedule, principal, start_date)

    mismatch = isinstance(schedule, CustomInstallments) and resolved.differs_from(
        principal, get_loan_settings().schedule_tolerance
    )

    with transaction.atomic():
        loan = Loan.objects.create(
            employee_id=employee_id,
            principal=principal,
            currency=currency,
            granted_at=granted_at,
            start_date=start_date,
            status=status,
            notes=notes or "",
        )
        Installment.objects.bulk_create(
            [
                Installment(
                    loan=loan,
                    sequence=idx,
                    due_date=item.due_date,
                    amount=item.amount,
                    remarks=item.remarks,
                )
                for idx, item in enumerate(resolved.installments, start=1)
            ]
        )

    logger.info(
        "Created loan %s for employee %s: %s %s in %d installments (actor=%s)",
        loan.pk,
        employee_id,
        principal,
        currency,
        len(resolved.installments),
        context.actor,
    )
    if mismatch:
        logger.warning(
            "Loan %s custom schedule totals %s but principal is %s",
            loan.pk,
            resolved.total,
            principal,
        )
    return LoanCreation(loan=loan, schedule_total=resolved.total, schedule_mismatch=mismatch)


def list_loans(employee_id: Optional[int] = None, status: Optional[str] = None) -> QuerySet:
    queryset = Loan.objects.with_totals()
    if employee_id is not None:
        queryset = queryset.filter(employee_id=employee_id)
    if status:
        queryset = queryset.filter(status=status)
    return queryset


def get_loan(loan_id: int) -> Loan:
    try:
        return Loan.objects.get(pk=loan_id)
    except Loan.DoesNotExist as exc:
        raise LoanNotFound(f"Loan {loan_id} not found.") from exc


def update_loan(context: RequestContext, loan_id: int, patch: Dict[str, Any]) -> Loan:
    """Apply a partial update limited to ``notes`` and ``status``.

    Closing is always allowed, even with pending installments, and never
    touches the installments themselves.
    """

    for name in IMMUTABLE_LOAN_FIELDS:
        if name in patch:
            raise ImmutableField(field=name)
    unknown = set(patch) - set(MUTABLE_LOAN_FIELDS)
    if unknown:
        raise LoanEngineError(f"Unknown field {sorted(unknown)[0]}.", field=sorted(unknown)[0])
    if "status" in patch and patch["status"] not in LoanStatus.values:
        raise LoanEngineError(f"Status must be one of {', '.join(LoanStatus.values)}.", field="status")

    with transaction.atomic():
        try:
            loan = Loan.objects.select_for_update().get(pk=loan_id)
        except Loan.DoesNotExist as exc:
            raise LoanNotFound(f"Loan {loan_id} not found.") from exc
        for name, value in patch.items():
            setattr(loan, name, value if value is not None else "")
        loan.save(update_fields=[*patch, "updated_at"])

    logger.info("Updated loan %s fields %s (actor=%s)", loan_id, sorted(patch), context.actor)
    return loan


def close_loan(context: RequestContext, loan_id: int) -> Loan:
    return update_loan(context, loan_id, {"status": LoanStatus.CLOSED})


def delete_loan(context: RequestContext, loan_id: int) -> None:
    with transaction.atomic():
        loan = get_loan(loan_id)
        # Installments go with the loan through the FK cascade.
        deleted, _ = loan.delete()
    logger.info("Deleted loan %s and %d related rows (actor=%s)", loan_id, deleted - 1, context.actor)


def list_installments(loan_id: int) -> QuerySet:
    loan = get_loan(loan_id)
    return loan.installments.order_by("due_date", "sequence")


def get_installment(installment_id: int) -> Installment:
    try:
        return Installment.objects.get(pk=installment_id)
    except Installment.DoesNotExist as exc:
        raise InstallmentNotFound(f"Installment {installment_id} not found.") from exc


def apply_installment_action(
    context: RequestContext,
    installment_id: int,
    action: str,
    payload: Optional[Dict[str, Any]] = None,
) -> Installment:
    return lifecycle.apply_action(installment_id, action, context, payload)


def list_due_installments(run_date: date, employee_id: Optional[int] = None) -> List[Installment]:
    """Pending installments of active loans due on or before ``run_date``.

    This is what a payroll run withholds; it settles each one with
    ``mark_paid`` and ``source=payroll``.
    """

    queryset = Installment.objects.select_related("loan").filter(
        status=InstallmentStatus.PENDING,
        due_date__lte=run_date,
        loan__status=LoanStatus.ACTIVE,
    )
    if employee_id is not None:
        queryset = queryset.filter(loan__employee_id=employee_id)
    return list(queryset.order_by("due_date", "loan_id", "sequence"))
