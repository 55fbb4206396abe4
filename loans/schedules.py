"""Installment schedule policies.

Turns a schedule request plus the loan principal and start date into the
concrete list of installments to create. Nothing here touches the database.
Amounts are split in integer minor units so the parts always add back up to
the principal.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidAmount, InvalidSchedule

CENT = Decimal("0.01")
DEFAULT_INTERVAL_DAYS = 14

MODE_NEXT = "next"
MODE_NTH = "nth"
MODE_CUSTOM = "custom"
MODES = (MODE_NEXT, MODE_NTH, MODE_CUSTOM)


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal) -> int:
    return int(quantize_money(value) / CENT)


def from_minor_units(units: int) -> Decimal:
    return quantize_money(Decimal(units) * CENT)


@dataclass(frozen=True)
class ScheduledInstallment:
    due_date: date
    amount: Decimal
    remarks: str = ""


@dataclass(frozen=True)
class NextPayment:
    """The whole principal is due one interval after the start date."""

    interval_days: int = DEFAULT_INTERVAL_DAYS


@dataclass(frozen=True)
class NthInstallments:
    """Principal split evenly over ``count`` installments."""

    count: int
    interval_days: int = DEFAULT_INTERVAL_DAYS


@dataclass(frozen=True)
class CustomInstallments:
    """Installments supplied verbatim by the caller."""

    installments: Tuple[ScheduledInstallment, ...] = field(default_factory=tuple)


ScheduleRequest = Union[NextPayment, NthInstallments, CustomInstallments]


@dataclass(frozen=True)
class ResolvedSchedule:
    installments: List[ScheduledInstallment]
    total: Decimal

    def differs_from(self, principal: Decimal, tolerance: Decimal = Decimal("0.00")) -> bool:
        return abs(self.total - quantize_money(principal)) > tolerance


def build_schedule_request(
    mode: str,
    interval_days: Optional[int] = None,
    count: Optional[int] = None,
    installments: Optional[Iterable[ScheduledInstallment]] = None,
    default_interval_days: int = DEFAULT_INTERVAL_DAYS,
) -> ScheduleRequest:
    """Build a schedule request from the loosely typed ``mode`` payload."""

    if interval_days is None:
        interval_days = default_interval_days

    if mode == MODE_NEXT:
        return NextPayment(interval_days=interval_days)
    if mode == MODE_NTH:
        if count is None:
            raise InvalidSchedule("Number of installments is required.", field="schedule.count")
        return NthInstallments(count=count, interval_days=interval_days)
    if mode == MODE_CUSTOM:
        return CustomInstallments(installments=tuple(installments or ()))

    raise InvalidSchedule(
        f"Schedule mode must be one of {', '.join(MODES)}.", field="schedule.mode"
    )


def _check_interval(interval_days: int) -> None:
    if interval_days is None or interval_days <= 0:
        raise InvalidSchedule("Interval must be a positive number of days.", field="schedule.interval_days")


def _due_date(start_date: date, interval_days: int, k: int) -> date:
    return start_date + relativedelta(days=interval_days * k)


def resolve_schedule(
    request: ScheduleRequest, principal: Decimal, start_date: date
) -> ResolvedSchedule:
    if principal is None or Decimal(principal) <= 0:
        raise InvalidAmount("Principal must be greater than zero.", field="principal")
    principal = quantize_money(principal)

    if isinstance(request, NextPayment):
        _check_interval(request.interval_days)
        items = [
            ScheduledInstallment(
                due_date=_due_date(start_date, request.interval_days, 1),
                amount=principal,
            )
        ]
    elif isinstance(request, NthInstallments):
        if request.count is None or request.count < 1:
            raise InvalidSchedule("At least one installment is required.", field="schedule.count")
        _check_interval(request.interval_days)
        base, remainder = divmod(to_minor_units(principal), request.count)
        if base == 0:
            raise InvalidSchedule(
                f"Principal {principal} is too small to split into {request.count} installments.",
                field="schedule.count",
            )
        items = []
        for k in range(1, request.count + 1):
            units = base + remainder if k == request.count else base
            items.append(
                ScheduledInstallment(
                    due_date=_due_date(start_date, request.interval_days, k),
                    amount=from_minor_units(units),
                )
            )
    elif isinstance(request, CustomInstallments):
        if not request.installments:
            raise InvalidSchedule("Custom schedule needs at least one installment.", field="schedule.installments")
        items = []
        for idx, item in enumerate(request.installments):
            # Sub-cent amounts round to zero, so check after rounding.
            amount = quantize_money(item.amount) if item.amount is not None else None
            if amount is None or amount <= 0:
                raise InvalidSchedule(
                    "Installment amount must be greater than zero.",
                    field=f"schedule.installments[{idx}].amount",
                )
            items.append(
                ScheduledInstallment(
                    due_date=item.due_date,
                    amount=amount,
                    remarks=item.remarks or "",
                )
            )
    else:
        raise TypeError(f"Unsupported schedule request: {type(request).__name__}")

    total = sum((item.amount for item in items), Decimal("0.00"))
    return ResolvedSchedule(installments=items, total=total)
