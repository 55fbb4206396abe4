"""Installment state machine.

``pending`` is the only state that accepts actions; ``paid`` and ``skipped``
are terminal. Each transition is a conditional UPDATE on ``status='pending'``
so a concurrent second writer gets ``InvalidTransition`` instead of applying
twice. Once no pending installment remains the owning loan is closed in the
same transaction.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone

from .context import RequestContext
from .exceptions import InstallmentNotFound, InvalidAction, InvalidSchedule, InvalidTransition
from .models import Installment, InstallmentSource, InstallmentStatus, Loan, LoanStatus

logger = logging.getLogger(__name__)

MARK_PAID = "mark_paid"
MARK_SKIPPED = "mark_skipped"
RESCHEDULE = "reschedule"

# action -> (required status, resulting status)
TRANSITIONS = {
    MARK_PAID: (InstallmentStatus.PENDING, InstallmentStatus.PAID),
    MARK_SKIPPED: (InstallmentStatus.PENDING, InstallmentStatus.SKIPPED),
    RESCHEDULE: (InstallmentStatus.PENDING, InstallmentStatus.PENDING),
}
ACTIONS = tuple(TRANSITIONS)


def _transition_fields(action: str, payload: Dict[str, Any], context: RequestContext) -> Dict[str, Any]:
    now = timezone.now()
    _, target = TRANSITIONS[action]
    fields: Dict[str, Any] = {"status": target, "updated_at": now}

    if action == MARK_PAID:
        if context.source not in InstallmentSource.values:
            raise InvalidAction(f"Unknown settlement source '{context.source}'.", field="source")
        fields["source"] = context.source
        fields["settled_at"] = now
    elif action == MARK_SKIPPED:
        fields["skipped_at"] = now
    elif action == RESCHEDULE:
        due_date: Optional[date] = payload.get("due_date")
        if due_date is None:
            raise InvalidSchedule("A new due date is required to reschedule.", field="due_date")
        # Past dates are accepted, administrators backdate on purpose.
        fields["due_date"] = due_date
    return fields


def close_loan_if_settled(loan: Loan, context: RequestContext) -> bool:
    """Close ``loan`` when none of its installments is pending.

    Expects ``loan`` to be locked by the caller. A loan already closed by an
    administrator is left untouched.
    """

    if loan.is_closed or not loan.all_installments_terminal():
        return False
    loan.status = LoanStatus.CLOSED
    loan.save(update_fields=["status", "updated_at"])
    logger.info("Loan %s auto-closed, all installments settled (actor=%s)", loan.pk, context.actor)
    return True


def _reject(installment_id: int, action: str, current: str, context: RequestContext) -> None:
    logger.warning(
        "Rejected %s on installment %s in state %s (actor=%s)",
        action,
        installment_id,
        current,
        context.actor,
    )
    raise InvalidTransition(
        f"Cannot apply {action} to installment {installment_id}: it is {current}."
    )


def apply_action(
    installment_id: int,
    action: str,
    context: RequestContext,
    payload: Optional[Dict[str, Any]] = None,
) -> Installment:
    if action not in TRANSITIONS:
        raise InvalidAction(
            f"Action must be one of {', '.join(ACTIONS)}.", field="action"
        )
    payload = payload or {}
    required, target = TRANSITIONS[action]

    with transaction.atomic():
        loan_id = (
            Installment.objects.filter(pk=installment_id).values_list("loan_id", flat=True).first()
        )
        if loan_id is None:
            raise InstallmentNotFound()
        loan = Loan.objects.select_for_update().get(pk=loan_id)

        # State is checked before the payload: a terminal installment rejects
        # every action the same way, whatever was sent with it.
        current = Installment.objects.values_list("status", flat=True).get(pk=installment_id)
        if current != required:
            _reject(installment_id, action, current, context)

        fields = _transition_fields(action, payload, context)
        updated = Installment.objects.filter(pk=installment_id, status=required).update(**fields)
        if not updated:
            current = Installment.objects.values_list("status", flat=True).get(pk=installment_id)
            _reject(installment_id, action, current, context)

        logger.info(
            "Installment %s of loan %s: %s -> %s via %s (actor=%s)",
            installment_id,
            loan_id,
            required,
            target,
            action,
            context.actor,
        )
        if target != InstallmentStatus.PENDING:
            close_loan_if_settled(loan, context)

    return Installment.objects.get(pk=installment_id)
