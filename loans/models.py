from decimal import Decimal

from django.db import models
from django.db.models import Count, Q, Sum


class Currency(models.TextChoices):
    LOCAL = "CRC", "Costa Rican colón"
    FOREIGN = "USD", "US dollar"


class LoanStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CLOSED = "closed", "Closed"


class InstallmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    SKIPPED = "skipped", "Skipped"


class InstallmentSource(models.TextChoices):
    PAYROLL = "payroll", "Payroll"
    MANUAL = "manual", "Manual"


TERMINAL_STATUSES = (InstallmentStatus.PAID, InstallmentStatus.SKIPPED)


class LoanQuerySet(models.QuerySet):
    def with_totals(self):
        """Annotate installment count and paid/pending sums in one query."""

        return self.annotate(
            installment_total=Count("installments"),
            paid_total=Sum("installments__amount", filter=Q(installments__status=InstallmentStatus.PAID)),
            pending_total=Sum(
                "installments__amount", filter=Q(installments__status=InstallmentStatus.PENDING)
            ),
        )


class Loan(models.Model):
    employee_id = models.PositiveIntegerField(db_index=True)
    principal = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.LOCAL)
    granted_at = models.DateField()
    start_date = models.DateField()
    status = models.CharField(
        max_length=10, choices=LoanStatus.choices, default=LoanStatus.ACTIVE, db_index=True
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LoanQuerySet.as_manager()

    class Meta:
        ordering = ["-granted_at", "-id"]

    def __str__(self) -> str:
        return f"Loan {self.pk} for employee {self.employee_id}"

    @property
    def is_closed(self) -> bool:
        return self.status == LoanStatus.CLOSED

    def all_installments_terminal(self) -> bool:
        return not self.installments.exclude(status__in=TERMINAL_STATUSES).exists()

    def _sum_installments(self, status: str, annotation: str) -> Decimal:
        if annotation in self.__dict__:
            total = self.__dict__[annotation]
        else:
            total = self.installments.filter(status=status).aggregate(total=Sum("amount"))["total"]
        return total or Decimal("0.00")

    @property
    def installment_count(self) -> int:
        if "installment_total" in self.__dict__:
            return self.installment_total
        return self.installments.count()

    @property
    def paid_amount(self) -> Decimal:
        return self._sum_installments(InstallmentStatus.PAID, "paid_total")

    @property
    def outstanding_amount(self) -> Decimal:
        return self._sum_installments(InstallmentStatus.PENDING, "pending_total")


class Installment(models.Model):
    loan = models.ForeignKey(Loan, related_name="installments", on_delete=models.CASCADE)
    sequence = models.PositiveIntegerField()
    due_date = models.DateField(db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=10,
        choices=InstallmentStatus.choices,
        default=InstallmentStatus.PENDING,
        db_index=True,
    )
    source = models.CharField(
        max_length=10, choices=InstallmentSource.choices, default=InstallmentSource.MANUAL
    )
    remarks = models.TextField(blank=True, default="")
    settled_at = models.DateTimeField(null=True, blank=True)
    skipped_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_date", "sequence"]
        unique_together = ("loan", "sequence")

    def __str__(self) -> str:
        return f"Installment {self.sequence} for Loan {self.loan_id}"
