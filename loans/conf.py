"""Engine settings read from the ``LOANS`` dict in Django settings."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings

DEFAULTS: Dict[str, Any] = {
    "SCHEDULE_TOLERANCE": "0.00",
    "DEFAULT_INTERVAL_DAYS": 14,
    "PAGE_SIZE": 10,
    "EMPLOYEE_DIRECTORY": "loans.directory.TrustingEmployeeDirectory",
}


@dataclass(frozen=True)
class LoanSettings:
    schedule_tolerance: Decimal = Decimal("0.00")
    default_interval_days: int = 14
    page_size: int = 10
    employee_directory: str = DEFAULTS["EMPLOYEE_DIRECTORY"]

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "LoanSettings":
        merged = {**DEFAULTS, **values}
        return cls(
            schedule_tolerance=Decimal(str(merged["SCHEDULE_TOLERANCE"])),
            default_interval_days=int(merged["DEFAULT_INTERVAL_DAYS"]),
            page_size=int(merged["PAGE_SIZE"]),
            employee_directory=merged["EMPLOYEE_DIRECTORY"],
        )


def get_loan_settings() -> LoanSettings:
    # Read on every call so override_settings is honoured.
    return LoanSettings.from_dict(getattr(settings, "LOANS", {}))
