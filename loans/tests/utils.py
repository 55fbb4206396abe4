from datetime import date
from decimal import Decimal

from loans import services
from loans.context import RequestContext
from loans.directory import StaticEmployeeDirectory
from loans.schedules import NextPayment

EMPLOYEE_ID = 7
OTHER_EMPLOYEE_ID = 8


class KnownEmployees(StaticEmployeeDirectory):
    known_ids = {EMPLOYEE_ID, OTHER_EMPLOYEE_ID}


LOANS_SETTINGS = {
    "SCHEDULE_TOLERANCE": "0.00",
    "DEFAULT_INTERVAL_DAYS": 14,
    "PAGE_SIZE": 10,
    "EMPLOYEE_DIRECTORY": "loans.tests.utils.KnownEmployees",
}


def admin_context() -> RequestContext:
    return RequestContext(actor="admin")


def make_loan(schedule=None, **overrides):
    values = {
        "employee_id": EMPLOYEE_ID,
        "principal": Decimal("50000"),
        "currency": "CRC",
        "granted_at": date(2024, 1, 10),
        "schedule": schedule or NextPayment(interval_days=14),
    }
    values.update(overrides)
    return services.create_loan(admin_context(), **values).loan
