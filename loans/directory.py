"""Employee directory collaborator.

The engine only asks whether an employee exists. The implementation is chosen
by dotted path in ``LOANS["EMPLOYEE_DIRECTORY"]``.
"""

from typing import Iterable, Optional

from django.utils.module_loading import import_string

from .conf import get_loan_settings


class EmployeeDirectory:
    def employee_exists(self, employee_id: int) -> bool:
        raise NotImplementedError


class TrustingEmployeeDirectory(EmployeeDirectory):
    """Accepts any positive id; the HR backend owns the real lookup."""

    def employee_exists(self, employee_id: int) -> bool:
        return employee_id is not None and int(employee_id) > 0


class StaticEmployeeDirectory(EmployeeDirectory):
    known_ids: Iterable[int] = ()

    def __init__(self, known_ids: Optional[Iterable[int]] = None):
        self.known_ids = frozenset(known_ids if known_ids is not None else self.known_ids)

    def employee_exists(self, employee_id: int) -> bool:
        return employee_id in self.known_ids


def get_employee_directory() -> EmployeeDirectory:
    return import_string(get_loan_settings().employee_directory)()
