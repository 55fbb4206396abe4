"""Exception hierarchy for the loan engine.

Every error is an ``APIException`` so views can let it propagate and DRF
renders it with the right status code. ``field`` names the offending input
when one is at fault.
"""

from typing import Any, Dict, Optional

from rest_framework import exceptions, status
from rest_framework.views import exception_handler


class LoanEngineError(exceptions.APIException):
    """Base exception for all loan engine errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The loan request could not be processed."
    default_code = "loan_error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or str(self.default_detail)
        self.field = field
        detail = {field: [self.message]} if field else self.message
        super().__init__(detail=detail, code=self.default_code)

    @property
    def code(self) -> str:
        return self.default_code


class InvalidAmount(LoanEngineError):
    """Raised when a money amount is zero, negative or malformed."""

    default_detail = "Amount must be greater than zero."
    default_code = "invalid_amount"


class InvalidCurrency(InvalidAmount):
    default_detail = "Unsupported currency."
    default_code = "invalid_currency"


class InvalidSchedule(LoanEngineError):
    """Raised when schedule parameters cannot produce installments."""

    default_detail = "Invalid installment schedule."
    default_code = "invalid_schedule"


class ImmutableField(LoanEngineError):
    default_detail = "This field cannot be changed after the loan is created."
    default_code = "immutable_field"


class InvalidTransition(LoanEngineError):
    """Raised when a lifecycle action hits an installment that is not pending."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Installment is not pending."
    default_code = "invalid_transition"


class InvalidAction(LoanEngineError):
    default_detail = "Unknown installment action."
    default_code = "invalid_action"


class ResourceNotFound(LoanEngineError, exceptions.NotFound):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class LoanNotFound(ResourceNotFound):
    default_detail = "Loan not found."


class InstallmentNotFound(ResourceNotFound):
    default_detail = "Installment not found."


class EmployeeNotFound(ResourceNotFound):
    default_detail = "Employee not found."


def _first_message(errors: Any) -> str:
    if isinstance(errors, dict):
        for value in errors.values():
            return _first_message(value)
        return "Invalid input."
    if isinstance(errors, (list, tuple)):
        return _first_message(errors[0]) if errors else "Invalid input."
    return str(errors)


def api_exception_handler(exc, context):
    """Render every API error as ``{"message", "code", "errors"}``."""

    response = exception_handler(exc, context)
    if response is None:
        return None

    errors: Dict[str, Any] = {}
    if isinstance(exc, LoanEngineError):
        message = exc.message
        code = exc.code
        if exc.field:
            errors = {exc.field: [exc.message]}
    elif isinstance(exc, exceptions.ValidationError):
        data = response.data
        errors = data if isinstance(data, dict) else {"non_field_errors": data}
        message = _first_message(errors)
        code = "invalid"
    else:
        detail = response.data.get("detail", "") if isinstance(response.data, dict) else response.data
        message = str(detail)
        code = getattr(exc, "default_code", "error")

    response.data = {"message": message, "code": code, "errors": errors}
    return response
