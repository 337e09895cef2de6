"""
This file contains custom, application-specific exceptions.

Every error raised by the billing services derives from BillingError and is
surfaced to the caller unmodified. The HTTP layer turns them into JSON
responses using `status_code` and `error`.
"""

class BillingError(Exception):
    """Base class for all billing domain errors."""
    status_code: int = 400
    error: str = "BillingError"

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__doc__ or self.error
        super().__init__(self.detail)


class InvalidAmount(BillingError):
    """Raised when an amount or academic-hours value is inconsistent with the operation."""
    status_code = 422
    error = "InvalidAmount"


class InsufficientData(BillingError):
    """Raised when a required identifier or field is missing."""
    status_code = 400
    error = "InsufficientData"


class StudentNotFound(BillingError):
    """Raised when a student ID is not found in the organization."""
    status_code = 404
    error = "StudentNotFound"


class ChargeNotFound(BillingError):
    """Raised when a tuition charge ID is not found in the organization."""
    status_code = 404
    error = "ChargeNotFound"


class SessionNotFound(BillingError):
    """Raised when a lesson session (or its lesson) is not found in the organization."""
    status_code = 404
    error = "SessionNotFound"


class PaymentNotFound(BillingError):
    """Raised when a payment ID is not found in the organization."""
    status_code = 404
    error = "PaymentNotFound"


class DiscountNotFound(BillingError):
    """Raised when a discount/surcharge rule or binding is not found."""
    status_code = 404
    error = "DiscountNotFound"


class PartialWriteError(BillingError):
    """Raised when a multi-step write failed and was rolled back as a unit."""
    status_code = 503
    error = "PartialWriteError"
