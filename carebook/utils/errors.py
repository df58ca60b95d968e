from typing import Any, Optional
from fastapi import status


class CareBookError(Exception):
    """Base class for domain errors rendered by the API exception handler"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "Error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(CareBookError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NotFound"


class ConflictError(CareBookError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "Conflict"


class InvalidStateError(CareBookError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "InvalidState"


class ValidationError(CareBookError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "ValidationError"


class AuthenticationFailure(CareBookError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AuthenticationFailure"


class UpstreamFailure(CareBookError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "UpstreamFailure"


# Not found
class UserNotFound(NotFoundError):
    pass


class DoctorNotFound(NotFoundError):
    pass


class ScheduleNotFound(NotFoundError):
    pass


class BookingNotFound(NotFoundError):
    pass


class PaymentNotFound(NotFoundError):
    pass


class OrderNotFound(NotFoundError):
    pass


class ProductNotFound(NotFoundError):
    pass


# Conflicts
class SlotAlreadyBooked(ConflictError):
    pass


class DuplicateDoctorProfile(ConflictError):
    pass


class DuplicateUser(ConflictError):
    pass


class InsufficientStock(ConflictError):
    pass


# Invalid state
class DoctorUnavailable(InvalidStateError):
    pass


class ScheduleInactive(InvalidStateError):
    pass


class InvalidBookingState(InvalidStateError):
    pass


class InvalidPaymentState(InvalidStateError):
    pass


class InvalidOrderState(InvalidStateError):
    pass


# Validation
class ScheduleMismatch(ValidationError):
    pass


class DateDayMismatch(ValidationError):
    pass


class GatewayError(UpstreamFailure):
    """Raised when the payment gateway cannot be reached or rejects a call"""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.gateway_status_code = status_code
