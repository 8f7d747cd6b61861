"""
Error taxonomy shared by every domain.

Services raise these; the handlers registered in main.py turn them into the
standard error envelope with the matching HTTP status.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    default_message = "Validation failed"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized access"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Access forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class PolicyViolation(AppError):
    status_code = 400
    code = "policy_violation"
    default_message = "Request violates a business rule"


class GatewayError(AppError):
    """External payment provider failure. Detail is logged, never returned."""

    status_code = 500
    code = "gateway_error"
    default_message = "Payment provider error"

    @property
    def public_message(self) -> str:
        return "Payment could not be processed, please try again later"


class GatewayRejected(GatewayError):
    """The provider refused the charge itself (4xx). Resending it will not help."""

    code = "gateway_rejected"
    default_message = "Payment provider rejected the charge"

    @property
    def public_message(self) -> str:
        return "Payment was declined, please use another payment method"


class InternalError(AppError):
    @property
    def public_message(self) -> str:
        return "Internal server error"


# Order lifecycle


class InvalidTransition(PolicyViolation):
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Order status cannot change from {current} to {target}")


class PriceMismatch(PolicyViolation):
    code = "price_mismatch"
    default_message = "Total price does not match the computed total"


class NoSchedule(PolicyViolation):
    code = "no_schedule"
    default_message = "Cleaner is not available on the requested day"


class OutsideWindow(PolicyViolation):
    code = "outside_window"
    default_message = "Requested time is outside the cleaner's schedule"


class DoubleBooked(Conflict):
    code = "double_booked"
    default_message = "Cleaner already has an order at that time"


# Payments


class OrderNotConfirmed(PolicyViolation):
    code = "order_not_confirmed"
    default_message = "Order has not been confirmed"


class PaymentAlreadyExists(Conflict):
    code = "payment_already_exists"
    default_message = "A payment already exists for this order"
