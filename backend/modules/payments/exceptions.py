"""
Payments module exceptions.
"""

from typing import Optional

from shared.exceptions import (
    PhotoforgeError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
)


class PaymentError(PhotoforgeError):
    """Base exception for payment errors."""

    pass


class AuthenticityError(PaymentError):
    """
    Raised when a payment confirmation's signature does not verify.

    Nothing is changed. The attempt is logged as a security event.
    """

    def __init__(self, order_id: str):
        super().__init__(
            "Payment verification failed",
            code="PAYMENT_AUTHENTICITY_FAILED",
            details={"order_id": order_id},
        )


class TransactionNotFoundError(NotFoundError):
    """Raised when an order doesn't exist or belongs to another user."""

    def __init__(self, order_id: str):
        super().__init__(
            f"Transaction not found: {order_id}",
            code="TRANSACTION_NOT_FOUND",
            details={"order_id": order_id},
        )


class UnknownPlanError(ValidationError):
    """Raised when a plan name is not recognized."""

    def __init__(self, plan: str):
        super().__init__(
            f"Unknown plan: {plan}",
            code="UNKNOWN_PLAN",
            details={"plan": plan},
        )


class PaymentExpiredError(PaymentError):
    """Raised when verifying an order that was abandoned and closed."""

    def __init__(self, order_id: str):
        super().__init__(
            f"Payment order has expired: {order_id}",
            code="PAYMENT_EXPIRED",
            details={"order_id": order_id},
        )


class PaymentGatewayError(ExternalServiceError):
    """Raised when the payment gateway call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message,
            service="payment_gateway",
            code="PAYMENT_GATEWAY_ERROR",
            details={"status_code": status_code},
        )
