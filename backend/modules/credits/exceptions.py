"""
Credit ledger exceptions.

These exceptions are raised by the ledger and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from typing import Optional

from shared.exceptions import PhotoforgeError, ValidationError, ConflictError


class CreditsError(PhotoforgeError):
    """Base exception for ledger errors."""

    pass


class InsufficientCreditsError(CreditsError):
    """
    Raised when a debit would take a balance below zero.

    The UI should prompt the user to purchase more credits.
    """

    def __init__(
        self,
        required: int,
        available: int,
        user_id: Optional[str] = None,
    ):
        message = f"Insufficient credits. Required: {required}, available: {available}"
        super().__init__(
            message,
            code="INSUFFICIENT_CREDITS",
            details={
                "required": required,
                "available": available,
                "shortfall": required - available,
            },
        )
        if user_id:
            self.details["user_id"] = user_id


class InvalidAmountError(ValidationError):
    """Raised when a credit amount is not a positive integer."""

    def __init__(self, amount: int, reason: str):
        super().__init__(
            f"Invalid amount: {amount}. {reason}",
            code="INVALID_AMOUNT",
            details={"amount": amount, "reason": reason},
        )


class IdempotencyConflictError(ConflictError):
    """
    Raised when an idempotency key is reused for a different operation.

    A replay must carry the same user, reason and delta as the original.
    Anything else is a caller bug, never a retry.
    """

    def __init__(self, idempotency_key: str):
        super().__init__(
            f"Idempotency key reused with different parameters: {idempotency_key}",
            code="IDEMPOTENCY_CONFLICT",
            details={"idempotency_key": idempotency_key},
        )
