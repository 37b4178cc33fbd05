"""
Credit ledger interface.

Other modules should depend on ICreditLedger, not the concrete implementation.
The jobs module debits and refunds through it and the payments module
credits through it; nothing else changes a balance.
"""

from typing import Protocol, Optional, runtime_checkable

from .models import CreditAccount, LedgerEntry, LedgerReason


@runtime_checkable
class ICreditLedger(Protocol):
    """
    Interface for credit ledger operations.

    Both mutations are atomic with respect to the balance and idempotent
    per key, so callers may retry them blindly.
    """

    async def debit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Remove credits from a user's balance.

        Args:
            user_id: Authenticated user ID
            amount: Credits to remove (positive)
            idempotency_key: Unique key for this debit
            reference_id: Optional job ID

        Returns:
            The new entry, or the original entry for a replayed key

        Raises:
            InsufficientCreditsError: If the balance is below amount (no entry written)
            InvalidAmountError: If amount is not positive
            IdempotencyConflictError: If the key belongs to a different operation
        """
        ...

    async def credit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reason: LedgerReason = LedgerReason.PAYMENT_CREDIT,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Add credits to a user's balance.

        Args:
            user_id: Authenticated user ID
            amount: Credits to add (positive)
            idempotency_key: Unique key for this credit
            reason: PAYMENT_CREDIT or JOB_REFUND
            reference_id: Optional order ID or job ID

        Returns:
            The new entry, or the original entry for a replayed key
        """
        ...

    async def get_balance(self, user_id: str) -> CreditAccount:
        """Get a user's balance. Unknown users have a zero balance."""
        ...

    async def get_entries(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Get a user's ledger entries, most recent first."""
        ...

    async def get_entry(self, idempotency_key: str) -> Optional[LedgerEntry]:
        """Look up an entry by its idempotency key."""
        ...
