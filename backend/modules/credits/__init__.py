"""
Credit ledger module.

Owns user credit balances. Every change is an immutable, idempotent
ledger entry; the balance never goes negative.

Public API:
- ICreditLedger: Interface for ledger operations
- CreditAccount: A user's balance
- LedgerEntry: A single balance change
- LedgerReason: JOB_DEBIT, JOB_REFUND or PAYMENT_CREDIT
"""

from .interfaces import ICreditLedger
from .models import (
    CreditAccount,
    LedgerEntry,
    LedgerReason,
    BalanceResponse,
    LedgerEntryListResponse,
)
from .exceptions import (
    CreditsError,
    InsufficientCreditsError,
    InvalidAmountError,
    IdempotencyConflictError,
)
from .service import CreditLedger, SupabaseCreditLedger

__all__ = [
    # Interfaces
    "ICreditLedger",
    # Models
    "CreditAccount",
    "LedgerEntry",
    "LedgerReason",
    "BalanceResponse",
    "LedgerEntryListResponse",
    # Exceptions
    "CreditsError",
    "InsufficientCreditsError",
    "InvalidAmountError",
    "IdempotencyConflictError",
    # Implementations
    "CreditLedger",
    "SupabaseCreditLedger",
]
