"""
Credit ledger data models.

Credits are whole units: one image generation costs one credit, a model
training run costs twenty. Every balance change is one LedgerEntry.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LedgerReason(str, Enum):
    """Why a ledger entry exists."""

    JOB_DEBIT = "job_debit"            # Credits spent on a job
    JOB_REFUND = "job_refund"          # Compensation for a failed job
    PAYMENT_CREDIT = "payment_credit"  # Top-up from a verified payment


class CreditAccount(BaseModel):
    """A user's credit balance."""

    model_config = {"frozen": True}

    user_id: str = Field(..., description="User ID")
    balance: int = Field(default=0, ge=0, description="Current credit balance")
    updated_at: Optional[datetime] = Field(
        None,
        description="Time of the last applied ledger entry",
    )


class LedgerEntry(BaseModel):
    """
    An immutable credit ledger entry.

    ``idempotency_key`` is unique across the ledger. Replaying an operation
    with the same key returns this entry instead of creating a new one.
    """

    model_config = {"frozen": True}

    id: str = Field(..., description="Entry ID (UUID)")
    user_id: str = Field(..., description="User ID")
    delta: int = Field(..., description="Signed change to the balance")
    reason: LedgerReason = Field(..., description="Entry reason")
    idempotency_key: str = Field(..., description="Unique key for replay safety")
    balance_after: int = Field(..., ge=0, description="Balance after this entry")
    reference_id: Optional[str] = Field(
        None,
        description="Job ID or payment order ID this entry belongs to",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Entry timestamp",
    )


class BalanceResponse(BaseModel):
    """API response for balance queries."""

    credits: int = Field(..., description="Current balance")
    last_updated: Optional[datetime] = Field(None, description="Last balance change")


class LedgerEntryListResponse(BaseModel):
    """API response for ledger history."""

    entries: list[LedgerEntry] = Field(..., description="Entries, most recent first")
    has_more: bool = Field(..., description="Whether more entries exist")
