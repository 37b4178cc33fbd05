"""
Credit ledger implementations.

Provides both in-memory (for tests and local development) and
Supabase-backed (for production) ledgers. Both enforce the same rules:
the balance never goes negative, each balance change is exactly one
entry, and an idempotency key is applied at most once.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client

from shared.memory import MemoryStore
from shared.repository import BaseRepository
from shared.retry import store_retry

from .exceptions import (
    IdempotencyConflictError,
    InsufficientCreditsError,
    InvalidAmountError,
)
from .models import CreditAccount, LedgerEntry, LedgerReason

logger = logging.getLogger(__name__)

ACCOUNTS_TABLE = "credit_accounts"
ENTRIES_TABLE = "ledger_entries"


def _validate_amount(amount: Any) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(amount, "Amount must be an integer")
    if amount <= 0:
        raise InvalidAmountError(amount, "Amount must be positive")


def _validate_credit_reason(reason: LedgerReason) -> None:
    if reason == LedgerReason.JOB_DEBIT:
        raise ValueError("Use debit() for JOB_DEBIT entries")


class CreditLedger:
    """
    Credit ledger backed by a MemoryStore.

    The read-modify-write of an account happens inside one store
    transaction, which holds the store lock, so concurrent callers on
    threads or on the event loop are serialized per store.
    """

    def __init__(self, store: MemoryStore):
        self._store = store

    def apply_entry(
        self,
        user_id: str,
        delta: int,
        reason: LedgerReason,
        idempotency_key: str,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Apply one ledger entry synchronously.

        Joins the caller's open store transaction if there is one, which is
        how the payment store settles an order and credits the account as
        one unit.
        """
        with self._store.transaction():
            existing: Optional[LedgerEntry] = self._store.get(ENTRIES_TABLE, idempotency_key)
            if existing is not None:
                if (
                    existing.user_id != user_id
                    or existing.reason != reason
                    or existing.delta != delta
                ):
                    raise IdempotencyConflictError(idempotency_key)
                logger.info(f"Ledger replay ignored: key={idempotency_key}")
                return existing

            account: CreditAccount = (
                self._store.get(ACCOUNTS_TABLE, user_id) or CreditAccount(user_id=user_id)
            )
            new_balance = account.balance + delta
            if new_balance < 0:
                raise InsufficientCreditsError(
                    required=-delta,
                    available=account.balance,
                    user_id=user_id,
                )

            now = datetime.now(timezone.utc)
            entry = LedgerEntry(
                id=str(uuid.uuid4()),
                user_id=user_id,
                delta=delta,
                reason=reason,
                idempotency_key=idempotency_key,
                balance_after=new_balance,
                reference_id=reference_id,
                created_at=now,
            )
            self._store.put(ENTRIES_TABLE, idempotency_key, entry)
            self._store.put(
                ACCOUNTS_TABLE,
                user_id,
                CreditAccount(user_id=user_id, balance=new_balance, updated_at=now),
            )

        logger.info(
            f"Ledger entry applied: user={user_id} delta={delta} "
            f"reason={reason.value} balance_after={new_balance}"
        )
        return entry

    async def debit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Remove credits from a user's balance."""
        _validate_amount(amount)
        return self.apply_entry(
            user_id,
            -amount,
            LedgerReason.JOB_DEBIT,
            idempotency_key,
            reference_id,
        )

    async def credit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reason: LedgerReason = LedgerReason.PAYMENT_CREDIT,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Add credits to a user's balance."""
        _validate_amount(amount)
        _validate_credit_reason(reason)
        return self.apply_entry(user_id, amount, reason, idempotency_key, reference_id)

    async def get_balance(self, user_id: str) -> CreditAccount:
        """Get a user's balance."""
        return self._store.get(ACCOUNTS_TABLE, user_id) or CreditAccount(user_id=user_id)

    async def get_entries(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Get a user's entries, most recent first."""
        entries = self._store.select(ENTRIES_TABLE, lambda e: e.user_id == user_id)
        entries.reverse()  # newest insert first among equal timestamps
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[offset : offset + limit]

    async def get_entry(self, idempotency_key: str) -> Optional[LedgerEntry]:
        """Look up an entry by its idempotency key."""
        return self._store.get(ENTRIES_TABLE, idempotency_key)


class SupabaseCreditLedger(BaseRepository[LedgerEntry]):
    """
    Credit ledger persisted in Supabase.

    Mutations go through the ``apply_ledger_entry`` Postgres function,
    which locks the account row, checks the idempotency key against a
    unique index and writes the entry and the new balance in one
    transaction. The function is keyed, so retrying it is safe.
    """

    def __init__(self, db: Client):
        super().__init__(db)

    @store_retry
    async def _apply(
        self,
        user_id: str,
        delta: int,
        reason: LedgerReason,
        idempotency_key: str,
        reference_id: Optional[str],
    ) -> LedgerEntry:
        result = self._execute(
            self._db.rpc("apply_ledger_entry", {
                "p_user_id": user_id,
                "p_delta": delta,
                "p_reason": reason.value,
                "p_idempotency_key": idempotency_key,
                "p_reference_id": reference_id,
            }),
            "apply_ledger_entry",
        )
        payload: dict[str, Any] = result.data or {}
        outcome = payload.get("outcome")

        if outcome == "insufficient":
            raise InsufficientCreditsError(
                required=-delta,
                available=int(payload.get("balance", 0)),
                user_id=user_id,
            )
        if outcome == "conflict":
            raise IdempotencyConflictError(idempotency_key)
        if outcome == "replayed":
            logger.info(f"Ledger replay ignored: key={idempotency_key}")
        elif outcome != "applied":
            raise RuntimeError(f"Unexpected apply_ledger_entry outcome: {outcome!r}")

        return self._map_to_entry(payload["entry"])

    async def debit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Remove credits from a user's balance."""
        _validate_amount(amount)
        return await self._apply(
            user_id, -amount, LedgerReason.JOB_DEBIT, idempotency_key, reference_id
        )

    async def credit(
        self,
        user_id: str,
        amount: int,
        idempotency_key: str,
        reason: LedgerReason = LedgerReason.PAYMENT_CREDIT,
        reference_id: Optional[str] = None,
    ) -> LedgerEntry:
        """Add credits to a user's balance."""
        _validate_amount(amount)
        _validate_credit_reason(reason)
        return await self._apply(user_id, amount, reason, idempotency_key, reference_id)

    @store_retry
    async def get_balance(self, user_id: str) -> CreditAccount:
        """Get a user's balance from the accounts table."""
        result = self._execute(
            self._db.table(ACCOUNTS_TABLE).select("*").eq("user_id", user_id),
            "credit_accounts.get",
        )
        if not result.data:
            return CreditAccount(user_id=user_id)
        row = result.data[0]
        return CreditAccount(
            user_id=row["user_id"],
            balance=int(row["balance"]),
            updated_at=row.get("updated_at"),
        )

    @store_retry
    async def get_entries(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Get a user's entries from the database, most recent first."""
        result = self._execute(
            self._db.table(ENTRIES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
            "ledger_entries.list",
        )
        return [self._map_to_entry(row) for row in result.data]

    @store_retry
    async def get_entry(self, idempotency_key: str) -> Optional[LedgerEntry]:
        """Look up an entry by its idempotency key."""
        result = self._execute(
            self._db.table(ENTRIES_TABLE).select("*").eq("idempotency_key", idempotency_key),
            "ledger_entries.get",
        )
        if not result.data:
            return None
        return self._map_to_entry(result.data[0])

    def _map_to_entry(self, row: dict[str, Any]) -> LedgerEntry:
        """Map database row to LedgerEntry model."""
        return LedgerEntry(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            delta=int(row["delta"]),
            reason=LedgerReason(row["reason"]),
            idempotency_key=row["idempotency_key"],
            balance_after=int(row["balance_after"]),
            reference_id=row.get("reference_id"),
            created_at=row["created_at"],
        )
