"""
Payment store implementations.

- InMemoryPaymentStore: shares the MemoryStore with the credit ledger so a
  settlement and its credit commit or roll back together
- SupabasePaymentStore: settles through the ``settle_payment`` Postgres
  function, which does the same in one database transaction
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client

from modules.credits.models import LedgerReason
from modules.credits.service import CreditLedger
from shared.memory import MemoryStore
from shared.repository import BaseRepository
from shared.retry import store_retry

from .exceptions import TransactionNotFoundError
from .models import (
    PlanType,
    Settlement,
    SettlementOutcome,
    Subscription,
    Transaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

TRANSACTIONS_TABLE = "payment_transactions"
SUBSCRIPTIONS_TABLE = "subscriptions"


def _newest_first(rows: list, key) -> list:
    rows.reverse()
    rows.sort(key=key, reverse=True)
    return rows


class InMemoryPaymentStore:
    """Payment store backed by a MemoryStore."""

    def __init__(self, store: MemoryStore, ledger: CreditLedger):
        self._store = store
        self._ledger = ledger

    def create_transaction(self, transaction: Transaction) -> Transaction:
        with self._store.transaction():
            if not self._store.insert_if_absent(
                TRANSACTIONS_TABLE, transaction.order_id, transaction
            ):
                return self._store.get(TRANSACTIONS_TABLE, transaction.order_id)
        return transaction

    def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        return self._store.get(TRANSACTIONS_TABLE, order_id)

    def list_for_user(self, user_id: str, limit: int = 50) -> list[Transaction]:
        rows = self._store.select(TRANSACTIONS_TABLE, lambda t: t.user_id == user_id)
        return _newest_first(rows, lambda t: t.created_at)[:limit]

    def settle(self, order_id: str, payment_id: str, signature: str) -> Settlement:
        with self._store.transaction():
            transaction: Optional[Transaction] = self._store.get(TRANSACTIONS_TABLE, order_id)
            if transaction is None:
                raise TransactionNotFoundError(order_id)
            if transaction.status == TransactionStatus.SUCCESS:
                return Settlement(outcome=SettlementOutcome.ALREADY_SETTLED, transaction=transaction)
            if transaction.status != TransactionStatus.PENDING:
                return Settlement(outcome=SettlementOutcome.NOT_PENDING, transaction=transaction)

            now = datetime.now(timezone.utc)
            settled = transaction.model_copy(update={
                "status": TransactionStatus.SUCCESS,
                "payment_id": payment_id,
                "payment_proof": signature,
                "updated_at": now,
            })
            self._store.put(TRANSACTIONS_TABLE, order_id, settled)
            self._ledger.apply_entry(
                transaction.user_id,
                transaction.credits,
                LedgerReason.PAYMENT_CREDIT,
                order_id,
                reference_id=order_id,
            )
            subscription = Subscription(
                id=str(uuid.uuid4()),
                user_id=transaction.user_id,
                plan=transaction.plan,
                order_id=order_id,
                payment_id=payment_id,
                created_at=now,
            )
            self._store.put(SUBSCRIPTIONS_TABLE, subscription.id, subscription)

        logger.info(
            f"Payment settled: order={order_id} user={transaction.user_id} "
            f"credits={transaction.credits}"
        )
        return Settlement(outcome=SettlementOutcome.SETTLED, transaction=settled)

    def mark_failed(self, order_id: str) -> Optional[Transaction]:
        with self._store.transaction():
            transaction: Optional[Transaction] = self._store.get(TRANSACTIONS_TABLE, order_id)
            if transaction is None or transaction.status != TransactionStatus.PENDING:
                return None
            failed = transaction.model_copy(update={
                "status": TransactionStatus.FAILED,
                "updated_at": datetime.now(timezone.utc),
            })
            self._store.put(TRANSACTIONS_TABLE, order_id, failed)
        return failed

    def find_pending_before(self, older_than: datetime) -> list[Transaction]:
        return self._store.select(
            TRANSACTIONS_TABLE,
            lambda t: t.status == TransactionStatus.PENDING and t.created_at < older_than,
        )

    def get_latest_subscription(self, user_id: str) -> Optional[Subscription]:
        rows = self._store.select(SUBSCRIPTIONS_TABLE, lambda s: s.user_id == user_id)
        rows = _newest_first(rows, lambda s: s.created_at)
        return rows[0] if rows else None


class SupabasePaymentStore(BaseRepository[Transaction]):
    """
    Payment store persisted in Supabase.

    ``settle_payment`` locks the transaction row, flips PENDING to SUCCESS,
    writes the ledger entry keyed by the order id and appends the
    subscription, all in one database transaction.
    """

    def __init__(self, db: Client):
        super().__init__(db)

    @store_retry
    def create_transaction(self, transaction: Transaction) -> Transaction:
        result = self._execute(
            self._db.table(TRANSACTIONS_TABLE).upsert(
                transaction.model_dump(mode="json"),
                on_conflict="order_id",
                ignore_duplicates=True,
            ),
            "payment_transactions.create",
        )
        if result.data:
            return self._map_to_transaction(result.data[0])
        existing = self.get_by_order_id(transaction.order_id)
        if existing is None:
            raise TransactionNotFoundError(transaction.order_id)
        return existing

    @store_retry
    def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        result = self._execute(
            self._db.table(TRANSACTIONS_TABLE).select("*").eq("order_id", order_id),
            "payment_transactions.get",
        )
        if not result.data:
            return None
        return self._map_to_transaction(result.data[0])

    @store_retry
    def list_for_user(self, user_id: str, limit: int = 50) -> list[Transaction]:
        result = self._execute(
            self._db.table(TRANSACTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit),
            "payment_transactions.list",
        )
        return [self._map_to_transaction(row) for row in result.data]

    @store_retry
    def settle(self, order_id: str, payment_id: str, signature: str) -> Settlement:
        result = self._execute(
            self._db.rpc("settle_payment", {
                "p_order_id": order_id,
                "p_payment_id": payment_id,
                "p_signature": signature,
            }),
            "settle_payment",
        )
        payload: dict[str, Any] = result.data or {}
        outcome = payload.get("outcome")
        if outcome == "not_found":
            raise TransactionNotFoundError(order_id)
        return Settlement(
            outcome=SettlementOutcome(outcome),
            transaction=self._map_to_transaction(payload["transaction"]),
        )

    @store_retry
    def mark_failed(self, order_id: str) -> Optional[Transaction]:
        result = self._execute(
            self._db.table(TRANSACTIONS_TABLE)
            .update({
                "status": TransactionStatus.FAILED.value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
            .eq("order_id", order_id)
            .eq("status", TransactionStatus.PENDING.value),
            "payment_transactions.mark_failed",
        )
        if not result.data:
            return None
        return self._map_to_transaction(result.data[0])

    @store_retry
    def find_pending_before(self, older_than: datetime) -> list[Transaction]:
        result = self._execute(
            self._db.table(TRANSACTIONS_TABLE)
            .select("*")
            .eq("status", TransactionStatus.PENDING.value)
            .lt("created_at", older_than.isoformat())
            .limit(500),
            "payment_transactions.find_pending",
        )
        return [self._map_to_transaction(row) for row in result.data]

    @store_retry
    def get_latest_subscription(self, user_id: str) -> Optional[Subscription]:
        result = self._execute(
            self._db.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1),
            "subscriptions.latest",
        )
        if not result.data:
            return None
        row = result.data[0]
        return Subscription(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            plan=PlanType(row["plan"]),
            order_id=row["order_id"],
            payment_id=row["payment_id"],
            created_at=row["created_at"],
        )

    def _map_to_transaction(self, row: dict[str, Any]) -> Transaction:
        """Map database row to Transaction model."""
        return Transaction(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            order_id=row["order_id"],
            payment_id=row.get("payment_id"),
            amount=int(row["amount"]),
            currency=row.get("currency", "INR"),
            plan=PlanType(row["plan"]),
            credits=int(row["credits"]),
            status=TransactionStatus(row["status"]),
            payment_proof=row.get("payment_proof"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
