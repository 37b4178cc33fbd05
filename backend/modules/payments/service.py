"""
Payment reconciliation.

Turns a verified gateway payment into credits exactly once. The client
posts back the signed confirmation from the checkout; the reconciler
checks the signature, then settles the order through the payment store,
which applies the status change, the ledger credit and the subscription
record as one unit.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from shared.config import Settings, get_settings
from shared.logging_config import security_logger

from .exceptions import (
    AuthenticityError,
    PaymentExpiredError,
    TransactionNotFoundError,
    UnknownPlanError,
)
from .interfaces import IPaymentGateway, IPaymentStore
from .models import (
    PLANS,
    OrderResponse,
    Plan,
    PlanType,
    SettlementOutcome,
    Subscription,
    Transaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


class PaymentReconciler:
    """Creates payment orders and settles them into ledger credits."""

    def __init__(
        self,
        store: IPaymentStore,
        gateway: IPaymentGateway,
        settings: Optional[Settings] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._settings = settings or get_settings()

    def list_plans(self) -> list[Plan]:
        return list(PLANS.values())

    def get_plan(self, plan: str) -> Plan:
        try:
            return PLANS[PlanType(plan)]
        except ValueError:
            raise UnknownPlanError(plan)

    async def create_order(self, user_id: str, plan: str) -> OrderResponse:
        """
        Start a plan purchase.

        Creates the order on the gateway and records a PENDING transaction.

        Raises:
            UnknownPlanError: If the plan doesn't exist
            PaymentGatewayError: If the gateway call fails
        """
        selected = self.get_plan(plan)
        currency = self._settings.payment_currency
        order = await self._gateway.create_order(
            selected.amount_minor,
            currency,
            receipt=f"rcpt_{uuid.uuid4().hex[:20]}",
            notes={"user_id": user_id, "plan": selected.plan.value},
        )

        transaction = self._store.create_transaction(Transaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            order_id=order.order_id,
            amount=selected.amount,
            currency=order.currency,
            plan=selected.plan,
            credits=selected.credits,
        ))
        logger.info(
            f"Payment order created: order={transaction.order_id} user={user_id} "
            f"plan={selected.plan.value}"
        )

        return OrderResponse(
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            key_id=self._gateway.key_id,
            plan=selected.plan,
            credits=selected.credits,
        )

    def _is_expired(self, transaction: Transaction, now: datetime) -> bool:
        age = now - transaction.created_at
        return age > timedelta(seconds=self._settings.payment_pending_timeout_seconds)

    async def verify(
        self,
        user_id: str,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> Transaction:
        """
        Verify a payment confirmation and grant the plan's credits.

        Verifying an order that is already settled returns it unchanged.

        Raises:
            TransactionNotFoundError: Unknown order, or another user's order
            AuthenticityError: Signature mismatch (nothing is changed)
            PaymentExpiredError: The order was abandoned and closed
        """
        transaction = self._store.get_by_order_id(order_id)
        if transaction is None or transaction.user_id != user_id:
            if transaction is not None:
                security_logger.warning(
                    f"User {user_id} tried to verify order {order_id} owned by another user"
                )
            raise TransactionNotFoundError(order_id)

        if not self._gateway.verify_signature(order_id, payment_id, signature):
            security_logger.warning(
                f"Payment signature mismatch: order={order_id} payment={payment_id} user={user_id}"
            )
            raise AuthenticityError(order_id)

        if transaction.status == TransactionStatus.SUCCESS:
            logger.info(f"Payment already settled: order={order_id}")
            return transaction
        if transaction.status == TransactionStatus.FAILED:
            raise PaymentExpiredError(order_id)
        if self._is_expired(transaction, datetime.now(timezone.utc)):
            self._store.mark_failed(order_id)
            raise PaymentExpiredError(order_id)

        settlement = self._store.settle(order_id, payment_id, signature)
        if settlement.outcome == SettlementOutcome.NOT_PENDING:
            raise PaymentExpiredError(order_id)
        return settlement.transaction

    async def expire_abandoned(self) -> int:
        """
        Close PENDING orders older than the payment timeout.

        Closed orders are never credited. Returns the number closed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(
            seconds=self._settings.payment_pending_timeout_seconds
        )
        expired = 0
        for transaction in self._store.find_pending_before(cutoff):
            if self._store.mark_failed(transaction.order_id) is not None:
                expired += 1
        if expired:
            logger.info(f"Expired {expired} abandoned payment orders")
        return expired

    async def get_transactions(self, user_id: str, limit: int = 50) -> list[Transaction]:
        return self._store.list_for_user(user_id, limit)

    async def get_latest_subscription(self, user_id: str) -> Optional[Subscription]:
        return self._store.get_latest_subscription(user_id)
