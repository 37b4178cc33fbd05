"""
Payments module interfaces.

The reconciler talks to the gateway and to storage only through these
protocols, so the Razorpay gateway can be swapped for the local one and
the Supabase store for the in-memory one.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from .models import GatewayOrder, Settlement, Subscription, Transaction


@runtime_checkable
class IPaymentGateway(Protocol):
    """Interface for the external payment gateway."""

    @property
    def key_id(self) -> str:
        """Public key the client checkout widget is opened with."""
        ...

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        """
        Create an order on the gateway.

        Raises:
            PaymentGatewayError: If the gateway rejects or doesn't answer
        """
        ...

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check a payment confirmation signature in constant time."""
        ...


@runtime_checkable
class IPaymentStore(Protocol):
    """
    Persistence for payment transactions and subscriptions.

    ``settle`` is the only way a transaction reaches SUCCESS, and it
    applies the status change, the ledger credit and the subscription
    record as one unit.
    """

    def create_transaction(self, transaction: Transaction) -> Transaction:
        ...

    def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        ...

    def list_for_user(self, user_id: str, limit: int = 50) -> list[Transaction]:
        """A user's transactions, most recent first."""
        ...

    def settle(self, order_id: str, payment_id: str, signature: str) -> Settlement:
        """
        Move a PENDING transaction to SUCCESS and grant its credits.

        Raises:
            TransactionNotFoundError: If the order doesn't exist
        """
        ...

    def mark_failed(self, order_id: str) -> Optional[Transaction]:
        """Move a PENDING transaction to FAILED. None if it wasn't PENDING."""
        ...

    def find_pending_before(self, older_than: datetime) -> list[Transaction]:
        ...

    def get_latest_subscription(self, user_id: str) -> Optional[Subscription]:
        ...
