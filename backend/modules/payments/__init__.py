"""
Payments module.

Sells credit plans through a payment gateway and converts each verified
payment into ledger credits exactly once.

Public API:
- PaymentReconciler: create_order, verify, expire_abandoned and queries
- IPaymentGateway / IPaymentStore: Interfaces for the gateway and storage
- PLANS: Available credit plans
"""

from .interfaces import IPaymentGateway, IPaymentStore
from .models import (
    PlanType,
    Plan,
    PLANS,
    TransactionStatus,
    Transaction,
    Subscription,
    GatewayOrder,
    Settlement,
    SettlementOutcome,
    OrderResponse,
)
from .exceptions import (
    PaymentError,
    AuthenticityError,
    TransactionNotFoundError,
    UnknownPlanError,
    PaymentExpiredError,
    PaymentGatewayError,
)
from .gateway import RazorpayGateway, LocalGateway, compute_signature, get_payment_gateway
from .repository import InMemoryPaymentStore, SupabasePaymentStore
from .service import PaymentReconciler

__all__ = [
    # Interfaces
    "IPaymentGateway",
    "IPaymentStore",
    # Models
    "PlanType",
    "Plan",
    "PLANS",
    "TransactionStatus",
    "Transaction",
    "Subscription",
    "GatewayOrder",
    "Settlement",
    "SettlementOutcome",
    "OrderResponse",
    # Exceptions
    "PaymentError",
    "AuthenticityError",
    "TransactionNotFoundError",
    "UnknownPlanError",
    "PaymentExpiredError",
    "PaymentGatewayError",
    # Gateways
    "RazorpayGateway",
    "LocalGateway",
    "compute_signature",
    "get_payment_gateway",
    # Stores
    "InMemoryPaymentStore",
    "SupabasePaymentStore",
    # Service
    "PaymentReconciler",
]
