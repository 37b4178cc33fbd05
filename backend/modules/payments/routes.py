"""
Payment endpoints.

Plan purchase: create an order, open the gateway checkout on the client,
then post the signed confirmation to /verify.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.middleware.auth import get_current_user
from api.dependencies import get_payment_reconciler
from shared.models import AuthenticatedUser

from .exceptions import AuthenticityError, PaymentExpiredError
from .models import (
    CreateOrderRequest,
    OrderResponse,
    Plan,
    SubscriptionResponse,
    TransactionListResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from .service import PaymentReconciler

router = APIRouter()


@router.get("/plans", response_model=list[Plan])
async def list_plans(
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> list[Plan]:
    """
    List purchasable plans.
    """
    return reconciler.list_plans()


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> OrderResponse:
    """
    Create a payment order for a plan.

    The response carries what the client needs to open the checkout.
    """
    return await reconciler.create_order(user.id, request.plan)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> VerifyPaymentResponse:
    """
    Verify a checkout confirmation and add the plan's credits.

    Safe to call again for the same order; credits are only added once.
    """
    try:
        transaction = await reconciler.verify(
            user.id,
            request.order_id,
            request.payment_id,
            request.signature,
        )
    except AuthenticityError:
        raise HTTPException(status_code=400, detail="Payment verification failed")
    except PaymentExpiredError:
        raise HTTPException(status_code=410, detail="Payment order has expired")

    return VerifyPaymentResponse(
        order_id=transaction.order_id,
        plan=transaction.plan,
        credits=transaction.credits,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> TransactionListResponse:
    """
    List the current user's payment transactions, most recent first.
    """
    return TransactionListResponse(transactions=await reconciler.get_transactions(user.id))


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    user: AuthenticatedUser = Depends(get_current_user),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> SubscriptionResponse:
    """
    Get the current user's most recent plan purchase.
    """
    return SubscriptionResponse(
        subscription=await reconciler.get_latest_subscription(user.id)
    )
