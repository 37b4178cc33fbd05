"""
Credit balance endpoints.

Read-only views over the ledger. Balances only change through job debits,
job refunds and verified payments.
"""

from fastapi import APIRouter, Depends, Query

from api.middleware.auth import get_current_user
from api.dependencies import get_credit_ledger
from shared.models import AuthenticatedUser

from .interfaces import ICreditLedger
from .models import BalanceResponse, LedgerEntryListResponse

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: ICreditLedger = Depends(get_credit_ledger),
) -> BalanceResponse:
    """
    Get the current user's credit balance.

    Users without any ledger activity have zero credits.
    """
    account = await ledger.get_balance(user.id)
    return BalanceResponse(credits=account.balance, last_updated=account.updated_at)


@router.get("/entries", response_model=LedgerEntryListResponse)
async def list_entries(
    limit: int = Query(default=50, ge=1, le=100, description="Maximum entries to return"),
    offset: int = Query(default=0, ge=0, description="Entries to skip"),
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: ICreditLedger = Depends(get_credit_ledger),
) -> LedgerEntryListResponse:
    """
    List the current user's ledger entries, most recent first.
    """
    entries = await ledger.get_entries(user.id, limit=limit + 1, offset=offset)
    return LedgerEntryListResponse(
        entries=entries[:limit],
        has_more=len(entries) > limit,
    )
