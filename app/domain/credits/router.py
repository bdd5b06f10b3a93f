"""Credit router - balances and ledger history for the current user"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .ledger import CreditLedger
from .schemas import BalancesResponse, CreditHistoryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["Credits"])


def get_credit_ledger(db: Session = Depends(get_db)) -> CreditLedger:
    """Dependency injection for CreditLedger"""
    return CreditLedger(db)


@router.get("", response_model=BalancesResponse)
async def get_balances(
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    """Get the current user's credit balances"""
    return BalancesResponse(**ledger.get_balances(current_user.id))


@router.get("/history", response_model=list[CreditHistoryResponse])
async def get_credit_history(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    """Get the current user's credit history, newest first"""
    entries = ledger.get_history(current_user.id, limit)
    return [
        CreditHistoryResponse(
            id=e.id,
            amount=e.amount,
            type=e.type,
            creditType=e.credit_type,
            description=e.description,
            relatedEntity=e.related_entity,
            createdAt=e.created_at,
        )
        for e in entries
    ]
