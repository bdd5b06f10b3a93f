"""Credit domain schemas - Pydantic models for balances and history"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class BalancesResponse(BaseModel):
    """Schema for the caller's credit balances"""

    credits: int
    unlockCredits: int
    createCredits: int
    subscriptionPlan: Optional[str] = None
    subscriptionExpiresAt: Optional[datetime] = None
    totalPenalties: int = 0


class CreditHistoryResponse(BaseModel):
    """Schema for one credit history entry"""

    id: int
    amount: int
    type: str
    creditType: str
    description: str
    relatedEntity: Optional[str] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True
