"""Deal domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_choice
from .policy import DEAL_STATUSES


class DealCreate(BaseModel):
    """Schema for internal deal creation"""

    postId: int
    unlockerId: int
    authorId: int


class DealStatusUpdate(BaseModel):
    """Schema for a participant or admin status change"""

    status: str
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, DEAL_STATUSES, "status")


class DealCloseRequest(BaseModel):
    reason: Optional[str] = None


class PartySummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    companyName: Optional[str] = None
    designation: Optional[str] = None


class PostSummary(BaseModel):
    id: int
    title: str
    requirement: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None


class StatusHistoryEntry(BaseModel):
    status: str
    updatedBy: Optional[int] = None
    updatedAt: datetime
    notes: Optional[str] = None
    isAdminOverride: bool = False
    initiator: str


class ConfirmationSlot(BaseModel):
    confirmed: bool
    confirmedAt: Optional[datetime] = None


class DealResponse(BaseModel):
    """Schema for deal response"""

    id: int
    dealId: str
    status: str
    post: Optional[PostSummary] = None
    unlocker: Optional[PartySummary] = None
    author: Optional[PartySummary] = None
    maskedContacts: dict[str, Any]
    confirmations: dict[str, dict[str, ConfirmationSlot]]
    creditAdjustments: dict[str, int]
    statusHistory: list[StatusHistoryEntry] = []
    lastReminderSent: Optional[datetime] = None
    expiresAt: datetime
    autoCloseAt: Optional[datetime] = None
    isActive: bool
    chronicNonUpdate: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class DealStatusResponse(BaseModel):
    """Same shape whether the change was realized or is awaiting the other party"""

    success: bool = True
    message: str
    waitingForConfirmation: bool = False
    waitingFor: Optional[str] = None
    deal: DealResponse


class DealListResponse(BaseModel):
    success: bool = True
    deals: list[DealResponse]


class PaginatedDealsResponse(BaseModel):
    success: bool = True
    deals: list[DealResponse]
    total: int
    page: int
    pages: int


class DealStatsResponse(BaseModel):
    success: bool = True
    stats: dict[str, int]
    avgResponseTime: float


class MonthlyDealCount(BaseModel):
    year: int
    month: int
    count: int
    successful: int


class DealAnalytics(BaseModel):
    statusCounts: dict[str, int]
    recentDeals: list[DealResponse]
    totalDeals: int
    successRate: float
    failRate: float
    completionRate: float
    chronicNonUpdateCount: int
    totalPenaltiesApplied: int
    avgPenaltyPerDeal: float
    avgResponseTime: float
    dealsByMonth: list[MonthlyDealCount]


class DealAnalyticsResponse(BaseModel):
    success: bool = True
    analytics: DealAnalytics


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    priority: str
    isRead: bool
    createdAt: Optional[datetime] = None
