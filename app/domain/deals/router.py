"""Deal router - FastAPI endpoints for deal participants"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import (
    get_notifications_for_user,
    mark_notification_as_read,
)
from ...shared.exceptions import NotFoundError
from .schemas import (
    DealCreate,
    DealListResponse,
    DealResponse,
    DealStatsResponse,
    DealStatusResponse,
    DealStatusUpdate,
    NotificationResponse,
)
from .service import DealService, serialize_deal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deals", tags=["Deals"])


def get_deal_service(db: Session = Depends(get_db)) -> DealService:
    """Dependency injection for DealService"""
    return DealService(db)


def status_response(result) -> DealStatusResponse:
    return DealStatusResponse(
        message=result.message,
        waitingForConfirmation=result.waiting_for is not None,
        waitingFor=result.waiting_for,
        deal=DealResponse(**serialize_deal(result.deal)),
    )


# ============================================================================
# CREATION (internal)
# ============================================================================


@router.post("", response_model=DealResponse, status_code=201)
async def create_deal(
    data: DealCreate,
    current_user: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    """Create a deal directly; normally triggered by a post unlock"""
    deal = service.create_deal(data.postId, data.unlockerId, data.authorId)
    return DealResponse(**serialize_deal(deal))


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=DealListResponse)
async def get_user_deals(
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DealService = Depends(get_deal_service),
):
    """Get the current user's active deals as unlocker and/or author"""
    deals = service.list_deals(current_user, role, status)
    return DealListResponse(deals=[DealResponse(**d) for d in deals])


@router.get("/stats", response_model=DealStatsResponse)
async def get_deal_stats(
    current_user: User = Depends(get_current_user),
    service: DealService = Depends(get_deal_service),
):
    """Status histogram and average resolution time for the current user"""
    return DealStatsResponse(**service.get_stats(current_user))


# ============================================================================
# NOTIFICATIONS
# ============================================================================


@router.get("/notifications", response_model=list[NotificationResponse])
async def get_deal_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's notifications, newest first"""
    return [
        NotificationResponse(
            id=n.id,
            type=n.type,
            title=n.title,
            message=n.message,
            data=n.data,
            priority=n.priority,
            isRead=n.is_read,
            createdAt=n.created_at,
        )
        for n in get_notifications_for_user(db, current_user.id, limit)
    ]


@router.put("/notifications/{notification_id}/read")
async def mark_deal_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark one of the current user's notifications as read"""
    result = mark_notification_as_read(db, current_user.id, notification_id)
    if not result["success"]:
        raise NotFoundError(result["message"])
    return result


# ============================================================================
# SINGLE DEAL
# ============================================================================


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: int,
    current_user: User = Depends(get_current_user),
    service: DealService = Depends(get_deal_service),
):
    """Get a deal the current user is a party to"""
    return DealResponse(**serialize_deal(service.get_deal(deal_id, current_user)))


@router.put("/{deal_id}/status", response_model=DealStatusResponse)
async def update_deal_status(
    deal_id: int,
    data: DealStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: DealService = Depends(get_deal_service),
):
    """
    Move a deal along its status graph.
    Success/Fail needs both parties; the first confirmation returns
    waitingForConfirmation=true without changing the status.
    """
    result = service.update_status(deal_id, current_user, data.status, data.notes)
    return status_response(result)
