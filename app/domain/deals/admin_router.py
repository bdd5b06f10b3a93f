"""Admin deal router - oversight, overrides, force close and analytics"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ...auth import get_current_admin
from ...models import User
from .router import get_deal_service, status_response
from .schemas import (
    DealAnalyticsResponse,
    DealCloseRequest,
    DealResponse,
    DealStatusResponse,
    DealStatusUpdate,
    PaginatedDealsResponse,
)
from .service import DealService, serialize_deal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Deals"])


@router.get("/deals", response_model=PaginatedDealsResponse)
async def list_all_deals(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    sortBy: str = Query("createdAt"),
    sortOrder: str = Query("desc"),
    admin: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    """All deals, searchable by deal id, post title or party name"""
    return PaginatedDealsResponse(
        **service.admin_list_deals(search, status, page, limit, sortBy, sortOrder)
    )


@router.get("/deals/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: int,
    admin: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    return DealResponse(**serialize_deal(service.admin_get_deal(deal_id)))


@router.put("/deals/{deal_id}/status", response_model=DealStatusResponse)
async def override_deal_status(
    deal_id: int,
    data: DealStatusUpdate,
    admin: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    """Admin override: graph rules apply, party check and confirmation gate do not"""
    result = service.admin_update_status(deal_id, admin, data.status, data.notes)
    response = status_response(result)
    response.message = "Deal status updated by admin"
    return response


@router.delete("/deals/{deal_id}", response_model=DealStatusResponse)
async def close_deal(
    deal_id: int,
    data: Optional[DealCloseRequest] = Body(None),
    admin: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    """Force close a deal from any open or resolved status"""
    result = service.admin_close_deal(deal_id, admin, data.reason if data else None)
    response = status_response(result)
    response.message = "Deal force closed by admin"
    return response


@router.get("/analytics/deals", response_model=DealAnalyticsResponse)
async def get_deal_analytics(
    admin: User = Depends(get_current_admin),
    service: DealService = Depends(get_deal_service),
):
    return DealAnalyticsResponse(analytics=service.get_analytics())
