"""Post router - unlock and deal toggle endpoints"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import DealToggleResponse, DealToggleUpdate, UnlockResponse
from .service import PostService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])


def get_post_service(db: Session = Depends(get_db)) -> PostService:
    """Dependency injection for PostService"""
    return PostService(db)


@router.post("/{post_id}/unlock", response_model=UnlockResponse)
async def unlock_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    """Spend unlock credits to reveal the author's contacts; opens a deal"""
    return UnlockResponse(**service.unlock_post(post_id, current_user))


@router.put("/{post_id}/deal-toggle", response_model=DealToggleResponse)
async def update_deal_toggle_status(
    post_id: int,
    data: DealToggleUpdate,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    """Post owner marks the outcome; Success/Fail resolve the post's open deals"""
    return DealToggleResponse(
        **service.update_deal_toggle_status(post_id, current_user, data.dealToggleStatus)
    )
