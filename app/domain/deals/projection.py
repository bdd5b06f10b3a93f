"""Post projection of deal state"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Post
from .policy import CLOSED, CONTACTED, FAIL, ONGOING, SUCCESS

logger = logging.getLogger(__name__)

POST_AVAILABLE = "Available"
POST_IN_PROGRESS = "In Progress"
POST_COMPLETED = "Completed"
POST_CANCELLED = "Cancelled"

_POST_STATUS_FOR_DEAL = {
    CONTACTED: POST_IN_PROGRESS,
    ONGOING: POST_IN_PROGRESS,
    SUCCESS: POST_COMPLETED,
    FAIL: POST_COMPLETED,
    CLOSED: POST_CANCELLED,
}

# Owner toggle -> Post.deal_result
TOGGLE_PENDING = "Pending"
TOGGLE_SUCCESS = "Success"
TOGGLE_FAIL = "Fail"
TOGGLE_STATUSES = [TOGGLE_PENDING, TOGGLE_SUCCESS, TOGGLE_FAIL]

_DEAL_RESULT_FOR_TOGGLE = {
    TOGGLE_PENDING: "Pending",
    TOGGLE_SUCCESS: "Won",
    TOGGLE_FAIL: "Failed",
}


def project_post_status(deal_status: str) -> str:
    return _POST_STATUS_FOR_DEAL.get(deal_status, POST_AVAILABLE)


def deal_result_for_toggle(toggle: str) -> str:
    return _DEAL_RESULT_FOR_TOGGLE.get(toggle, "Pending")


def apply_to_post(db: Session, post_id: int, deal_status: str) -> Optional[str]:
    """
    Recompute Post.deal_status from the triggering deal status.
    Flushes only; the caller commits with the deal change.
    """
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        logger.warning(f"⚠️ Post {post_id} missing while projecting deal status {deal_status}")
        return None

    post.deal_status = project_post_status(deal_status)
    db.flush()
    return post.deal_status
