"""
Daily post validity sweep
Reminds owners of posts expiring in 2-3 days and flips expired posts to an
inactive Expired state
"""

import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.posts.repository import PostRepository
from ..shared.clock import system_clock
from .notification_service import Notifier

logger = logging.getLogger(__name__)


def run_post_validity_sweep(db: Session, clock=None, notifier: Optional[Notifier] = None) -> dict:
    """
    Send validity reminders and expire posts.
    Should be run as a scheduled job (daily cron)

    Both passes are idempotent: validity_reminder_sent and is_expired are
    sticky flags, so a rerun on the same day changes nothing.

    Returns:
        dict: Summary of reminders sent, posts expired and errors
    """
    clock = clock or system_clock
    notifier = notifier or Notifier(db)
    summary = {"reminders_sent": 0, "expired": 0, "errors": 0}
    now = clock.now()

    expiring = PostRepository.find_expiring_unreminded(
        db, now + timedelta(days=2), now + timedelta(days=3)
    )
    logger.info(f"🔄 Found {len(expiring)} post(s) expiring soon")

    for post in expiring:
        try:
            days_remaining = math.ceil((post.expires_at - now).total_seconds() / 86400)
            notifier.notify(
                post.author_id,
                "post_validity_reminder",
                "Post Expiring Soon",
                f'Your post "{post.title}" will expire in {days_remaining} day(s). '
                f"Extend its validity to keep it visible.",
                data={"postId": post.id, "daysRemaining": days_remaining},
                priority="medium",
            )
            post.validity_reminder_sent = True
            db.commit()
            summary["reminders_sent"] += 1
        except Exception as e:
            db.rollback()
            summary["errors"] += 1
            logger.error(f"❌ Error sending validity reminder for post {post.id}: {e}")

    for post in PostRepository.find_newly_expired(db, now):
        try:
            post.is_expired = True
            post.post_status = "Expired"
            post.is_active = False
            notifier.notify(
                post.author_id,
                "post_expired",
                "Post Expired",
                f'Your post "{post.title}" has expired and is now faded. '
                f"You can revive it by extending validity.",
                data={"postId": post.id, "notificationType": "post_expired"},
                priority="high",
            )
            db.commit()
            summary["expired"] += 1
        except Exception as e:
            db.rollback()
            summary["errors"] += 1
            logger.error(f"❌ Failed to mark post {post.id} as expired: {e}")

    logger.info(
        f"✅ Post validity sweep complete: {summary['reminders_sent']} reminders, "
        f"{summary['expired']} expired, {summary['errors']} errors"
    )
    return summary
