"""
Daily deal lifecycle sweep
Sends staged reminders on open deals and auto-closes deals left without an
update for 90 days
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.deals.policy import (
    AUTO_CLOSE_PENALTY,
    DEAL_LIFETIME_DAYS,
    FINAL_WARNING,
    INITIATOR_SCHEDULER,
    REMINDER_STAGES,
)
from ..domain.deals.repository import DealRepository
from ..domain.deals.state_machine import DealStateMachine
from ..models import Deal
from ..shared.clock import system_clock
from .notification_service import Notifier

logger = logging.getLogger(__name__)


def due_reminder(deal: Deal, days_since_created: int, now) -> Optional[str]:
    """
    Return the reminder stage label due today, or None.

    Stages fire only on their exact day. Day 1 needs no prior reminder; later
    stages also fire when the last reminder is old enough.
    """
    for day, min_gap_days, label in REMINDER_STAGES:
        if days_since_created != day:
            continue
        if deal.last_reminder_sent is None:
            return label
        if min_gap_days is None:
            return None
        gap = (now - deal.last_reminder_sent).total_seconds() / 86400
        return label if gap >= min_gap_days else None
    return None


def _reminder_messages(deal: Deal, days: int, stage: str) -> tuple[str, str, str]:
    """(title, unlocker message, author message)"""
    title = deal.post.title if deal.post else "Unknown Post"
    heading = f"Deal Reminder ({days} days)"
    if stage == FINAL_WARNING:
        return (
            f"{heading} - Final Warning",
            f'Your deal for post "{title}" will be automatically closed in 5 days if no status update is provided. '
            f"Please update the status now to avoid penalties.",
            f'The deal for your post "{title}" will be automatically closed in 5 days if no status update is provided. '
            f"Please encourage the other party to update the status.",
        )
    return (
        heading,
        f'Please update the status of your deal for post "{title}". '
        f"It's been {days} day(s) since you unlocked it.",
        f'Please update the status of the deal for your post "{title}". '
        f"It's been {days} day(s) since it was unlocked.",
    )


def run_deal_lifecycle_sweep(db: Session, clock=None, notifier: Optional[Notifier] = None) -> dict:
    """
    Sweep active Contacted/Ongoing deals once.
    Should be run as a scheduled job (daily cron)

    Returns:
        dict: Summary of processed deals, reminders sent, auto-closes and errors
    """
    clock = clock or system_clock
    notifier = notifier or Notifier(db)
    machine = DealStateMachine(db, notifier, clock)

    summary = {"processed": 0, "reminders_sent": 0, "auto_closed": 0, "errors": 0}
    now = clock.now()

    deals = DealRepository.find_due_for_sweep(db)
    logger.info(f"🔄 Deal lifecycle sweep: {len(deals)} open deal(s) to inspect")

    for deal in deals:
        summary["processed"] += 1
        try:
            days = int((now - deal.created_at).total_seconds() // 86400)

            if deal.expires_at >= now:
                stage = due_reminder(deal, days, now)
                if stage:
                    title, unlocker_message, author_message = _reminder_messages(deal, days, stage)
                    data = {"dealId": deal.deal_id, "reminder": stage}
                    priority = "high" if stage == FINAL_WARNING else "medium"
                    notifier.notify(deal.unlocker_id, "deal_reminder", title, unlocker_message, data, priority)
                    notifier.notify(deal.author_id, "deal_reminder", title, author_message, data, priority)
                    deal.last_reminder_sent = now
                    db.commit()
                    summary["reminders_sent"] += 1
                    logger.info(f"📨 Sent {stage} reminder for deal {deal.deal_id}")

            if days >= DEAL_LIFETIME_DAYS:
                machine.force_close(
                    deal,
                    None,
                    initiator=INITIATOR_SCHEDULER,
                    penalty=AUTO_CLOSE_PENALTY,
                    chronic=True,
                )
                summary["auto_closed"] += 1
                logger.info(f"✅ Deal {deal.deal_id} auto-closed after {days} days")
        except Exception as e:
            db.rollback()
            summary["errors"] += 1
            logger.error(f"❌ Error processing deal {deal.id} in lifecycle sweep: {e}")

    logger.info(
        f"✅ Deal lifecycle sweep complete: {summary['processed']} processed, "
        f"{summary['reminders_sent']} reminders, {summary['auto_closed']} auto-closed, "
        f"{summary['errors']} errors"
    )
    return summary
