"""
User deal history aggregator

Keeps each user's workspace counters and per-post outcome entries in step with
resolved deals, and awards milestone badges on won-deal counts.
"""

import logging

from sqlalchemy.orm import Session

from ...models import DealWorkspaceEntry, EarnedBadge, User
from ...shared.clock import system_clock
from ...shared.exceptions import UserNotFound
from .policy import BADGE_THRESHOLDS

logger = logging.getLogger(__name__)

# Workspace result -> User counter column
_RESULT_COUNTERS = {
    "Won": "won_deals",
    "Failed": "failed_deals",
    "Pending": "pending_deals",
}


class UserDealHistoryAggregator:
    def __init__(self, db: Session, notifier=None, clock=None):
        self.db = db
        self.notifier = notifier
        self.clock = clock or system_clock

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFound(user_id)
        return user

    @staticmethod
    def _bump(user: User, result: str, delta: int):
        column = _RESULT_COUNTERS.get(result)
        if column:
            setattr(user, column, max(0, (getattr(user, column) or 0) + delta))

    def record_outcome(self, user_id: int, post_id: int, result: str) -> bool:
        """
        Upsert the user's workspace entry for a post.

        Returns True when counters changed; recording the same result twice
        is a no-op.
        """
        user = self._get_user(user_id)
        entry = (
            self.db.query(DealWorkspaceEntry)
            .filter(DealWorkspaceEntry.user_id == user_id, DealWorkspaceEntry.post_id == post_id)
            .first()
        )
        now = self.clock.now()
        notes = f"Deal marked as {result.lower()}"

        if entry is None:
            self.db.add(
                DealWorkspaceEntry(
                    user_id=user_id,
                    post_id=post_id,
                    result=result,
                    timestamp=now,
                    notes=notes,
                )
            )
            user.total_deals = (user.total_deals or 0) + 1
            self._bump(user, result, 1)
        elif entry.result != result:
            self._bump(user, entry.result, -1)
            self._bump(user, result, 1)
            entry.result = result
            entry.timestamp = now
            entry.notes = notes
        else:
            return False

        self.db.flush()
        logger.info(f"📒 Recorded {result} outcome for user {user_id} on post {post_id}")
        return True

    def evaluate_badges(self, user_id: int) -> list[int]:
        """Award every badge level crossed by won_deals; returns newly earned levels"""
        user = self._get_user(user_id)
        won = user.won_deals or 0
        earned = {
            level
            for (level,) in self.db.query(EarnedBadge.level).filter(EarnedBadge.user_id == user_id)
        }

        new_levels = []
        for level in BADGE_THRESHOLDS:
            if won >= level and level not in earned:
                self.db.add(EarnedBadge(user_id=user_id, level=level, earned_at=self.clock.now()))
                new_levels.append(level)
                if self.notifier:
                    self.notifier.notify(
                        user_id,
                        "badge_earned",
                        "New Badge Earned!",
                        f"Congratulations! You've closed {level} successful deals.",
                        data={"level": level},
                        priority="low",
                    )

        if new_levels:
            self.db.flush()
            logger.info(f"🏅 User {user_id} earned badge level(s): {new_levels}")
        return new_levels
