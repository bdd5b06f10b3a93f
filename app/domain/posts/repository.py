"""Post repository - Database operations for posts, unlocks and validity sweeps"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Post, PostUnlock


class PostRepository:
    """Repository for post database operations"""

    @staticmethod
    def get_post(db: Session, post_id: int) -> Optional[Post]:
        """Get a post with its author loaded"""
        return db.query(Post).options(joinedload(Post.author)).filter(Post.id == post_id).first()

    @staticmethod
    def has_unlocked(db: Session, post_id: int, user_id: int) -> bool:
        return (
            db.query(PostUnlock.id)
            .filter(PostUnlock.post_id == post_id, PostUnlock.user_id == user_id)
            .first()
            is not None
        )

    @staticmethod
    def add_unlock(db: Session, post_id: int, user_id: int, unlocked_at: datetime) -> PostUnlock:
        """Insert the unlock row and flush so a duplicate fails here"""
        unlock = PostUnlock(post_id=post_id, user_id=user_id, unlocked_at=unlocked_at)
        db.add(unlock)
        db.flush()
        return unlock

    @staticmethod
    def find_expiring_unreminded(db: Session, window_start: datetime, window_end: datetime) -> list[Post]:
        """Active posts expiring inside the window that have not been reminded yet"""
        return (
            db.query(Post)
            .options(joinedload(Post.author))
            .filter(
                Post.is_active.is_(True),
                Post.post_status == "Active",
                Post.validity_reminder_sent.is_(False),
                Post.expires_at >= window_start,
                Post.expires_at <= window_end,
            )
            .order_by(Post.id)
            .all()
        )

    @staticmethod
    def find_newly_expired(db: Session, now: datetime) -> list[Post]:
        """Active posts past expiry that are not flagged expired yet"""
        return (
            db.query(Post)
            .options(joinedload(Post.author))
            .filter(
                Post.is_active.is_(True),
                Post.is_expired.is_(False),
                Post.expires_at < now,
            )
            .order_by(Post.id)
            .all()
        )
