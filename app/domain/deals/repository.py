"""Deal repository - Database operations for deals and their status history"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, aliased, joinedload

from ...models import Deal, DealStatusHistory, Post, User
from .policy import DEAL_STATUSES, OPEN_STATUSES, TERMINAL_STATUSES

# Admin list sort keys -> columns
SORT_COLUMNS = {
    "createdAt": Deal.created_at,
    "updatedAt": Deal.updated_at,
    "status": Deal.status,
    "dealId": Deal.deal_id,
}


class DealRepository:
    """Repository for deal database operations"""

    @staticmethod
    def get_by_id(db: Session, deal_pk: int) -> Optional[Deal]:
        """Get a deal by primary key regardless of party or activity"""
        return db.query(Deal).filter(Deal.id == deal_pk).first()

    @staticmethod
    def get_for_party(db: Session, deal_pk: int, user_id: int) -> Optional[Deal]:
        """Get an active deal only if the user is its unlocker or author"""
        return (
            db.query(Deal)
            .filter(
                Deal.id == deal_pk,
                Deal.is_active.is_(True),
                or_(Deal.unlocker_id == user_id, Deal.author_id == user_id),
            )
            .first()
        )

    @staticmethod
    def get_by_post_and_unlocker(db: Session, post_id: int, unlocker_id: int) -> Optional[Deal]:
        return (
            db.query(Deal)
            .filter(Deal.post_id == post_id, Deal.unlocker_id == unlocker_id)
            .first()
        )

    @staticmethod
    def create(db: Session, deal: Deal, initial_history: DealStatusHistory) -> Deal:
        """Add a new deal with its seeded history entry (flushed, not committed)"""
        deal.status_history.append(initial_history)
        db.add(deal)
        db.flush()
        return deal

    @staticmethod
    def find_active_for_party(
        db: Session,
        user_id: int,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Deal]:
        """Active deals where the user is unlocker and/or author, newest first"""
        query = db.query(Deal).options(
            joinedload(Deal.post), joinedload(Deal.unlocker), joinedload(Deal.author)
        )
        query = query.filter(Deal.is_active.is_(True))

        if role == "unlocker":
            query = query.filter(Deal.unlocker_id == user_id)
        elif role == "author":
            query = query.filter(Deal.author_id == user_id)
        else:
            query = query.filter(or_(Deal.unlocker_id == user_id, Deal.author_id == user_id))

        if status:
            query = query.filter(Deal.status == status)

        return query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()

    @staticmethod
    def find_open_for_post(db: Session, post_id: int) -> list[Deal]:
        """Active Contacted/Ongoing deals on a post"""
        return (
            db.query(Deal)
            .filter(
                Deal.post_id == post_id,
                Deal.is_active.is_(True),
                Deal.status.in_(OPEN_STATUSES),
            )
            .order_by(Deal.id)
            .all()
        )

    @staticmethod
    def find_due_for_sweep(db: Session) -> list[Deal]:
        """Active Contacted/Ongoing deals the daily lifecycle sweep inspects"""
        return (
            db.query(Deal)
            .options(joinedload(Deal.post))
            .filter(Deal.is_active.is_(True), Deal.status.in_(OPEN_STATUSES))
            .order_by(Deal.id)
            .all()
        )

    @staticmethod
    def add_history(
        db: Session,
        deal: Deal,
        status: str,
        updated_by: Optional[int],
        updated_at: datetime,
        notes: Optional[str] = None,
        is_admin_override: bool = False,
        initiator: str = "participant",
    ) -> DealStatusHistory:
        entry = DealStatusHistory(
            status=status,
            updated_by=updated_by,
            updated_at=updated_at,
            notes=notes,
            is_admin_override=is_admin_override,
            initiator=initiator,
        )
        deal.status_history.append(entry)
        return entry

    # ========================================================================
    # ADMIN LISTING
    # ========================================================================

    @staticmethod
    def list_all(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Deal], int]:
        """
        Paginated admin listing across all deals.
        Search matches deal id, post title and either party's name.
        Returns (deals, total)
        """
        unlocker = aliased(User)
        author = aliased(User)
        query = (
            db.query(Deal)
            .join(Post, Deal.post_id == Post.id)
            .join(unlocker, Deal.unlocker_id == unlocker.id)
            .join(author, Deal.author_id == author.id)
        )

        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Deal.deal_id.ilike(pattern),
                    Post.title.ilike(pattern),
                    unlocker.name.ilike(pattern),
                    author.name.ilike(pattern),
                )
            )

        if status:
            query = query.filter(Deal.status == status)

        total = query.count()

        column = SORT_COLUMNS.get(sort_by, Deal.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        deals = (
            query.options(
                joinedload(Deal.post), joinedload(Deal.unlocker), joinedload(Deal.author)
            )
            .order_by(ordering, Deal.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return deals, total

    @staticmethod
    def recent(db: Session, limit: int = 10) -> list[Deal]:
        return (
            db.query(Deal)
            .options(joinedload(Deal.post), joinedload(Deal.unlocker), joinedload(Deal.author))
            .order_by(Deal.created_at.desc(), Deal.id.desc())
            .limit(limit)
            .all()
        )

    # ========================================================================
    # STATISTICS
    # ========================================================================

    @staticmethod
    def _party_filter(query, user_id: Optional[int]):
        if user_id is None:
            return query
        return query.filter(
            Deal.is_active.is_(True),
            or_(Deal.unlocker_id == user_id, Deal.author_id == user_id),
        )

    @staticmethod
    def status_histogram(db: Session, user_id: Optional[int] = None) -> dict:
        """Zero-filled {status: count}; scoped to the user's active deals when given"""
        query = db.query(Deal.status, func.count(Deal.id))
        query = DealRepository._party_filter(query, user_id)
        counts = dict(query.group_by(Deal.status).all())
        return {status: counts.get(status, 0) for status in DEAL_STATUSES}

    @staticmethod
    def resolution_days(db: Session, user_id: Optional[int] = None) -> list[float]:
        """Days from creation to the last history entry, for Success/Fail/Closed deals"""
        last_update = (
            db.query(
                DealStatusHistory.deal_pk.label("deal_pk"),
                func.max(DealStatusHistory.updated_at).label("last_at"),
            )
            .group_by(DealStatusHistory.deal_pk)
            .subquery()
        )
        query = db.query(Deal.created_at, last_update.c.last_at).join(
            last_update, last_update.c.deal_pk == Deal.id
        )
        query = query.filter(Deal.status.in_(TERMINAL_STATUSES))
        query = DealRepository._party_filter(query, user_id)

        return [
            (last_at - created_at).total_seconds() / 86400
            for created_at, last_at in query.all()
            if created_at and last_at
        ]

    @staticmethod
    def count(db: Session, status: Optional[str] = None, chronic: Optional[bool] = None) -> int:
        query = db.query(func.count(Deal.id))
        if status:
            query = query.filter(Deal.status == status)
        if chronic is not None:
            query = query.filter(Deal.chronic_non_update.is_(chronic))
        return query.scalar() or 0

    @staticmethod
    def penalty_sum(db: Session) -> int:
        return db.query(func.coalesce(func.sum(Deal.penalty), 0)).scalar() or 0

    @staticmethod
    def created_since(db: Session, since: datetime) -> list[tuple[datetime, str]]:
        """(created_at, status) pairs for deals created at or after `since`"""
        return (
            db.query(Deal.created_at, Deal.status)
            .filter(Deal.created_at >= since)
            .order_by(Deal.created_at)
            .all()
        )
