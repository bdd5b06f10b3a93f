"""Deal service - Business logic for deal creation, queries, status changes and analytics"""

import calendar
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...cache import build_deal_list_key, cache
from ...config import USER_CACHE_TTL
from ...models import Deal, DealStatusHistory, User
from ...services.notification_service import Notifier
from ...shared.clock import system_clock
from ...shared.exceptions import ConflictError, NotFoundError, UserNotFound, ValidationError
from .contacts import build_masked_contacts
from .policy import (
    CLOSED,
    CONTACTED,
    DEAL_LIFETIME_DAYS,
    DEAL_STATUSES,
    FAIL,
    INITIATOR_ADMIN,
    INITIATOR_PARTICIPANT,
    SUCCESS,
)
from .projection import apply_to_post
from .repository import DealRepository
from .state_machine import DealStateMachine, TransitionResult

logger = logging.getLogger(__name__)


def generate_deal_id() -> str:
    """DEAL- followed by 8 upper-case hex characters"""
    return f"DEAL-{uuid.uuid4().hex[:8].upper()}"


def _months_ago(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _party(user: Optional[User]) -> Optional[dict]:
    if not user:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "companyName": user.company_name,
        "designation": user.designation,
    }


def serialize_deal(deal: Deal) -> dict:
    """Deal as returned by the API, with the post and both parties populated"""
    post = deal.post
    return {
        "id": deal.id,
        "dealId": deal.deal_id,
        "status": deal.status,
        "post": (
            {
                "id": post.id,
                "title": post.title,
                "requirement": post.requirement,
                "description": post.description,
                "category": post.category,
            }
            if post
            else None
        ),
        "unlocker": _party(deal.unlocker),
        "author": _party(deal.author),
        "maskedContacts": deal.masked_contacts or {},
        "confirmations": {
            kind: {
                role: {
                    "confirmed": bool(getattr(deal, f"{kind}_{role}_confirmed")),
                    "confirmedAt": getattr(deal, f"{kind}_{role}_confirmed_at"),
                }
                for role in ("unlocker", "author")
            }
            for kind in ("success", "fail")
        },
        "creditAdjustments": {"bonus": deal.bonus or 0, "penalty": deal.penalty or 0},
        "statusHistory": [
            {
                "status": h.status,
                "updatedBy": h.updated_by,
                "updatedAt": h.updated_at,
                "notes": h.notes,
                "isAdminOverride": h.is_admin_override,
                "initiator": h.initiator,
            }
            for h in deal.status_history
        ],
        "lastReminderSent": deal.last_reminder_sent,
        "expiresAt": deal.expires_at,
        "autoCloseAt": deal.auto_close_at,
        "isActive": deal.is_active,
        "chronicNonUpdate": deal.chronic_non_update,
        "createdAt": deal.created_at,
        "updatedAt": deal.updated_at,
    }


class DealService:
    """Service layer for deal business logic"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None, clock=None):
        self.db = db
        self.clock = clock or system_clock
        self.notifier = notifier or Notifier(db)
        self.repo = DealRepository()
        self.machine = DealStateMachine(db, self.notifier, self.clock)

    # ========================================================================
    # CREATION
    # ========================================================================

    def create_deal(self, post_id: int, unlocker_id: int, author_id: int) -> Deal:
        """
        Open a deal between a post's author and a user who unlocked it.

        Raises:
            UserNotFound: either party is missing
            ConflictError: a deal already exists for this post and unlocker
        """
        unlocker = self.db.query(User).filter(User.id == unlocker_id).first()
        author = self.db.query(User).filter(User.id == author_id).first()
        if not unlocker or not author:
            raise UserNotFound(unlocker_id if not unlocker else author_id)

        if self.repo.get_by_post_and_unlocker(self.db, post_id, unlocker_id):
            raise ConflictError("A deal already exists for this post and user")

        now = self.clock.now()
        deadline = now + timedelta(days=DEAL_LIFETIME_DAYS)
        deal = Deal(
            deal_id=generate_deal_id(),
            post_id=post_id,
            unlocker_id=unlocker_id,
            author_id=author_id,
            masked_contacts=build_masked_contacts(unlocker, author, post_id),
            status=CONTACTED,
            expires_at=deadline,
            auto_close_at=deadline,
            created_at=now,
            updated_at=now,
        )
        seed = DealStatusHistory(
            status=CONTACTED,
            updated_by=unlocker_id,
            updated_at=now,
            notes="Deal initiated upon post unlock",
            initiator=INITIATOR_PARTICIPANT,
        )

        try:
            deal = self.repo.create(self.db, deal, seed)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"⚠️ Duplicate deal for post {post_id} and unlocker {unlocker_id}")
            raise ConflictError("A deal already exists for this post and user")

        apply_to_post(self.db, post_id, CONTACTED)
        self.db.commit()
        logger.info(f"✅ Deal {deal.deal_id} created for post {post_id} (unlocker {unlocker_id})")
        return deal

    # ========================================================================
    # PARTICIPANT OPERATIONS
    # ========================================================================

    def list_deals(
        self, user: User, role: Optional[str] = None, status: Optional[str] = None
    ) -> list[dict]:
        """Active deals for the user, newest first (cached per role/status)"""
        if role not in (None, "unlocker", "author"):
            raise ValidationError("Invalid role. Must be one of: unlocker, author")
        if status and status not in DEAL_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(DEAL_STATUSES)}")

        cache_key = build_deal_list_key(user.id, role, status)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        deals = [serialize_deal(d) for d in self.repo.find_active_for_party(self.db, user.id, role, status)]
        cache.set(cache_key, deals, ttl=USER_CACHE_TTL)
        return deals

    def get_deal(self, deal_pk: int, user: User) -> Deal:
        deal = self.repo.get_for_party(self.db, deal_pk, user.id)
        if not deal:
            raise NotFoundError("Deal not found or you don't have access to it")
        return deal

    def update_status(
        self, deal_pk: int, user: User, status: str, notes: Optional[str] = None
    ) -> TransitionResult:
        deal = self.get_deal(deal_pk, user)
        return self.machine.transition(deal, user.id, status, notes, INITIATOR_PARTICIPANT)

    def get_stats(self, user: User) -> dict:
        """Status histogram and average resolution time over the user's active deals"""
        stats = self.repo.status_histogram(self.db, user.id)
        times = self.repo.resolution_days(self.db, user.id)
        avg = sum(times) / len(times) if times else 0
        return {"stats": stats, "avgResponseTime": round(avg, 2)}

    # ========================================================================
    # ADMIN OPERATIONS
    # ========================================================================

    def admin_list_deals(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> dict:
        deals, total = self.repo.list_all(self.db, search, status, page, limit, sort_by, sort_order)
        return {
            "deals": [serialize_deal(d) for d in deals],
            "total": total,
            "page": page,
            "pages": -(-total // limit) if limit else 0,
        }

    def admin_get_deal(self, deal_pk: int) -> Deal:
        deal = self.repo.get_by_id(self.db, deal_pk)
        if not deal:
            raise NotFoundError("Deal not found")
        return deal

    def admin_update_status(
        self, deal_pk: int, admin: User, status: str, notes: Optional[str] = None
    ) -> TransitionResult:
        deal = self.admin_get_deal(deal_pk)
        logger.info(f"🛠️ Admin {admin.id} overriding deal {deal.deal_id}: {deal.status} → {status}")
        return self.machine.transition(
            deal, admin.id, status, notes or "Status updated by admin", INITIATOR_ADMIN
        )

    def admin_close_deal(self, deal_pk: int, admin: User, reason: Optional[str] = None) -> TransitionResult:
        deal = self.admin_get_deal(deal_pk)
        logger.info(f"🛠️ Admin {admin.id} force closing deal {deal.deal_id}")
        return self.machine.force_close(deal, admin.id, reason, initiator=INITIATOR_ADMIN)

    def get_analytics(self) -> dict:
        """Platform-wide deal analytics for the admin dashboard"""
        histogram = self.repo.status_histogram(self.db)
        total = sum(histogram.values())
        success = histogram[SUCCESS]
        fail = histogram[FAIL]
        closed = histogram[CLOSED]

        def rate(count: int) -> float:
            return round(count / total * 100, 2) if total else 0.0

        penalties = int(self.repo.penalty_sum(self.db))
        times = self.repo.resolution_days(self.db)

        months = {}
        since = _months_ago(self.clock.now(), 6)
        for created_at, status in self.repo.created_since(self.db, since):
            bucket = months.setdefault(
                (created_at.year, created_at.month),
                {"year": created_at.year, "month": created_at.month, "count": 0, "successful": 0},
            )
            bucket["count"] += 1
            if status == SUCCESS:
                bucket["successful"] += 1

        return {
            "statusCounts": histogram,
            "recentDeals": [serialize_deal(d) for d in self.repo.recent(self.db, 10)],
            "totalDeals": total,
            "successRate": rate(success),
            "failRate": rate(fail),
            "completionRate": rate(success + fail + closed),
            "chronicNonUpdateCount": self.repo.count(self.db, chronic=True),
            "totalPenaltiesApplied": penalties,
            "avgPenaltyPerDeal": round(penalties / total, 2) if total else 0.0,
            "avgResponseTime": round(sum(times) / len(times), 2) if times else 0.0,
            "dealsByMonth": [months[key] for key in sorted(months)],
        }
