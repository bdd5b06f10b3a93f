"""
Deal state machine

Single entry point for every deal status change: participant updates, admin
overrides and force-closes, post-owner resolutions and the daily scheduler.

Status graph:
    Contacted -> Ongoing | Closed
    Ongoing   -> Success | Fail | Closed
    Success   -> Closed
    Fail      -> Closed

Any move to Closed also deactivates the deal.

Success/Fail from a participant needs both parties to confirm the same
resolution. The realized status change (history, post projection and the
settlement stamp) is committed first. Credit settlement, workspace history,
badges, notifications and cache invalidation follow as separate units of work
and are logged on failure without touching the committed status.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import invalidate_party_caches
from ...models import Deal, User
from ...services.notification_service import Notifier
from ...shared.clock import system_clock
from ...shared.exceptions import (
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from ..credits.ledger import CreditLedger
from .history import UserDealHistoryAggregator
from .policy import (
    CLOSED,
    DEAL_STATUSES,
    INITIATOR_ADMIN,
    INITIATOR_PARTICIPANT,
    INITIATOR_POST_OWNER,
    INITIATOR_SCHEDULER,
    INITIATORS,
    OPEN_STATUSES,
    OUTCOME_FOR_STATUS,
    RESOLVED_STATUSES,
    TERMINAL_STATUSES,
    allowed_transitions,
    confirmation_adjustment,
)
from .projection import apply_to_post
from .repository import DealRepository

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    deal: Deal
    changed: bool
    previous_status: str
    waiting_for: Optional[str] = None
    settled: bool = False

    @property
    def message(self) -> str:
        if self.waiting_for:
            return f"Your confirmation recorded. Waiting for {self.waiting_for} to confirm"
        return "Deal status updated successfully"


def _confirmation_slot(target: str, role: str) -> str:
    """Success + unlocker -> success_unlocker_confirmed"""
    return f"{target.lower()}_{role}_confirmed"


def _other_role(role: str) -> str:
    return "author" if role == "unlocker" else "unlocker"


class DealStateMachine:
    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        clock=None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.notifier = notifier or Notifier(db)
        self.ledger = CreditLedger(db, self.clock)
        self.history = UserDealHistoryAggregator(db, self.notifier, self.clock)
        self.repo = DealRepository()

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    def transition(
        self,
        deal: Deal,
        acting_user_id: Optional[int],
        target: str,
        notes: Optional[str] = None,
        initiator: str = INITIATOR_PARTICIPANT,
    ) -> TransitionResult:
        """
        Move a deal along the status graph.

        Participants must be a party to an active deal and go through the
        mutual confirmation gate for Success/Fail. Admins bypass both checks
        but not the graph; their history entries are tagged as overrides.

        Raises:
            ValidationError: unknown target status or initiator
            NotFoundError: participant is not a party, or the deal is inactive
            InvalidTransition: target not reachable from the current status
        """
        if target not in DEAL_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(DEAL_STATUSES)}")
        if initiator not in INITIATORS:
            raise ValidationError(f"Invalid initiator. Must be one of: {', '.join(INITIATORS)}")

        if initiator == INITIATOR_POST_OWNER:
            return self.resolve_for_post_owner(deal, acting_user_id, target, notes)

        role = deal.role_of(acting_user_id) if acting_user_id is not None else None
        if initiator == INITIATOR_PARTICIPANT and (role is None or not deal.is_active):
            raise NotFoundError("Deal not found or you don't have access to it")

        if target not in allowed_transitions(deal.status):
            raise InvalidTransition(deal.status, target)

        if target in RESOLVED_STATUSES:
            if initiator == INITIATOR_PARTICIPANT:
                self._confirm(deal, target, role)
                other = _other_role(role)
                if not getattr(deal, _confirmation_slot(target, other)):
                    return self._await_confirmation(deal, target, role, other)
            self._accrue_adjustment(deal)

        return self._realize(
            deal,
            target,
            acting_user_id,
            notes,
            initiator,
            is_admin_override=initiator == INITIATOR_ADMIN,
        )

    def force_close(
        self,
        deal: Deal,
        acting_user_id: Optional[int],
        reason: Optional[str] = None,
        initiator: str = INITIATOR_ADMIN,
        penalty: int = 0,
        chronic: bool = False,
    ) -> TransitionResult:
        """
        Close a deal from any status and deactivate it.

        `penalty` is added to the deal's adjustments before settlement.
        A chronic close also counts against both parties' total_penalties.

        Raises:
            InvalidTransition: the deal is already Closed
        """
        if deal.status == CLOSED:
            raise InvalidTransition(CLOSED, CLOSED)

        if penalty:
            deal.penalty = (deal.penalty or 0) + penalty
        if chronic:
            deal.chronic_non_update = True
            for user_id in (deal.unlocker_id, deal.author_id):
                user = self.db.query(User).filter(User.id == user_id).first()
                if user:
                    user.total_penalties = (user.total_penalties or 0) + 1

        if not reason:
            reason = (
                "Auto-closed after 90 days without a status update"
                if initiator == INITIATOR_SCHEDULER
                else "Force closed by admin"
            )

        return self._realize(
            deal,
            CLOSED,
            acting_user_id,
            reason,
            initiator,
            is_admin_override=initiator == INITIATOR_ADMIN,
        )

    def resolve_for_post_owner(
        self,
        deal: Deal,
        owner_id: int,
        target: str,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        """
        Post owner's toggle: force an open deal straight to Success/Fail.

        Skips the graph and the confirmation gate; the owner's confirmation
        slot is recorded for the trail.
        """
        if owner_id != deal.author_id:
            raise AuthorizationError("Only the post owner can resolve this deal")
        if target not in RESOLVED_STATUSES:
            raise ValidationError("Post owner can only resolve a deal as Success or Fail")
        if deal.status not in OPEN_STATUSES or not deal.is_active:
            raise InvalidTransition(deal.status, target)

        self._confirm(deal, target, "author")
        self._accrue_adjustment(deal)
        return self._realize(
            deal,
            target,
            owner_id,
            notes or f"Marked as {target} by post owner",
            INITIATOR_POST_OWNER,
        )

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _confirm(self, deal: Deal, target: str, role: str):
        slot = _confirmation_slot(target, role)
        setattr(deal, slot, True)
        setattr(deal, f"{slot}_at", self.clock.now())

    def _accrue_adjustment(self, deal: Deal):
        # Measured from creation at the realizing moment, so the slower confirmer sets the tier
        elapsed = (self.clock.now() - deal.created_at).total_seconds() / 86400
        bonus, penalty = confirmation_adjustment(elapsed)
        deal.bonus = (deal.bonus or 0) + bonus
        deal.penalty = (deal.penalty or 0) + penalty

    def _await_confirmation(self, deal: Deal, target: str, role: str, other: str) -> TransitionResult:
        self.db.commit()
        logger.info(f"⏳ Deal {deal.deal_id}: {role} confirmed {target}, waiting for {other}")

        other_id = deal.author_id if other == "author" else deal.unlocker_id
        self._safe_notify(
            other_id,
            "deal_confirmation_requested",
            "Confirmation Needed",
            f'The other party marked deal {deal.deal_id} for "{self._post_title(deal)}" as {target}. '
            f"Please confirm to complete it.",
            data={"dealId": deal.deal_id, "status": target},
            priority="high",
        )
        invalidate_party_caches(deal.unlocker_id, deal.author_id)
        return TransitionResult(
            deal=deal, changed=False, previous_status=deal.status, waiting_for=other
        )

    def _realize(
        self,
        deal: Deal,
        target: str,
        acting_user_id: Optional[int],
        notes: Optional[str],
        initiator: str,
        is_admin_override: bool = False,
    ) -> TransitionResult:
        previous = deal.status
        now = self.clock.now()

        deal.status = target
        deal.updated_at = now
        if target == CLOSED:
            deal.is_active = False
        self.repo.add_history(
            self.db,
            deal,
            target,
            acting_user_id,
            now,
            notes=notes,
            is_admin_override=is_admin_override,
            initiator=initiator,
        )
        apply_to_post(self.db, deal.post_id, target)

        settle = target in TERMINAL_STATUSES and deal.credits_settled_at is None
        if settle:
            deal.credits_settled_at = now

        self.db.commit()
        logger.info(
            f"✅ Deal {deal.deal_id} transitioned: {previous} → {target} ({initiator})"
        )

        if settle:
            self._settle(deal)
        if target in OUTCOME_FOR_STATUS:
            self._record_outcomes(deal, OUTCOME_FOR_STATUS[target])
        self._notify_status_change(deal, target, initiator)
        invalidate_party_caches(deal.unlocker_id, deal.author_id)

        return TransitionResult(
            deal=deal, changed=True, previous_status=previous, settled=settle
        )

    def _settle(self, deal: Deal):
        """Apply the deal's bonus/penalty identically to both parties, one commit per user"""
        if not deal.bonus and not deal.penalty:
            return

        for user_id in (deal.unlocker_id, deal.author_id):
            try:
                self.ledger.adjust(
                    user_id,
                    bonus=deal.bonus,
                    penalty=deal.penalty,
                    related_entity=deal.deal_id,
                )
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Failed to settle credits for user {user_id} on deal {deal.deal_id}: {e}")

    def _record_outcomes(self, deal: Deal, result: str):
        for user_id in (deal.unlocker_id, deal.author_id):
            try:
                self.history.record_outcome(user_id, deal.post_id, result)
                if result == "Won":
                    self.history.evaluate_badges(user_id)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Failed to update deal history for user {user_id} on deal {deal.deal_id}: {e}")

    def _notify_status_change(self, deal: Deal, target: str, initiator: str):
        title = self._post_title(deal)
        data = {"dealId": deal.deal_id, "status": target}

        if initiator == INITIATOR_SCHEDULER:
            penalty_note = f"A penalty of {deal.penalty} credits has been applied."
            messages = {
                deal.unlocker_id: f'Your deal for post "{title}" has been automatically closed due to inactivity. {penalty_note}',
                deal.author_id: f'The deal for your post "{title}" has been automatically closed due to inactivity. {penalty_note}',
            }
            for user_id, message in messages.items():
                self._safe_notify(user_id, "deal_auto_closed", "Deal Auto-Closed", message, data, "high")
            return

        heading = "Deal Updated by Admin" if initiator == INITIATOR_ADMIN else "Deal Status Updated"
        for user_id in (deal.unlocker_id, deal.author_id):
            self._safe_notify(
                user_id,
                "deal_status_changed",
                heading,
                f'Deal {deal.deal_id} for "{title}" is now {target}.',
                data,
            )

    def _safe_notify(self, user_id, type, title, message, data=None, priority="medium"):
        try:
            self.notifier.notify(user_id, type, title, message, data=data, priority=priority)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"⚠️ Notification '{title}' for user {user_id} failed: {e}")

    @staticmethod
    def _post_title(deal: Deal) -> str:
        return deal.post.title if deal.post else "Unknown Post"
