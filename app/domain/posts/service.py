"""Post service - Unlocking posts and the owner's deal outcome toggle"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...cache import invalidate_cache, invalidate_party_caches, post_list_keys
from ...models import Post, User
from ...services.notification_service import Notifier
from ...shared.clock import system_clock
from ...shared.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..credits.ledger import CreditLedger
from ..deals.projection import (
    TOGGLE_FAIL,
    TOGGLE_STATUSES,
    TOGGLE_SUCCESS,
    deal_result_for_toggle,
)
from ..deals.repository import DealRepository
from ..deals.service import DealService
from ..deals.state_machine import DealStateMachine
from .repository import PostRepository

logger = logging.getLogger(__name__)


class PostService:
    """Service layer for post unlock and deal toggle logic"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None, clock=None):
        self.db = db
        self.clock = clock or system_clock
        self.notifier = notifier or Notifier(db)
        self.repo = PostRepository()
        self.ledger = CreditLedger(db, self.clock)

    def _get_post(self, post_id: int) -> Post:
        post = self.repo.get_post(self.db, post_id)
        if not post:
            raise NotFoundError("Post not found")
        return post

    def unlock_post(self, post_id: int, user: User) -> dict:
        """
        Spend unlock credits to reveal a post author's contacts and open a deal.

        The unlock row, the debit and the contact counter commit together; a
        concurrent duplicate trips the unique constraint, rolls the debit back
        and surfaces as a conflict. Deal creation runs afterwards and never
        undoes a paid unlock.
        """
        post = self._get_post(post_id)

        if not post.author or post.author.is_deactivated:
            raise NotFoundError("Post owner is unavailable")
        if post.author_id == user.id:
            raise ConflictError("You cannot unlock your own post as it's already unlocked for you.")
        if self.repo.has_unlocked(self.db, post.id, user.id):
            raise ConflictError("You have already unlocked this post")

        try:
            self.repo.add_unlock(self.db, post.id, user.id, self.clock.now())
            remaining = self.ledger.debit(
                user.id,
                "unlock",
                post.credit_cost,
                description=f'Unlocked post "{post.title}"',
                related_entity=f"post:{post.id}",
            )
            post.contact_count = (post.contact_count or 0) + 1
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent duplicate unlock of post {post_id} by user {user.id}")
            raise ConflictError("You have already unlocked this post")
        except HTTPException:
            self.db.rollback()
            raise

        logger.info(f"🔓 User {user.id} unlocked post {post.id} ({remaining} unlock credits left)")

        deal_id = None
        try:
            deal = DealService(self.db, self.notifier, self.clock).create_deal(
                post.id, user.id, post.author_id
            )
            deal_id = deal.deal_id
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error creating deal for post {post.id} and user {user.id}: {e}")

        self.notifier.notify(
            post.author_id,
            "post_unlocked",
            "Your Post Was Unlocked",
            f'Someone unlocked your post "{post.title}". Keep the deal status up to date.',
            data={"postId": post.id, "dealId": deal_id},
        )
        self.db.commit()

        invalidate_cache(post_list_keys())
        invalidate_party_caches(user.id, post.author_id)

        author = post.author
        return {
            "message": "Post unlocked successfully",
            "postId": post.id,
            "dealId": deal_id,
            "contactCount": post.contact_count,
            "unlockCredits": remaining,
            "credits": user.credits,
            "author": {
                "id": author.id,
                "name": author.name,
                "email": author.email,
                "phone": author.phone,
                "countryCode": author.country_code,
                "companyName": author.company_name,
                "designation": author.designation,
            },
        }

    def update_deal_toggle_status(self, post_id: int, owner: User, toggle: str) -> dict:
        """
        Post owner's manual outcome.

        Sets deal_toggle_status and deal_result; Success/Fail also resolve every
        open deal on the post through the state machine.
        """
        if toggle not in TOGGLE_STATUSES:
            raise ValidationError(
                f"Invalid deal toggle status. Must be one of: {', '.join(TOGGLE_STATUSES)}"
            )

        post = self._get_post(post_id)
        if post.author_id != owner.id:
            raise AuthorizationError("Only the post owner can update the deal status")

        post.deal_toggle_status = toggle
        post.deal_result = deal_result_for_toggle(toggle)
        self.db.commit()

        resolved = []
        if toggle in (TOGGLE_SUCCESS, TOGGLE_FAIL):
            machine = DealStateMachine(self.db, self.notifier, self.clock)
            for deal in DealRepository.find_open_for_post(self.db, post.id):
                try:
                    machine.resolve_for_post_owner(deal, owner.id, toggle)
                    resolved.append(deal.deal_id)
                except HTTPException as e:
                    logger.warning(f"⚠️ Could not resolve deal {deal.deal_id} from post toggle: {e.detail}")

        logger.info(
            f"✅ Post {post.id} deal toggle set to {toggle} by owner {owner.id}; resolved {len(resolved)} deal(s)"
        )
        return {
            "message": "Deal status updated successfully",
            "dealToggleStatus": post.deal_toggle_status,
            "dealResult": post.deal_result,
            "resolvedDeals": resolved,
        }
