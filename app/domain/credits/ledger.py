"""
Credit ledger - atomic per-user balance mutations

Balances: `credits` (general pool, where deal bonuses and penalties land),
`unlock_credits` and `create_credits`. Every mutation appends a CreditHistory
entry. Methods flush but never commit; the caller owns the transaction, and
each user's ledger is its own unit of work.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...shared.clock import system_clock
from ...shared.exceptions import (
    InsufficientCredits,
    SubscriptionExpired,
    UserNotFound,
    ValidationError,
)
from .repository import CreditRepository

logger = logging.getLogger(__name__)

# credit_type -> User column
BALANCE_FIELDS = {
    "general": "credits",
    "unlock": "unlock_credits",
    "create": "create_credits",
}


class CreditLedger:
    """Service layer for credit balance mutations"""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or system_clock
        self.repo = CreditRepository()

    def _get_user(self, user_id: int) -> User:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    @staticmethod
    def _balance_field(credit_type: str) -> str:
        field = BALANCE_FIELDS.get(credit_type)
        if not field:
            raise ValidationError(
                f"Invalid credit type. Must be one of: {', '.join(BALANCE_FIELDS)}"
            )
        return field

    def adjust(
        self,
        user_id: int,
        bonus: int = 0,
        penalty: int = 0,
        description: Optional[str] = None,
        related_entity: Optional[str] = None,
    ) -> int:
        """
        Apply a bonus and/or penalty to the general pool.

        balance = max(0, balance + bonus - penalty)

        Returns:
            The new general balance
        """
        user = self._get_user(user_id)
        if not bonus and not penalty:
            return user.credits

        before = user.credits or 0
        user.credits = max(0, before + bonus - penalty)
        now = self.clock.now()

        if bonus:
            self.repo.add_history(
                self.db,
                user.id,
                bonus,
                "bonus",
                description or f"Deal bonus {related_entity or ''}".strip(),
                related_entity=related_entity,
                created_at=now,
            )
        if penalty:
            self.repo.add_history(
                self.db,
                user.id,
                penalty,
                "penalty",
                description or f"Deal penalty {related_entity or ''}".strip(),
                related_entity=related_entity,
                created_at=now,
            )

        self.db.flush()
        logger.info(
            f"💰 Credits adjusted for user {user.id}: {before} -> {user.credits} "
            f"(bonus={bonus}, penalty={penalty}, ref={related_entity})"
        )
        return user.credits

    def debit(
        self,
        user_id: int,
        credit_type: str,
        amount: int = 1,
        description: Optional[str] = None,
        related_entity: Optional[str] = None,
    ) -> int:
        """
        Spend credits of one type.

        Raises:
            SubscriptionExpired: subscription expiry has passed (checked first)
            InsufficientCredits: balance < amount

        Returns:
            Remaining balance of that type
        """
        field = self._balance_field(credit_type)
        user = self._get_user(user_id)
        now = self.clock.now()

        if user.subscription_expires_at and now > user.subscription_expires_at:
            logger.warning(f"⚠️ User {user.id} attempted to spend credits on an expired subscription")
            raise SubscriptionExpired()

        amount = max(int(amount or 1), 1)
        balance = getattr(user, field) or 0
        if balance < amount:
            logger.warning(
                f"⚠️ User {user.id} has insufficient {credit_type} credits: {balance} < {amount}"
            )
            raise InsufficientCredits(credit_type, amount)

        setattr(user, field, balance - amount)
        self.repo.add_history(
            self.db,
            user.id,
            amount,
            "used",
            description or f"Spent {amount} {credit_type} credit(s)",
            credit_type=credit_type,
            related_entity=related_entity,
            created_at=now,
        )
        self.db.flush()
        return getattr(user, field)

    def grant(
        self,
        user_id: int,
        credit_type: str,
        amount: int,
        description: Optional[str] = None,
        related_entity: Optional[str] = None,
    ) -> int:
        """Credit top-up (plan purchase). Returns the new balance of that type."""
        field = self._balance_field(credit_type)
        if amount < 1:
            raise ValidationError("Top-up amount must be at least 1")

        user = self._get_user(user_id)
        setattr(user, field, (getattr(user, field) or 0) + amount)
        self.repo.add_history(
            self.db,
            user.id,
            amount,
            "purchase",
            description or f"Purchased {amount} {credit_type} credit(s)",
            credit_type=credit_type,
            related_entity=related_entity,
            created_at=self.clock.now(),
        )
        self.db.flush()
        logger.info(f"✅ Granted {amount} {credit_type} credit(s) to user {user.id}")
        return getattr(user, field)

    def get_balances(self, user_id: int) -> dict:
        user = self._get_user(user_id)
        return {
            "credits": user.credits,
            "unlockCredits": user.unlock_credits,
            "createCredits": user.create_credits,
            "subscriptionPlan": user.subscription_plan,
            "subscriptionExpiresAt": user.subscription_expires_at,
            "totalPenalties": user.total_penalties,
        }

    def get_history(self, user_id: int, limit: int = 50):
        self._get_user(user_id)
        return self.repo.get_history(self.db, user_id, limit)
