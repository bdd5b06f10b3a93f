"""Credit repository - Database operations for balances and credit history"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CreditHistory, User


class CreditRepository:
    """Repository for credit ledger database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def add_history(
        db: Session,
        user_id: int,
        amount: int,
        entry_type: str,
        description: str,
        credit_type: str = "general",
        related_entity: Optional[str] = None,
        created_at=None,
    ) -> CreditHistory:
        """Append a credit history entry (flushed, not committed)"""
        entry = CreditHistory(
            user_id=user_id,
            amount=amount,
            type=entry_type,
            credit_type=credit_type,
            description=description,
            related_entity=related_entity,
        )
        if created_at is not None:
            entry.created_at = created_at
        db.add(entry)
        return entry

    @staticmethod
    def get_history(db: Session, user_id: int, limit: int = 50) -> list[CreditHistory]:
        """Newest entries first"""
        return (
            db.query(CreditHistory)
            .filter(CreditHistory.user_id == user_id)
            .order_by(CreditHistory.id.desc())
            .limit(limit)
            .all()
        )
