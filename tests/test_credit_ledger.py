"""
Unit tests for the credit ledger
"""
from datetime import timedelta

import pytest

from app.domain.credits.ledger import CreditLedger
from app.models import CreditHistory
from app.shared.exceptions import (
    InsufficientCredits,
    SubscriptionExpired,
    UserNotFound,
    ValidationError,
)


@pytest.fixture
def ledger(db, clock):
    return CreditLedger(db, clock)


def history_for(db, user_id):
    return db.query(CreditHistory).filter(CreditHistory.user_id == user_id).order_by(CreditHistory.id).all()


@pytest.mark.unit
class TestAdjust:
    """Tests for bonus/penalty adjustments on the general pool"""

    def test_bonus_adds_and_records_entry(self, db, ledger, make_user):
        """
        GIVEN a user with 10 credits
        WHEN a bonus of 5 is applied
        THEN the balance is 15 and one bonus entry is recorded
        """
        user = make_user(credits=10)

        balance = ledger.adjust(user.id, bonus=5, related_entity="DEAL-ABCDEF12")
        db.commit()

        assert balance == 15
        entries = history_for(db, user.id)
        assert [(e.type, e.amount, e.related_entity) for e in entries] == [
            ("bonus", 5, "DEAL-ABCDEF12")
        ]

    def test_penalty_is_floor_clamped_at_zero(self, db, ledger, make_user):
        """
        GIVEN a user with 3 credits
        WHEN a penalty of 5 is applied
        THEN the balance is 0, never negative, and the entry records the full penalty
        """
        user = make_user(credits=3)

        balance = ledger.adjust(user.id, penalty=5)
        db.commit()

        assert balance == 0
        entries = history_for(db, user.id)
        assert [(e.type, e.amount) for e in entries] == [("penalty", 5)]

    def test_bonus_and_penalty_together(self, db, ledger, make_user):
        """
        GIVEN a deal carrying both a bonus and a penalty
        WHEN both are applied at once
        THEN the net change lands and two entries are recorded
        """
        user = make_user(credits=4)

        balance = ledger.adjust(user.id, bonus=1, penalty=5)

        assert balance == 0
        assert [e.type for e in history_for(db, user.id)] == ["bonus", "penalty"]

    def test_zero_adjustment_is_noop(self, db, ledger, make_user):
        """
        GIVEN a user
        WHEN adjust is called with no bonus and no penalty
        THEN nothing changes and no history is written
        """
        user = make_user(credits=7)

        assert ledger.adjust(user.id) == 7
        assert history_for(db, user.id) == []

    def test_missing_user(self, ledger):
        """
        GIVEN no such user
        WHEN adjust is called
        THEN UserNotFound is raised with a 404 status
        """
        with pytest.raises(UserNotFound) as exc:
            ledger.adjust(999, bonus=1)
        assert exc.value.status_code == 404


@pytest.mark.unit
class TestDebit:
    """Tests for spending typed credits"""

    def test_debit_unlock_credits(self, db, ledger, make_user):
        """
        GIVEN a user with 5 unlock credits
        WHEN 2 unlock credits are spent
        THEN 3 remain, the general pool is untouched and a used entry is written
        """
        user = make_user(unlock_credits=5, credits=10)

        remaining = ledger.debit(user.id, "unlock", 2, related_entity="post:1")
        db.commit()

        assert remaining == 3
        db.refresh(user)
        assert user.credits == 10
        entry = history_for(db, user.id)[0]
        assert (entry.type, entry.credit_type, entry.amount) == ("used", "unlock", 2)

    def test_insufficient_balance(self, ledger, make_user):
        """
        GIVEN a user with 1 create credit
        WHEN 2 are requested
        THEN InsufficientCredits (403) is raised and the balance is unchanged
        """
        user = make_user(create_credits=1)

        with pytest.raises(InsufficientCredits) as exc:
            ledger.debit(user.id, "create", 2)

        assert exc.value.status_code == 403
        assert user.create_credits == 1

    def test_expired_subscription_checked_before_balance(self, ledger, make_user, clock):
        """
        GIVEN a user with no credits and an expired subscription
        WHEN a debit is attempted
        THEN SubscriptionExpired wins over InsufficientCredits
        """
        user = make_user(unlock_credits=0, subscription_expires_at=clock.now() - timedelta(days=1))

        with pytest.raises(SubscriptionExpired):
            ledger.debit(user.id, "unlock", 1)

    def test_amount_below_one_is_coerced(self, ledger, make_user):
        """
        GIVEN a post with a zero credit cost
        WHEN it is debited
        THEN one credit is still spent
        """
        user = make_user(unlock_credits=2)

        assert ledger.debit(user.id, "unlock", 0) == 1

    def test_unknown_credit_type(self, ledger, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            ledger.debit(user.id, "gold", 1)


@pytest.mark.unit
class TestGrantAndQueries:
    """Tests for top-ups, balances and history"""

    def test_grant_records_purchase(self, db, ledger, make_user):
        """
        GIVEN a user with 1 unlock credit
        WHEN a plan purchase grants 10 more
        THEN the balance is 11 and a purchase entry is written
        """
        user = make_user(unlock_credits=1)

        assert ledger.grant(user.id, "unlock", 10, related_entity="plan:pro") == 11
        assert history_for(db, user.id)[0].type == "purchase"

    def test_grant_rejects_non_positive(self, ledger, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            ledger.grant(user.id, "general", 0)

    def test_balances_and_history_newest_first(self, db, ledger, make_user):
        """
        GIVEN several ledger mutations
        WHEN balances and history are read
        THEN balances reflect them and history is newest first
        """
        user = make_user(credits=10, unlock_credits=5, create_credits=1)
        ledger.adjust(user.id, bonus=3)
        ledger.debit(user.id, "unlock", 1)
        db.commit()

        balances = ledger.get_balances(user.id)
        assert balances["credits"] == 13
        assert balances["unlockCredits"] == 4
        assert balances["createCredits"] == 1
        assert [e.type for e in ledger.get_history(user.id)] == ["used", "bonus"]
