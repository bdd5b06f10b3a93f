"""
Unit tests for the post projection, contact masking and the user deal history aggregator
"""
import pytest

from app.domain.deals.contacts import build_masked_contacts, mask_email, mask_phone, temp_contact_id
from app.domain.deals.history import UserDealHistoryAggregator
from app.domain.deals.projection import (
    apply_to_post,
    deal_result_for_toggle,
    project_post_status,
)
from app.models import DealWorkspaceEntry, EarnedBadge, User


@pytest.fixture
def aggregator(db, notifier, clock):
    return UserDealHistoryAggregator(db, notifier, clock)


@pytest.mark.unit
class TestPostProjection:
    """Tests for deal status -> post status mapping"""

    @pytest.mark.parametrize(
        "deal_status,expected",
        [
            ("Contacted", "In Progress"),
            ("Ongoing", "In Progress"),
            ("Success", "Completed"),
            ("Fail", "Completed"),
            ("Closed", "Cancelled"),
            ("Something else", "Available"),
        ],
    )
    def test_project_post_status(self, deal_status, expected):
        assert project_post_status(deal_status) == expected

    @pytest.mark.parametrize(
        "toggle,expected", [("Success", "Won"), ("Fail", "Failed"), ("Pending", "Pending")]
    )
    def test_deal_result_for_toggle(self, toggle, expected):
        assert deal_result_for_toggle(toggle) == expected

    def test_apply_to_post(self, db, post):
        assert apply_to_post(db, post.id, "Closed") == "Cancelled"
        assert post.deal_status == "Cancelled"

    def test_apply_to_missing_post(self, db):
        assert apply_to_post(db, 404, "Ongoing") is None


@pytest.mark.unit
class TestContactMasking:
    """Tests for masked contact snapshots"""

    def test_mask_email(self):
        assert mask_email("john.doe@acme.com") == "j***@acme.com"
        assert mask_email(None) == ""
        assert mask_email("") == ""

    def test_mask_phone(self):
        assert mask_phone("9876543210") == "98****10"
        assert mask_phone("123") == "123"
        assert mask_phone(None) is None

    def test_temp_id_truncates_ids(self):
        assert temp_contact_id(123456789012, 42) == "temp_12345678_42"

    def test_deal_stores_masked_snapshot(self, deal, unlocker, author, post):
        """
        GIVEN a newly created deal
        WHEN its masked contacts are read
        THEN both parties are masked and carry temporary ids
        """
        contacts = deal.masked_contacts

        assert contacts["unlocker"]["email"] == "p***@buyer.com"
        assert contacts["author"]["email"] == "a***@supplier.com"
        assert contacts["unlocker"]["tempId"] == f"temp_{unlocker.id}_{post.id}"
        assert contacts == build_masked_contacts(unlocker, author, post.id)


@pytest.mark.unit
class TestRecordOutcome:
    """Tests for the per-post workspace upsert"""

    def test_new_entry_increments_counters(self, db, aggregator, make_user, post):
        user = make_user()

        assert aggregator.record_outcome(user.id, post.id, "Won") is True
        db.commit()

        assert (user.total_deals, user.won_deals, user.failed_deals) == (1, 1, 0)

    def test_same_result_is_noop(self, db, aggregator, make_user, post):
        user = make_user()
        aggregator.record_outcome(user.id, post.id, "Won")

        assert aggregator.record_outcome(user.id, post.id, "Won") is False
        assert (user.total_deals, user.won_deals) == (1, 1)

    def test_changed_result_moves_between_buckets(self, db, aggregator, make_user, post):
        """
        GIVEN a post recorded as Won
        WHEN the same post is recorded as Failed
        THEN Won is decremented, Failed incremented and the total is unchanged
        """
        user = make_user()
        aggregator.record_outcome(user.id, post.id, "Won")

        aggregator.record_outcome(user.id, post.id, "Failed")
        db.commit()

        assert (user.total_deals, user.won_deals, user.failed_deals) == (1, 0, 1)
        entries = db.query(DealWorkspaceEntry).filter(DealWorkspaceEntry.user_id == user.id).all()
        assert [e.result for e in entries] == ["Failed"]
        assert entries[0].notes == "Deal marked as failed"

    def test_counters_never_go_negative(self, db, aggregator, make_user, post):
        user = make_user(won_deals=0, total_deals=0)
        db.add(DealWorkspaceEntry(user_id=user.id, post_id=post.id, result="Won", timestamp=post.expires_at))
        db.commit()

        aggregator.record_outcome(user.id, post.id, "Failed")

        assert user.won_deals == 0
        assert user.failed_deals == 1


@pytest.mark.unit
class TestBadges:
    """Tests for won-deal milestone badges"""

    def test_crossing_thresholds_awards_each_level_once(self, db, aggregator, make_user, notifier):
        """
        GIVEN a user with 20 won deals and no badges
        WHEN badges are evaluated twice
        THEN levels 10 and 20 are awarded once each, with a notification per badge
        """
        user = make_user(won_deals=20)

        assert aggregator.evaluate_badges(user.id) == [10, 20]
        assert aggregator.evaluate_badges(user.id) == []
        db.commit()

        levels = [b.level for b in db.query(EarnedBadge).filter(EarnedBadge.user_id == user.id)]
        assert sorted(levels) == [10, 20]
        assert len(notifier.of_type("badge_earned")) == 2

    def test_badges_are_never_revoked(self, db, aggregator, make_user, make_post, author):
        """
        GIVEN a user who earned the 10-win badge
        WHEN a post they had won is corrected to Failed, dropping them to 9 wins
        THEN the badge remains
        """
        user = make_user()
        posts = [make_post(author, title=f"Lot {i}") for i in range(10)]
        for p in posts:
            aggregator.record_outcome(user.id, p.id, "Won")
        assert aggregator.evaluate_badges(user.id) == [10]

        aggregator.record_outcome(user.id, posts[0].id, "Failed")
        aggregator.evaluate_badges(user.id)
        db.commit()

        assert db.get(User, user.id).won_deals == 9
        assert db.query(EarnedBadge).filter(EarnedBadge.user_id == user.id).count() == 1
