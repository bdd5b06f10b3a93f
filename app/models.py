from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    country_code = Column(String(10), nullable=True)
    company_name = Column(String(255), nullable=True)
    designation = Column(String(255), nullable=True)
    avatar = Column(String(500), nullable=True)
    role = Column(String(20), default="user", nullable=False)  # user, admin
    is_deactivated = Column(Boolean, default=False, nullable=False)

    # Subscription / credit balances
    subscription_plan = Column(String(50), default="Free", nullable=False)
    subscription_expires_at = Column(DateTime, nullable=True)
    credits = Column(Integer, default=1, nullable=False)  # General pool, bonuses/penalties land here
    unlock_credits = Column(Integer, default=1, nullable=False)
    create_credits = Column(Integer, default=1, nullable=False)
    total_penalties = Column(Integer, default=0, nullable=False)  # Count of auto-close penalties

    # Deals workspace counters
    total_deals = Column(Integer, default=0, nullable=False)
    won_deals = Column(Integer, default=0, nullable=False)
    failed_deals = Column(Integer, default=0, nullable=False)
    pending_deals = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    posts = relationship("Post", back_populates="author")
    credit_history = relationship(
        "CreditHistory", back_populates="user", order_by="CreditHistory.id"
    )
    workspace_entries = relationship("DealWorkspaceEntry", back_populates="user")
    earned_badges = relationship(
        "EarnedBadge", back_populates="user", order_by="EarnedBadge.level"
    )
    notifications = relationship("Notification", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class CreditHistory(Base):
    """Ledger trail for every balance mutation"""

    __tablename__ = "credit_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)  # bonus, penalty, purchase, used
    credit_type = Column(String(20), nullable=False, default="general")  # general, unlock, create
    description = Column(String(500), nullable=False)
    related_entity = Column(String(100), nullable=True)  # dealId, postId, ...
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="credit_history")


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    requirement = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    credit_cost = Column(Integer, default=1, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    contact_count = Column(Integer, default=0, nullable=False)

    # Deal projection: Available, In Progress, Completed, Cancelled
    deal_status = Column(String(20), default="Available", nullable=False, index=True)
    # Owner's view of the outcome: Pending, Won, Failed, Provisional
    deal_result = Column(String(20), default="Pending", nullable=False, index=True)
    # Owner toggle: Pending, Success, Fail
    deal_toggle_status = Column(String(20), default="Pending", nullable=False)

    # Validity: Active, Provisional, Expired
    post_status = Column(String(20), default="Active", nullable=False, index=True)
    validity_period = Column(Integer, default=7, nullable=False)  # 7, 15 or 30 days
    expires_at = Column(DateTime, nullable=True, index=True)
    validity_reminder_sent = Column(Boolean, default=False, nullable=False)
    is_expired = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    author = relationship("User", back_populates="posts")
    unlocks = relationship("PostUnlock", back_populates="post")
    deals = relationship("Deal", back_populates="post")


class PostUnlock(Base):
    """One row per prospect that paid to reveal a post's contacts"""

    __tablename__ = "post_unlocks"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_unlock_user"),)

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    unlocked_at = Column(DateTime, server_default=func.now())

    post = relationship("Post", back_populates="unlocks")


class Deal(Base):
    __tablename__ = "deals"
    __table_args__ = (UniqueConstraint("post_id", "unlocker_id", name="uq_deal_post_unlocker"),)

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(String(20), unique=True, index=True, nullable=False)  # DEAL-XXXXXXXX
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    unlocker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # {"unlocker": {"email", "phone", "tempId"}, "author": {...}} - written once at creation
    masked_contacts = Column(JSON, nullable=False)

    # Contacted, Ongoing, Success, Fail, Closed
    status = Column(String(20), default="Contacted", nullable=False, index=True)

    # Mutual confirmation slots for Success/Fail
    success_unlocker_confirmed = Column(Boolean, default=False, nullable=False)
    success_unlocker_confirmed_at = Column(DateTime, nullable=True)
    success_author_confirmed = Column(Boolean, default=False, nullable=False)
    success_author_confirmed_at = Column(DateTime, nullable=True)
    fail_unlocker_confirmed = Column(Boolean, default=False, nullable=False)
    fail_unlocker_confirmed_at = Column(DateTime, nullable=True)
    fail_author_confirmed = Column(Boolean, default=False, nullable=False)
    fail_author_confirmed_at = Column(DateTime, nullable=True)

    # Credit adjustments, applied to both parties once the deal settles
    bonus = Column(Integer, default=0, nullable=False)
    penalty = Column(Integer, default=0, nullable=False)
    credits_settled_at = Column(DateTime, nullable=True)

    last_reminder_sent = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    auto_close_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    chronic_non_update = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    post = relationship("Post", back_populates="deals")
    unlocker = relationship("User", foreign_keys=[unlocker_id])
    author = relationship("User", foreign_keys=[author_id])
    status_history = relationship(
        "DealStatusHistory",
        back_populates="deal",
        order_by="DealStatusHistory.id",
        cascade="all, delete-orphan",
    )

    def role_of(self, user_id: int):
        """Return 'unlocker', 'author' or None for the given user"""
        if user_id == self.unlocker_id:
            return "unlocker"
        if user_id == self.author_id:
            return "author"
        return None


class DealStatusHistory(Base):
    """Append-only audit trail of realized deal status changes"""

    __tablename__ = "deal_status_history"

    id = Column(Integer, primary_key=True, index=True)
    deal_pk = Column(Integer, ForeignKey("deals.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # None for scheduler
    updated_at = Column(DateTime, nullable=False)
    notes = Column(String(2000), nullable=True)
    is_admin_override = Column(Boolean, default=False, nullable=False)
    initiator = Column(String(20), default="participant", nullable=False)

    deal = relationship("Deal", back_populates="status_history")


class DealWorkspaceEntry(Base):
    """Per-user outcome ledger, one row per post"""

    __tablename__ = "deal_workspace_entries"
    __table_args__ = (UniqueConstraint("user_id", "post_id", name="uq_workspace_user_post"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    result = Column(String(20), nullable=False)  # Won, Failed, Pending
    timestamp = Column(DateTime, nullable=False)
    notes = Column(String(500), nullable=True)

    user = relationship("User", back_populates="workspace_entries")


class EarnedBadge(Base):
    __tablename__ = "earned_badges"
    __table_args__ = (UniqueConstraint("user_id", "level", name="uq_badge_user_level"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    level = Column(Integer, nullable=False)  # 10, 20, 50, 100, 150
    earned_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="earned_badges")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(String(2000), nullable=False)
    data = Column(JSON, nullable=True)
    priority = Column(String(20), default="medium", nullable=False)  # low, medium, high
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")
