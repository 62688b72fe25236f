"""
Subscription Database Models

SQLModel tables for subscriptions and their active/paused period timeline.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlmodel import Field

from app.domain.subscription import utc_now
from app.infrastructure.db.models.base import IntIdMixin


class SubscriptionModel(IntIdMixin, table=True):
    """
    Subscription table: one user's enrollment in a plan.

    Maps to the 'subscriptions' table. Removing the user removes the row.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "plan_id", "start_date", name="uq_subscriptions_user_plan_start"),
        {"sqlite_autoincrement": True},
    )

    user_id: int = Field(
        ...,
        sa_column=Column(
            "user_id",
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        ),
        description="Owning user"
    )
    plan_id: int = Field(
        ...,
        sa_column=Column(
            "plan_id",
            Integer,
            ForeignKey("plans.id"),
            nullable=False
        ),
        description="Catalog plan"
    )
    start_date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
        description="Enrollment start (UTC)"
    )


class SubscriptionPeriodModel(IntIdMixin, table=True):
    """
    Subscription period table.

    At most one row per subscription has a NULL end_date; that row is the
    subscription's current state.
    """

    __tablename__ = "subscription_periods"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'paused')", name="ck_subscription_periods_status"),
        Index("ix_subscription_periods_open", "subscription_id", "status", "end_date"),
        {"sqlite_autoincrement": True},
    )

    subscription_id: int = Field(
        ...,
        sa_column=Column(
            "subscription_id",
            Integer,
            ForeignKey("subscriptions.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        ),
        description="Parent subscription"
    )
    start_date: datetime = Field(
        ...,
        sa_column=Column(DateTime, nullable=False),
        description="Period start (UTC)"
    )
    end_date: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
        description="Period end (UTC); NULL while ongoing"
    )
    status: str = Field(
        ...,
        sa_column=Column(String(20), nullable=False),
        description="'active' or 'paused'"
    )
