"""
Subscription Domain Models

Domain models for the membership ledger following Clean Architecture.
Enums, DTOs, domain entities and the read model that derives a
subscription's current status and active days from its period timeline.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional
from pydantic import BaseModel, ConfigDict, Field


class PlanName(str, Enum):
    """Catalog plan names."""
    STANDARD = "Standard"
    PRO = "Pro"


class PeriodStatus(str, Enum):
    """State of a subscription during one period."""
    ACTIVE = "active"
    PAUSED = "paused"


class UserRole(str, Enum):
    """Account roles."""
    USER = "user"
    ADMIN = "admin"


class TransitionOutcome(str, Enum):
    """Result of a pause/resume request."""
    APPLIED = "applied"
    NO_OPEN_PERIOD = "no_open_period"


# Plans seeded before any subscription can be created (name -> months)
DEFAULT_PLAN_CATALOG = {
    PlanName.STANDARD: 12,
    PlanName.PRO: 12,
}


def utc_now() -> datetime:
    """Current time as naive UTC, the storage convention for all timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Domain Entities
# =============================================================================

class Plan(BaseModel):
    """Catalog entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: PlanName
    duration_months: int


class Period(BaseModel):
    """A contiguous active or paused interval of a subscription."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_date: datetime
    end_date: Optional[datetime] = None
    status: PeriodStatus

    @property
    def is_open(self) -> bool:
        return self.end_date is None


class SubscriptionRow(BaseModel):
    """
    One row of the user subscription projection.

    Subscription and plan columns are always set; period columns are None
    for a subscription that has no periods.
    """
    model_config = ConfigDict(from_attributes=True)

    subscription_id: int
    user_id: int
    plan_id: int
    plan_name: PlanName
    duration_months: int
    start_date: datetime
    period_id: Optional[int] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    status: Optional[PeriodStatus] = None

    def to_period(self) -> Optional[Period]:
        """Extract the period part of the row, if any."""
        if self.period_id is None or self.period_start is None or self.status is None:
            return None
        return Period(
            id=self.period_id,
            start_date=self.period_start,
            end_date=self.period_end,
            status=self.status,
        )


class SubscriptionSummary(BaseModel):
    """Per-subscription view assembled from projection rows."""
    subscription_id: int
    plan_id: int
    plan_name: PlanName
    duration_months: int
    start_date: datetime
    periods: list[Period] = Field(default_factory=list)
    current_status: Optional[PeriodStatus] = None
    active_days: int = 0
    plan_days: int = 0


class UserAccount(BaseModel):
    """Account as seen by the admin listing."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    role: UserRole
    created_at: datetime


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateSubscriptionRequest(BaseModel):
    """Request DTO for enrolling a user in a plan."""
    user_id: int = Field(..., gt=0, description="User to enroll")
    plan_id: int = Field(..., gt=0, description="Catalog plan id")


class SubscriptionCreatedResponse(BaseModel):
    """Response DTO for subscription creation."""
    subscription_id: int


class TransitionResponse(BaseModel):
    """Response DTO for pause/resume."""
    subscription_id: int
    outcome: TransitionOutcome


class StartDateUpdateRequest(BaseModel):
    """Request DTO for rewriting a subscription's start date."""
    start_date: datetime = Field(..., description="New start date (ISO 8601)")


class BackfillRequest(BaseModel):
    """Request DTO for replacing a user's subscription to a plan with a dated one."""
    user_id: int = Field(..., gt=0)
    plan_id: int = Field(..., gt=0)
    start_date: datetime = Field(..., description="Historical start date (ISO 8601)")


# =============================================================================
# Read Model (Business Logic)
# =============================================================================

def _recency_key(period: Period) -> tuple[datetime, int]:
    # Identical start timestamps are resolved by the higher id.
    return (to_naive_utc(period.start_date), period.id)


def current_period(periods: Iterable[Period]) -> Optional[Period]:
    """
    Find the period that represents the subscription's current state.

    The open period (no end date) wins. With several open periods the most
    recent one is taken; with none, the most recently started period.
    """
    periods = list(periods)
    if not periods:
        return None

    open_periods = [p for p in periods if p.is_open]
    candidates = open_periods or periods
    return max(candidates, key=_recency_key)


def current_status(periods: Iterable[Period]) -> Optional[PeriodStatus]:
    """Get the status of the current period, or None without periods."""
    period = current_period(periods)
    return period.status if period else None


def active_days(periods: Iterable[Period], now: Optional[datetime] = None) -> int:
    """
    Total whole days spent in active periods.

    Open periods count up to ``now``. Each period is floored to whole days
    on its own before summing.
    """
    reference = to_naive_utc(now) if now else utc_now()
    total = 0
    for period in periods:
        if period.status != PeriodStatus.ACTIVE:
            continue
        start = to_naive_utc(period.start_date)
        end = to_naive_utc(period.end_date) if period.end_date else reference
        total += max((end - start).days, 0)
    return total


def summarize_subscriptions(
    rows: Iterable[SubscriptionRow],
    now: Optional[datetime] = None,
    days_per_month: int = 30,
) -> list[SubscriptionSummary]:
    """
    Group projection rows into one summary per subscription.

    Subscriptions keep the order of their first row, periods keep row order.
    """
    summaries: dict[int, SubscriptionSummary] = {}

    for row in rows:
        summary = summaries.get(row.subscription_id)
        if summary is None:
            summary = SubscriptionSummary(
                subscription_id=row.subscription_id,
                plan_id=row.plan_id,
                plan_name=row.plan_name,
                duration_months=row.duration_months,
                start_date=row.start_date,
                plan_days=row.duration_months * days_per_month,
            )
            summaries[row.subscription_id] = summary

        period = row.to_period()
        if period is not None:
            summary.periods.append(period)

    for summary in summaries.values():
        summary.current_status = current_status(summary.periods)
        summary.active_days = active_days(summary.periods, now)

    return list(summaries.values())
