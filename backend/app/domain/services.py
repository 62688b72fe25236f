"""
Subscription Ledger Service

Records plan subscriptions and, within each, the append-only timeline of
active/paused periods. Every method runs inside the session it was given;
the caller (request dependency or script context) owns the transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import (
    Period,
    PeriodStatus,
    Plan,
    SubscriptionRow,
    SubscriptionSummary,
    TransitionOutcome,
    UserAccount,
    summarize_subscriptions,
    to_naive_utc,
    utc_now,
)
from app.infrastructure.db.repositories.plan_repository import PlanRepository
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.user_repository import UserRepository
from app.infrastructure.exceptions import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


class SubscriptionLedger:
    """
    Service for the subscription lifecycle.

    Handles:
    - Enrollment with an initial open active period
    - Pause/resume transitions with a tagged outcome
    - The user subscription projection and its per-subscription summary
    - Start-date backfill and hard deletes
    """

    def __init__(self, session: AsyncSession, days_per_month: int = 30):
        self._subscriptions = SubscriptionRepository(session)
        self._plans = PlanRepository(session)
        self._users = UserRepository(session)
        self._days_per_month = days_per_month

    # =========================================================================
    # Catalog / accounts
    # =========================================================================

    async def list_plans(self) -> List[Plan]:
        return await self._plans.list_plans()

    async def ensure_plan_catalog(self) -> List[str]:
        return await self._plans.ensure_catalog()

    async def list_users(self, skip: int = 0, limit: int = 100) -> List[UserAccount]:
        return await self._users.list_accounts(skip=skip, limit=limit)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_subscription(self, user_id: int, plan_id: int) -> int:
        """
        Enroll a user in a plan.

        Raises:
            NotFoundError: plan or user does not exist
            DuplicateError: same user, plan and start timestamp already recorded
        """
        subscription_id = await self._subscriptions.create(user_id, plan_id)
        logger.info(
            f"Created subscription {subscription_id} for user {user_id} on plan {plan_id}"
        )
        return subscription_id

    async def pause_subscription(self, subscription_id: int) -> TransitionOutcome:
        """Close the open active period and open a paused one."""
        return await self._transition(
            subscription_id, PeriodStatus.ACTIVE, PeriodStatus.PAUSED
        )

    async def resume_subscription(self, subscription_id: int) -> TransitionOutcome:
        """Close the open paused period and open an active one."""
        return await self._transition(
            subscription_id, PeriodStatus.PAUSED, PeriodStatus.ACTIVE
        )

    async def _transition(
        self,
        subscription_id: int,
        from_status: PeriodStatus,
        to_status: PeriodStatus,
    ) -> TransitionOutcome:
        """
        Move the subscription from one open status to the other.

        The close is a conditional update and the new period is only opened
        if it closed something, both in the caller's transaction. Closed and
        opened periods share one timestamp.
        """
        await self._require_subscription(subscription_id)

        now = utc_now()
        closed = await self._subscriptions.close_open_period(
            subscription_id, from_status, now
        )
        if closed == 0:
            logger.warning(
                f"Subscription {subscription_id} has no open {from_status.value} period; "
                f"{to_status.value} not applied"
            )
            return TransitionOutcome.NO_OPEN_PERIOD

        if closed > 1:
            logger.warning(
                f"Subscription {subscription_id} had {closed} open {from_status.value} periods; all closed"
            )

        await self._subscriptions.open_period(subscription_id, to_status, now)
        logger.info(
            f"Subscription {subscription_id}: {from_status.value} -> {to_status.value}"
        )
        return TransitionOutcome.APPLIED

    async def update_subscription_start_date(
        self,
        subscription_id: int,
        start_date: datetime,
    ) -> None:
        """
        Rewrite the start date of the subscription and all of its periods.

        End dates and statuses are left untouched.
        """
        updated = await self._subscriptions.update_start_date(
            subscription_id, to_naive_utc(start_date)
        )
        if not updated:
            raise self._not_found(subscription_id, "update")
        logger.info(f"Rewrote start date of subscription {subscription_id} to {start_date.isoformat()}")

    async def delete_subscription(self, subscription_id: int) -> None:
        """Hard-delete a subscription together with its periods."""
        deleted = await self._subscriptions.delete(subscription_id)
        if not deleted:
            raise self._not_found(subscription_id, "delete")
        logger.info(f"Deleted subscription {subscription_id}")

    async def delete_subscription_periods(self, subscription_id: int) -> int:
        """Hard-delete the periods of a subscription; returns the count."""
        count = await self._subscriptions.delete_periods(subscription_id)
        logger.info(f"Deleted {count} periods of subscription {subscription_id}")
        return count

    async def find_user_subscription(self, user_id: int, plan_id: int) -> Optional[int]:
        """Id of the user's earliest subscription to a plan, or None."""
        subscription = await self._subscriptions.find_for_user_and_plan(user_id, plan_id)
        return subscription.id if subscription else None

    async def backfill_subscription(
        self,
        user_id: int,
        plan_id: int,
        start_date: datetime,
    ) -> int:
        """
        Replace the user's subscription to a plan with one dated in the past.

        Any existing subscription to the plan is removed first (periods, then
        the subscription). The new one is created and its start date is
        rewritten together with that of its initial period.

        Raises:
            ValidationError: start_date lies in the future
        """
        if to_naive_utc(start_date) > utc_now():
            raise ValidationError(
                "Backfilled start date must not be in the future",
                details={"start_date": start_date.isoformat()},
            )

        existing_id = await self.find_user_subscription(user_id, plan_id)
        if existing_id is not None:
            await self.delete_subscription_periods(existing_id)
            await self.delete_subscription(existing_id)

        subscription_id = await self.create_subscription(user_id, plan_id)
        await self.update_subscription_start_date(subscription_id, start_date)
        return subscription_id

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_user_subscriptions(self, user_id: int) -> List[SubscriptionRow]:
        """Projection rows for every period of every subscription of the user."""
        return await self._subscriptions.list_rows_for_user(user_id)

    async def get_subscription_rows(self, subscription_id: int) -> List[SubscriptionRow]:
        """Projection rows of a single subscription."""
        rows = await self._subscriptions.list_rows_for_subscription(subscription_id)
        if not rows:
            raise self._not_found(subscription_id, "get")
        return rows

    async def get_subscription_periods(self, subscription_id: int) -> List[Period]:
        """Timeline of a single subscription."""
        await self._require_subscription(subscription_id)
        return await self._subscriptions.list_periods(subscription_id)

    async def get_user_subscription_summaries(
        self,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> List[SubscriptionSummary]:
        """Per-subscription summaries with current status and active days."""
        rows = await self.get_user_subscriptions(user_id)
        return summarize_subscriptions(rows, now=now, days_per_month=self._days_per_month)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_subscription(self, subscription_id: int) -> None:
        if await self._subscriptions.get_by_id(subscription_id) is None:
            raise self._not_found(subscription_id, "get")

    @staticmethod
    def _not_found(subscription_id: int, operation: str) -> NotFoundError:
        return NotFoundError(
            f"Subscription {subscription_id} not found",
            operation=operation,
            table="subscriptions",
        )
