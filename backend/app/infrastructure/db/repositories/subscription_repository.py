"""
Subscription Repository

Data access layer for subscriptions and their period timeline.
Follows Repository pattern for Clean Architecture; the transition algorithm
built on these primitives lives in app.domain.services.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import (
    Period,
    PeriodStatus,
    SubscriptionRow,
    utc_now,
)
from app.infrastructure.db.models.plan import PlanModel
from app.infrastructure.db.models.subscription import (
    SubscriptionModel,
    SubscriptionPeriodModel,
)
from app.infrastructure.db.models.user import User
from app.infrastructure.exceptions import (
    DatabaseError,
    DuplicateError,
    NotFoundError,
)


logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Repository for subscription and subscription period rows.

    All methods work inside the caller's session; nothing is committed here.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    @contextmanager
    def _store_errors(self, operation: str, table: str) -> Iterator[None]:
        """Surface unexpected store failures as DatabaseError."""
        try:
            yield
        except IntegrityError as e:
            raise DuplicateError(
                f"Constraint rejected {operation} on {table}",
                operation=operation,
                table=table,
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Store failure during {operation} on {table}: {e}")
            raise DatabaseError(
                f"Failed to {operation} {table}",
                operation=operation,
                table=table,
                original_error=e,
            ) from e

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_id(self, subscription_id: int) -> Optional[SubscriptionModel]:
        with self._store_errors("get", "subscriptions"):
            return await self.session.get(SubscriptionModel, subscription_id)

    async def find_for_user_and_plan(
        self,
        user_id: int,
        plan_id: int,
    ) -> Optional[SubscriptionModel]:
        """Earliest subscription of a user to a plan, or None."""
        stmt = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.plan_id == plan_id,
            )
            .order_by(SubscriptionModel.start_date, SubscriptionModel.id)
            .limit(1)
        )
        with self._store_errors("get", "subscriptions"):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _projection():
        """subscription JOIN plan LEFT JOIN period, in timeline order."""
        return (
            select(
                SubscriptionModel.id.label("subscription_id"),
                SubscriptionModel.user_id,
                SubscriptionModel.plan_id,
                PlanModel.name.label("plan_name"),
                PlanModel.duration_months,
                SubscriptionModel.start_date,
                SubscriptionPeriodModel.id.label("period_id"),
                SubscriptionPeriodModel.start_date.label("period_start"),
                SubscriptionPeriodModel.end_date.label("period_end"),
                SubscriptionPeriodModel.status,
            )
            .join(PlanModel, SubscriptionModel.plan_id == PlanModel.id)
            .outerjoin(
                SubscriptionPeriodModel,
                SubscriptionPeriodModel.subscription_id == SubscriptionModel.id,
            )
            .order_by(
                SubscriptionModel.start_date,
                SubscriptionModel.id,
                SubscriptionPeriodModel.start_date,
                SubscriptionPeriodModel.id,
            )
        )

    async def _fetch_rows(self, stmt) -> List[SubscriptionRow]:
        with self._store_errors("list", "subscriptions"):
            result = await self.session.execute(stmt)
        return [SubscriptionRow(**row) for row in result.mappings().all()]

    async def list_rows_for_user(self, user_id: int) -> List[SubscriptionRow]:
        """
        Left-join projection of every period of every subscription of a user.

        Ordered by subscription start date, then period start date. Ties are
        broken by id so each subscription's rows stay contiguous.
        """
        stmt = self._projection().where(SubscriptionModel.user_id == user_id)
        return await self._fetch_rows(stmt)

    async def list_rows_for_subscription(self, subscription_id: int) -> List[SubscriptionRow]:
        """The same projection restricted to one subscription."""
        stmt = self._projection().where(SubscriptionModel.id == subscription_id)
        return await self._fetch_rows(stmt)

    async def list_periods(self, subscription_id: int) -> List[Period]:
        """Periods of a subscription in timeline order."""
        stmt = (
            select(SubscriptionPeriodModel)
            .where(SubscriptionPeriodModel.subscription_id == subscription_id)
            .order_by(SubscriptionPeriodModel.start_date, SubscriptionPeriodModel.id)
        )
        with self._store_errors("list", "subscription_periods"):
            result = await self.session.execute(stmt)
        return [
            Period(
                id=model.id,
                start_date=model.start_date,
                end_date=model.end_date,
                status=PeriodStatus(model.status),
            )
            for model in result.scalars().all()
        ]

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create(
        self,
        user_id: int,
        plan_id: int,
        started_at: Optional[datetime] = None,
    ) -> int:
        """
        Insert a subscription and its initial open active period.

        A foreign-key rejection rolls the session back and is reported as
        NotFoundError for whichever of plan/user is missing.

        Returns:
            The new subscription id
        """
        now = started_at or utc_now()
        subscription = SubscriptionModel(user_id=user_id, plan_id=plan_id, start_date=now)

        try:
            self.session.add(subscription)
            await self.session.flush()
            await self._insert_period(subscription.id, PeriodStatus.ACTIVE, now)
        except IntegrityError as e:
            await self.session.rollback()
            with self._store_errors("get", "subscriptions"):
                error = await self._diagnose_rejected_insert(e, user_id, plan_id)
            raise error from e
        except SQLAlchemyError as e:
            logger.error(f"Store failure creating subscription for user {user_id}: {e}")
            raise DatabaseError(
                "Failed to create subscription",
                operation="create",
                table="subscriptions",
                original_error=e,
            ) from e

        return subscription.id

    async def _diagnose_rejected_insert(
        self,
        error: IntegrityError,
        user_id: int,
        plan_id: int,
    ) -> DatabaseError:
        if await self.session.get(PlanModel, plan_id) is None:
            return NotFoundError(
                f"Plan {plan_id} not found",
                operation="create",
                table="plans",
                original_error=error,
            )
        if await self.session.get(User, user_id) is None:
            return NotFoundError(
                f"User {user_id} not found",
                operation="create",
                table="users",
                original_error=error,
            )
        return DuplicateError(
            f"User {user_id} already has a subscription to plan {plan_id} starting at that time",
            operation="create",
            table="subscriptions",
            original_error=error,
        )

    async def close_open_period(
        self,
        subscription_id: int,
        status: PeriodStatus,
        ended_at: datetime,
    ) -> int:
        """
        Stamp the end date of the open period with the given status.

        Single conditional UPDATE, so a concurrent caller can never close
        the same period twice.

        Returns:
            Number of periods closed (0 when no such open period exists)
        """
        stmt = (
            update(SubscriptionPeriodModel)
            .where(
                SubscriptionPeriodModel.subscription_id == subscription_id,
                SubscriptionPeriodModel.status == status.value,
                SubscriptionPeriodModel.end_date.is_(None),
            )
            .values(end_date=ended_at)
        )
        with self._store_errors("update", "subscription_periods"):
            result = await self.session.execute(stmt)
        return result.rowcount

    async def open_period(
        self,
        subscription_id: int,
        status: PeriodStatus,
        started_at: datetime,
    ) -> int:
        """
        Insert a new open period and return its id.

        Raises:
            NotFoundError: the subscription is gone (e.g. deleted concurrently)
            DatabaseError: any other store failure
        """
        try:
            return await self._insert_period(subscription_id, status, started_at)
        except IntegrityError as e:
            raise NotFoundError(
                f"Subscription {subscription_id} not found",
                operation="create",
                table="subscription_periods",
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Store failure opening period of subscription {subscription_id}: {e}")
            raise DatabaseError(
                "Failed to create subscription_periods",
                operation="create",
                table="subscription_periods",
                original_error=e,
            ) from e

    async def _insert_period(
        self,
        subscription_id: int,
        status: PeriodStatus,
        started_at: datetime,
    ) -> int:
        period = SubscriptionPeriodModel(
            subscription_id=subscription_id,
            start_date=started_at,
            end_date=None,
            status=status.value,
        )
        self.session.add(period)
        await self.session.flush()
        return period.id

    async def update_start_date(self, subscription_id: int, start_date: datetime) -> bool:
        """
        Rewrite the start date of a subscription and of all its periods.

        Returns:
            False if the subscription does not exist
        """
        with self._store_errors("update", "subscriptions"):
            result = await self.session.execute(
                update(SubscriptionModel)
                .where(SubscriptionModel.id == subscription_id)
                .values(start_date=start_date)
            )
            if result.rowcount == 0:
                return False

            await self.session.execute(
                update(SubscriptionPeriodModel)
                .where(SubscriptionPeriodModel.subscription_id == subscription_id)
                .values(start_date=start_date)
            )
        return True

    async def delete_periods(self, subscription_id: int) -> int:
        """Delete every period of a subscription; returns the count."""
        with self._store_errors("delete", "subscription_periods"):
            result = await self.session.execute(
                delete(SubscriptionPeriodModel)
                .where(SubscriptionPeriodModel.subscription_id == subscription_id)
            )
        return result.rowcount

    async def delete(self, subscription_id: int) -> bool:
        """
        Delete a subscription and its periods.

        Returns:
            False if the subscription does not exist
        """
        await self.delete_periods(subscription_id)
        with self._store_errors("delete", "subscriptions"):
            result = await self.session.execute(
                delete(SubscriptionModel)
                .where(SubscriptionModel.id == subscription_id)
            )
        return result.rowcount > 0
