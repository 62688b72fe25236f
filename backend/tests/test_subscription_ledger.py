"""
Integration Tests for Core Business Flow (Subscription Ledger)

Verifies against an in-memory store:
- Enrollment opens exactly one active period
- Pause/resume keep at most one open period and report their outcome
- The user projection ordering and the delete cascade
- Start-date rewrite and historical backfill
- Error handling for unknown plans, users and subscriptions
- Concurrent pauses against a file-backed store
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select

from app.domain.services import SubscriptionLedger
from app.domain.subscription import PeriodStatus, PlanName, TransitionOutcome
from app.infrastructure.db import database
from app.infrastructure.db.models import SubscriptionModel, SubscriptionPeriodModel, User
from app.infrastructure.db.repositories.plan_repository import PlanRepository
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.exceptions import (
    DatabaseError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)


def _open_periods(rows):
    return [row for row in rows if row.period_end is None]


class TestSubscriptionLifecycle:

    @pytest.fixture
    def ledger(self, db_session):
        return SubscriptionLedger(db_session)

    @pytest.mark.asyncio
    async def test_create_opens_single_active_period(self, ledger, make_user, plan_ids):
        """Enrollment yields exactly one period: active, no end date."""
        user_id = await make_user()

        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])

        rows = await ledger.get_user_subscriptions(user_id)
        assert len(rows) == 1
        assert rows[0].subscription_id == subscription_id
        assert rows[0].status == PeriodStatus.ACTIVE
        assert rows[0].period_end is None
        assert rows[0].plan_name == PlanName.STANDARD
        assert rows[0].duration_months == 12
        assert rows[0].period_start == rows[0].start_date

    @pytest.mark.asyncio
    async def test_pause_then_resume_timeline(self, ledger, make_user, plan_ids):
        """active -> paused -> active builds a three-period history."""
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.PRO])

        assert await ledger.pause_subscription(subscription_id) == TransitionOutcome.APPLIED
        rows = await ledger.get_user_subscriptions(user_id)
        assert [row.status for row in rows] == [PeriodStatus.ACTIVE, PeriodStatus.PAUSED]
        assert rows[0].period_end is not None
        assert rows[0].period_end >= rows[0].period_start
        assert rows[1].period_end is None
        # Closed and opened periods share one timestamp
        assert rows[1].period_start == rows[0].period_end

        assert await ledger.resume_subscription(subscription_id) == TransitionOutcome.APPLIED
        rows = await ledger.get_user_subscriptions(user_id)
        assert [row.status for row in rows] == [
            PeriodStatus.ACTIVE,
            PeriodStatus.PAUSED,
            PeriodStatus.ACTIVE,
        ]
        assert rows[1].period_end is not None
        assert _open_periods(rows) == [rows[2]]

    @pytest.mark.asyncio
    async def test_pause_twice_reports_no_open_period(self, ledger, make_user, plan_ids):
        """Second pause changes nothing and says so."""
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])

        assert await ledger.pause_subscription(subscription_id) == TransitionOutcome.APPLIED
        before = await ledger.get_user_subscriptions(user_id)

        assert await ledger.pause_subscription(subscription_id) == TransitionOutcome.NO_OPEN_PERIOD
        after = await ledger.get_user_subscriptions(user_id)

        assert after == before
        open_rows = _open_periods(after)
        assert len(open_rows) == 1
        assert open_rows[0].status == PeriodStatus.PAUSED

    @pytest.mark.asyncio
    async def test_resume_active_subscription_is_no_op(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])

        outcome = await ledger.resume_subscription(subscription_id)

        assert outcome == TransitionOutcome.NO_OPEN_PERIOD
        assert len(await ledger.get_subscription_periods(subscription_id)) == 1

    @pytest.mark.asyncio
    async def test_at_most_one_open_period_after_any_sequence(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.PRO])

        for action in ["pause", "pause", "resume", "resume", "pause", "resume", "pause"]:
            if action == "pause":
                await ledger.pause_subscription(subscription_id)
            else:
                await ledger.resume_subscription(subscription_id)

            periods = await ledger.get_subscription_periods(subscription_id)
            assert len([p for p in periods if p.is_open]) == 1

        periods = await ledger.get_subscription_periods(subscription_id)
        assert len(periods) == 6
        assert periods[-1].status == PeriodStatus.PAUSED

    @pytest.mark.asyncio
    async def test_transition_on_unknown_subscription(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.pause_subscription(9999)
        with pytest.raises(NotFoundError):
            await ledger.resume_subscription(9999)

    @pytest.mark.asyncio
    async def test_anomalous_double_open_periods_are_all_closed(
        self, ledger, db_session, make_user, plan_ids
    ):
        """Legacy data with two open active periods still pauses cleanly."""
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        repository = SubscriptionRepository(db_session)
        await repository.open_period(subscription_id, PeriodStatus.ACTIVE, datetime(2024, 1, 1))

        assert await ledger.pause_subscription(subscription_id) == TransitionOutcome.APPLIED

        periods = await ledger.get_subscription_periods(subscription_id)
        open_periods = [p for p in periods if p.is_open]
        assert len(open_periods) == 1
        assert open_periods[0].status == PeriodStatus.PAUSED


class TestSubscriptionProjection:

    @pytest.fixture
    def ledger(self, db_session):
        return SubscriptionLedger(db_session)

    @pytest.mark.asyncio
    async def test_rows_grouped_and_ordered(self, ledger, make_user, plan_ids):
        """Plan A with 2 periods and Plan B with 1 give 3 rows in order."""
        user_id = await make_user()
        first = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        await ledger.pause_subscription(first)
        second = await ledger.create_subscription(user_id, plan_ids[PlanName.PRO])

        rows = await ledger.get_user_subscriptions(user_id)

        assert [row.subscription_id for row in rows] == [first, first, second]
        assert [row.status for row in rows] == [
            PeriodStatus.ACTIVE,
            PeriodStatus.PAUSED,
            PeriodStatus.ACTIVE,
        ]
        assert rows[0].start_date <= rows[2].start_date

    @pytest.mark.asyncio
    async def test_other_users_rows_excluded(self, ledger, make_user, plan_ids):
        owner = await make_user()
        other = await make_user()
        await ledger.create_subscription(owner, plan_ids[PlanName.STANDARD])

        assert await ledger.get_user_subscriptions(other) == []

    @pytest.mark.asyncio
    async def test_subscription_without_periods_appears_once(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.PRO])

        removed = await ledger.delete_subscription_periods(subscription_id)
        rows = await ledger.get_user_subscriptions(user_id)

        assert removed == 1
        assert len(rows) == 1
        assert rows[0].period_id is None
        assert rows[0].status is None

    @pytest.mark.asyncio
    async def test_summaries(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        await ledger.pause_subscription(subscription_id)

        summaries = await ledger.get_user_subscription_summaries(user_id)

        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.subscription_id == subscription_id
        assert summary.current_status == PeriodStatus.PAUSED
        assert summary.active_days == 0
        assert summary.plan_days == 360
        assert len(summary.periods) == 2


class TestSubscriptionMaintenance:

    @pytest.fixture
    def ledger(self, db_session):
        return SubscriptionLedger(db_session)

    @pytest.mark.asyncio
    async def test_delete_removes_subscription_and_periods(
        self, ledger, db_session, make_user, plan_ids
    ):
        user_id = await make_user()
        kept = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        removed = await ledger.create_subscription(user_id, plan_ids[PlanName.PRO])
        await ledger.pause_subscription(removed)

        await ledger.delete_subscription(removed)

        rows = await ledger.get_user_subscriptions(user_id)
        assert {row.subscription_id for row in rows} == {kept}
        orphaned = await db_session.scalar(
            select(func.count())
            .select_from(SubscriptionPeriodModel)
            .where(SubscriptionPeriodModel.subscription_id == removed)
        )
        assert orphaned == 0

    @pytest.mark.asyncio
    async def test_delete_unknown_subscription(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.delete_subscription(9999)

    @pytest.mark.asyncio
    async def test_deleting_user_cascades(self, ledger, db_session, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        await db_session.commit()

        await db_session.execute(delete(User).where(User.id == user_id))
        await db_session.commit()

        remaining = await db_session.scalar(
            select(func.count())
            .select_from(SubscriptionPeriodModel)
            .where(SubscriptionPeriodModel.subscription_id == subscription_id)
        )
        assert remaining == 0
        subscriptions = await db_session.scalar(
            select(func.count())
            .select_from(SubscriptionModel)
            .where(SubscriptionModel.id == subscription_id)
        )
        assert subscriptions == 0

    @pytest.mark.asyncio
    async def test_update_start_date_rewrites_starts_only(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        subscription_id = await ledger.create_subscription(user_id, plan_ids[PlanName.STANDARD])
        await ledger.pause_subscription(subscription_id)
        before = await ledger.get_subscription_rows(subscription_id)

        new_start = datetime(2024, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
        await ledger.update_subscription_start_date(subscription_id, new_start)

        rows = await ledger.get_subscription_rows(subscription_id)
        expected = datetime(2024, 3, 1, 7, 0)
        assert all(row.start_date == expected for row in rows)
        assert all(row.period_start == expected for row in rows)
        assert [row.period_end for row in rows] == [row.period_end for row in before]
        assert [row.status for row in rows] == [row.status for row in before]

    @pytest.mark.asyncio
    async def test_update_start_date_unknown_subscription(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_subscription_start_date(9999, datetime(2024, 1, 1))

    @pytest.mark.asyncio
    async def test_backfill_replaces_existing_subscription(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        plan_id = plan_ids[PlanName.PRO]
        original = await ledger.create_subscription(user_id, plan_id)
        await ledger.pause_subscription(original)

        replacement = await ledger.backfill_subscription(user_id, plan_id, datetime(2023, 9, 1))

        assert replacement != original
        assert await ledger.find_user_subscription(user_id, plan_id) == replacement
        rows = await ledger.get_user_subscriptions(user_id)
        assert len(rows) == 1
        assert rows[0].subscription_id == replacement
        assert rows[0].start_date == datetime(2023, 9, 1)
        assert rows[0].status == PeriodStatus.ACTIVE
        assert rows[0].period_end is None

    @pytest.mark.asyncio
    async def test_backfill_without_existing_subscription(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        plan_id = plan_ids[PlanName.STANDARD]

        subscription_id = await ledger.backfill_subscription(user_id, plan_id, datetime(2024, 6, 1))

        summaries = await ledger.get_user_subscription_summaries(
            user_id, now=datetime(2024, 6, 11, 12, 0)
        )
        assert summaries[0].subscription_id == subscription_id
        assert summaries[0].active_days == 10

    @pytest.mark.asyncio
    async def test_find_user_subscription_none(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        assert await ledger.find_user_subscription(user_id, plan_ids[PlanName.PRO]) is None


class TestSubscriptionErrors:

    @pytest.fixture
    def ledger(self, db_session):
        return SubscriptionLedger(db_session)

    @pytest.mark.asyncio
    async def test_create_unknown_plan(self, ledger, make_user):
        user_id = await make_user()

        with pytest.raises(NotFoundError) as exc_info:
            await ledger.create_subscription(user_id, 9999)

        assert exc_info.value.details["table"] == "plans"

    @pytest.mark.asyncio
    async def test_create_unknown_user(self, ledger, plan_ids):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.create_subscription(9999, plan_ids[PlanName.STANDARD])

        assert exc_info.value.details["table"] == "users"

    @pytest.mark.asyncio
    async def test_create_duplicate_start(self, db_session, make_user, plan_ids):
        """Same user, plan and start timestamp is rejected as a duplicate."""
        user_id = await make_user()
        plan_id = plan_ids[PlanName.STANDARD]
        repository = SubscriptionRepository(db_session)
        started_at = datetime(2024, 1, 1, 8, 30)

        await repository.create(user_id, plan_id, started_at=started_at)
        await db_session.commit()

        with pytest.raises(DuplicateError):
            await repository.create(user_id, plan_id, started_at=started_at)

    @pytest.mark.asyncio
    async def test_rows_for_unknown_subscription(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.get_subscription_rows(9999)

    @pytest.mark.asyncio
    async def test_backfill_rejects_future_start(self, ledger, make_user, plan_ids):
        user_id = await make_user()
        future = datetime.now(timezone.utc) + timedelta(days=3)

        with pytest.raises(ValidationError):
            await ledger.backfill_subscription(user_id, plan_ids[PlanName.PRO], future)

        assert await ledger.get_user_subscriptions(user_id) == []

    @pytest.mark.asyncio
    async def test_open_period_for_unknown_subscription(self, db_session):
        """A dangling subscription id surfaces as NotFoundError, not a driver error."""
        repository = SubscriptionRepository(db_session)

        with pytest.raises(NotFoundError) as exc_info:
            await repository.open_period(424242, PeriodStatus.PAUSED, datetime(2024, 3, 1))

        assert isinstance(exc_info.value, DatabaseError)
        assert exc_info.value.details["table"] == "subscription_periods"
        assert exc_info.value.details["operation"] == "create"


class TestUserRecords:

    @pytest.mark.asyncio
    async def test_created_at_is_naive_utc(self, session_factory):
        async with session_factory() as session:
            user = User(email="stamp@example.com", username="stamp")
            session.add(user)
            await session.commit()
            user_id = user.id

        async with session_factory() as session:
            stored = await session.get(User, user_id)

        assert stored.created_at.tzinfo is None
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        assert now - stored.created_at < timedelta(minutes=1)

    def test_created_at_column_is_timezone_naive(self):
        column = User.__table__.c.created_at
        assert column.type.timezone is False
        assert column.nullable is False


class TestConcurrentTransitions:
    """Racing transitions, each in its own session and connection."""

    @pytest.mark.asyncio
    async def test_concurrent_pauses_apply_once(self, file_store):
        await database.init_db()
        try:
            async with database.get_session_context() as session:
                user = User(email="racer@example.com", username="racer")
                session.add(user)
                await session.flush()
                plan = await PlanRepository(session).get_by_name(PlanName.STANDARD)
                subscription_id = await SubscriptionLedger(session).create_subscription(
                    user.id, plan.id
                )

            async def pause() -> TransitionOutcome:
                async with database.get_session_context() as session:
                    return await SubscriptionLedger(session).pause_subscription(subscription_id)

            outcomes = await asyncio.gather(*(pause() for _ in range(4)))

            async with database.get_session_context() as session:
                rows = await SubscriptionLedger(session).get_subscription_rows(subscription_id)
        finally:
            await database.close_db()

        assert outcomes.count(TransitionOutcome.APPLIED) == 1
        assert outcomes.count(TransitionOutcome.NO_OPEN_PERIOD) == 3
        assert [row.status for row in rows] == [PeriodStatus.ACTIVE, PeriodStatus.PAUSED]
        assert [row.period_end is None for row in rows] == [False, True]
