"""
Subscription API Routes

REST API endpoints for the membership ledger.
Domain errors (NotFoundError, DuplicateError, InvalidStateError) are mapped
to HTTP statuses by the handlers registered in app.main.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Path, status

from app.api.dependencies import LedgerDep
from app.domain.subscription import (
    BackfillRequest,
    CreateSubscriptionRequest,
    PeriodStatus,
    StartDateUpdateRequest,
    SubscriptionCreatedResponse,
    SubscriptionRow,
    SubscriptionSummary,
    TransitionOutcome,
    TransitionResponse,
)
from app.infrastructure.exceptions import InvalidStateError


logger = logging.getLogger(__name__)

router = APIRouter()

SubscriptionId = Annotated[int, Path(gt=0, description="Subscription id")]
UserId = Annotated[int, Path(gt=0, description="User id")]


def _transition_response(
    subscription_id: int,
    outcome: TransitionOutcome,
    expected_status: PeriodStatus,
) -> TransitionResponse:
    """Turn a NO_OPEN_PERIOD outcome into a 409 for the caller."""
    if outcome == TransitionOutcome.NO_OPEN_PERIOD:
        raise InvalidStateError(
            f"Subscription {subscription_id} has no open {expected_status.value} period",
            subscription_id=subscription_id,
            expected_status=expected_status.value,
        )
    return TransitionResponse(subscription_id=subscription_id, outcome=outcome)


# =============================================================================
# Query Endpoints
# =============================================================================

@router.get(
    "/users/{user_id}/subscriptions",
    response_model=list[SubscriptionRow],
)
async def list_user_subscriptions(
    user_id: UserId,
    ledger: LedgerDep,
):
    """
    Get every period of every subscription owned by the user.

    One row per period, ordered by subscription start date then period
    start date. A subscription without periods appears once with null
    period fields.
    """
    return await ledger.get_user_subscriptions(user_id)


@router.get(
    "/users/{user_id}/subscriptions/summary",
    response_model=list[SubscriptionSummary],
)
async def summarize_user_subscriptions(
    user_id: UserId,
    ledger: LedgerDep,
):
    """Get one summary per subscription with current status and active days."""
    return await ledger.get_user_subscription_summaries(user_id)


# =============================================================================
# Lifecycle Endpoints
# =============================================================================

@router.post(
    "/subscriptions",
    response_model=SubscriptionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    ledger: LedgerDep,
):
    """Enroll a user in a plan with an initial open active period."""
    subscription_id = await ledger.create_subscription(request.user_id, request.plan_id)
    return SubscriptionCreatedResponse(subscription_id=subscription_id)


@router.post(
    "/subscriptions/backfill",
    response_model=SubscriptionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def backfill_subscription(
    request: BackfillRequest,
    ledger: LedgerDep,
):
    """
    Replace the user's subscription to a plan with one starting at a past date.

    Used to correct historical data.
    """
    subscription_id = await ledger.backfill_subscription(
        request.user_id,
        request.plan_id,
        request.start_date,
    )
    return SubscriptionCreatedResponse(subscription_id=subscription_id)


@router.post(
    "/subscriptions/{subscription_id}/pause",
    response_model=TransitionResponse,
)
async def pause_subscription(
    subscription_id: SubscriptionId,
    ledger: LedgerDep,
):
    """Pause an active subscription. 409 if there is no open active period."""
    outcome = await ledger.pause_subscription(subscription_id)
    return _transition_response(subscription_id, outcome, PeriodStatus.ACTIVE)


@router.post(
    "/subscriptions/{subscription_id}/resume",
    response_model=TransitionResponse,
)
async def resume_subscription(
    subscription_id: SubscriptionId,
    ledger: LedgerDep,
):
    """Resume a paused subscription. 409 if there is no open paused period."""
    outcome = await ledger.resume_subscription(subscription_id)
    return _transition_response(subscription_id, outcome, PeriodStatus.PAUSED)


@router.patch(
    "/subscriptions/{subscription_id}/start-date",
    response_model=list[SubscriptionRow],
)
async def update_subscription_start_date(
    request: StartDateUpdateRequest,
    subscription_id: SubscriptionId,
    ledger: LedgerDep,
):
    """
    Rewrite the start date of a subscription and all of its periods.

    Returns the subscription's rows after the rewrite.
    """
    await ledger.update_subscription_start_date(subscription_id, request.start_date)
    return await ledger.get_subscription_rows(subscription_id)


@router.delete(
    "/subscriptions/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_subscription(
    subscription_id: SubscriptionId,
    ledger: LedgerDep,
):
    """Delete a subscription together with all of its periods."""
    await ledger.delete_subscription(subscription_id)
