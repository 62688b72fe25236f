"""
API Dependencies

FastAPI dependency injection for the ledger service and admin protection.

Authentication of end users belongs to the external auth collaborator;
only the admin surface is guarded here, by a shared API key.
"""

import logging
import secrets
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, status

from app.config.settings import get_settings
from app.domain.services import SubscriptionLedger
from app.infrastructure.db.dependencies import SessionDep


logger = logging.getLogger(__name__)


async def get_subscription_ledger(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionLedger, None]:
    """
    Dependency provider for SubscriptionLedger.

    The ledger shares the request session, so each request is one
    transaction.

    Usage:
        @router.post("/subscriptions/{subscription_id}/pause")
        async def pause(ledger: LedgerDep):
            ...
    """
    yield SubscriptionLedger(
        session,
        days_per_month=get_settings().plan_days_per_month,
    )


# Type alias for ledger dependency
LedgerDep = Annotated[SubscriptionLedger, Depends(get_subscription_ledger)]


async def verify_admin_api_key(
    x_admin_key: Optional[str] = Header(
        None, description="Admin API key for protected operations"
    ),
) -> bool:
    """
    Verify admin API key from header.

    The admin key is read from the ADMIN_API_KEY environment variable.
    """
    expected_key = get_settings().admin_api_key

    if not expected_key:
        logger.error("ADMIN_API_KEY environment variable not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured"
        )

    if not x_admin_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin API key"
        )

    # Use secrets.compare_digest for timing-attack resistance
    if not secrets.compare_digest(x_admin_key, expected_key):
        logger.warning("Invalid admin API key attempt")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )

    return True


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
__all__ = [
    "SessionDep",
    "LedgerDep",
    "get_subscription_ledger",
    "verify_admin_api_key",
]
