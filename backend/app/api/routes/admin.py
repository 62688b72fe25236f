"""
Admin Routes

Account listing for the studio back office.
Protected by API key authentication.
"""

import logging

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import LedgerDep, verify_admin_api_key
from app.domain.subscription import UserAccount

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_api_key)]  # Protect ALL admin routes
)


@router.get("/users", response_model=list[UserAccount])
async def list_users(
    ledger: LedgerDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """List user accounts with their role, ordered by id."""
    users = await ledger.list_users(skip=skip, limit=limit)
    logger.info(f"Admin listed {len(users)} users")
    return users
