"""
Plan Routes

Read-only access to the membership catalog.
"""

from fastapi import APIRouter

from app.api.dependencies import LedgerDep
from app.domain.subscription import Plan


router = APIRouter()


@router.get("/plans", response_model=list[Plan])
async def list_plans(ledger: LedgerDep):
    """List catalog plans ordered by id."""
    return await ledger.list_plans()
