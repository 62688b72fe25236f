#!/usr/bin/env python3
"""
Seed script to populate the membership plan catalog.

Inserts any of the catalog plans (Standard, Pro) that are missing; existing
rows are left alone, so the script can be re-run safely.

Run: python scripts/seed_plans.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.domain.services import SubscriptionLedger
from app.infrastructure.db.database import close_db, get_db_manager, get_session_context

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def seed_plans() -> None:
    """Create the tables if needed and insert the missing catalog plans."""
    try:
        await get_db_manager().create_tables()

        async with get_session_context() as session:
            ledger = SubscriptionLedger(session)
            created = await ledger.ensure_plan_catalog()
            plans = await ledger.list_plans()
    finally:
        await close_db()

    if created:
        logger.info(f"Inserted plans: {', '.join(created)}")
    else:
        logger.info("Plan catalog already complete")

    print("\n=== Plan Catalog ===")
    for plan in plans:
        print(f"{plan.id}: {plan.name.value} ({plan.duration_months} months)")


if __name__ == "__main__":
    asyncio.run(seed_plans())
