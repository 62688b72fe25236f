#!/usr/bin/env python3
"""
Historical Subscription Backfill Script

Replaces a user's subscription to a plan with one that started on a past
date. Any existing subscription of the user to that plan, and its periods,
is removed first.

Usage:
    python -m scripts.backfill_subscription --user-id 7 --plan-id 1 --start-date 2024-01-15
"""

import asyncio
import argparse
import logging
from datetime import datetime

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.domain.services import SubscriptionLedger
from app.infrastructure.db.database import close_db, get_session_context
from app.infrastructure.exceptions import StudioMembershipError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def backfill(user_id: int, plan_id: int, start_date: datetime) -> int:
    """Run the backfill in a single transaction and return the new id."""
    async with get_session_context() as session:
        ledger = SubscriptionLedger(session)
        subscription_id = await ledger.backfill_subscription(user_id, plan_id, start_date)
        rows = await ledger.get_subscription_rows(subscription_id)

    for row in rows:
        if row.status is None:
            continue
        logger.info(
            f"Subscription {row.subscription_id} ({row.plan_name.value}): "
            f"period {row.period_id} {row.status.value} from {row.period_start.isoformat()}"
        )
    return subscription_id


async def main():
    parser = argparse.ArgumentParser(description="Backfill a historical subscription")
    parser.add_argument("--user-id", type=int, required=True, help="Owning user id")
    parser.add_argument("--plan-id", type=int, required=True, help="Catalog plan id")
    parser.add_argument(
        "--start-date",
        type=datetime.fromisoformat,
        required=True,
        help="Historical start date, ISO format (e.g. 2024-01-15 or 2024-01-15T09:30:00)"
    )
    args = parser.parse_args()

    try:
        subscription_id = await backfill(args.user_id, args.plan_id, args.start_date)
    except StudioMembershipError as e:
        logger.error(f"Backfill failed: {e.message}")
        raise SystemExit(1) from e
    finally:
        await close_db()

    print("\n=== Backfill Complete ===")
    print(f"Subscription id: {subscription_id}")


if __name__ == "__main__":
    asyncio.run(main())
