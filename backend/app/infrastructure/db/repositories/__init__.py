"""
Repository Layer for the Studio Membership backend

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    IReadRepository,
)
from app.infrastructure.db.repositories.plan_repository import PlanRepository
from app.infrastructure.db.repositories.user_repository import UserRepository
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    "IReadRepository",
    # Repositories
    "PlanRepository",
    "UserRepository",
    "SubscriptionRepository",
]
