"""
SQLModel ORM Models for the Studio Membership backend

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    CreatedAtMixin,
    IntIdMixin,
)
from app.infrastructure.db.models.user import User
from app.infrastructure.db.models.plan import PlanModel
from app.infrastructure.db.models.subscription import (
    SubscriptionModel,
    SubscriptionPeriodModel,
)


__all__ = [
    # Base
    "CreatedAtMixin",
    "IntIdMixin",
    # Accounts
    "User",
    # Membership
    "PlanModel",
    "SubscriptionModel",
    "SubscriptionPeriodModel",
]
