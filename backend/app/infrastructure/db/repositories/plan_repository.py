"""
Plan Repository

Read access to the membership catalog plus the idempotent catalog seed.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import DEFAULT_PLAN_CATALOG, Plan, PlanName
from app.infrastructure.db.models.plan import PlanModel
from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)


class PlanRepository(BaseRepository[PlanModel]):
    """Repository for catalog plans."""

    def __init__(self, session: AsyncSession):
        super().__init__(PlanModel, session)

    async def list_plans(self) -> List[Plan]:
        """All plans ordered by id."""
        models = await self.get_all()
        return [self._to_domain(model) for model in models]

    async def get_by_name(self, name: PlanName) -> Optional[PlanModel]:
        stmt = select(PlanModel).where(PlanModel.name == name.value)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load plan {name.value}",
                operation="get",
                table=self.table_name,
                original_error=e,
            ) from e
        return result.scalar_one_or_none()

    async def ensure_catalog(self) -> List[str]:
        """
        Insert any missing catalog plans.

        Returns:
            Names of the plans that were created
        """
        created = []
        for name, months in DEFAULT_PLAN_CATALOG.items():
            if await self.get_by_name(name) is None:
                self.session.add(PlanModel(name=name.value, duration_months=months))
                created.append(name.value)

        if created:
            try:
                await self.session.flush()
            except SQLAlchemyError as e:
                logger.error(f"Failed to seed plan catalog: {e}")
                raise DatabaseError(
                    "Failed to seed plan catalog",
                    operation="create",
                    table=self.table_name,
                    original_error=e,
                ) from e
        return created

    @staticmethod
    def _to_domain(model: PlanModel) -> Plan:
        return Plan(
            id=model.id,
            name=PlanName(model.name),
            duration_months=model.duration_months,
        )
