"""
Plan SQLModel

Immutable membership catalog. Rows are seeded, never edited by the API.
"""

from sqlalchemy import CheckConstraint, Column, Integer, String
from sqlmodel import Field

from app.infrastructure.db.models.base import IntIdMixin


class PlanModel(IntIdMixin, table=True):
    """
    Plan table.

    Maps to the 'plans' table.
    """

    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("name IN ('Standard', 'Pro')", name="ck_plans_name"),
    )

    name: str = Field(
        ...,
        sa_column=Column(String(20), unique=True, nullable=False),
        description="Catalog name: 'Standard' or 'Pro'"
    )
    duration_months: int = Field(
        default=12,
        sa_column=Column(Integer, nullable=False, server_default="12"),
        description="Plan length in months"
    )
