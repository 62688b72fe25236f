"""
Base Model for SQLModel ORM

Provides common fields and behavior for all database models.
Follows Single Responsibility Principle - only defines base schema.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.domain.subscription import utc_now


class IntIdMixin(SQLModel):
    """
    Mixin providing an autoincrement integer primary key.

    Ids are assigned by the store on insert.
    """

    id: Optional[int] = Field(
        default=None,
        primary_key=True,
        description="Store-assigned identifier"
    )


class CreatedAtMixin(SQLModel):
    """
    Mixin providing a creation timestamp.

    Naive UTC, matching every other timestamp in the schema.
    """

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime,
        nullable=False,
        description="Record creation timestamp (UTC)"
    )
