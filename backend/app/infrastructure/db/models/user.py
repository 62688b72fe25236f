"""
User SQLModel

Account rows owned by the external auth collaborator. Stored here so
subscriptions can reference (and cascade from) their owner.
"""

from sqlalchemy import CheckConstraint, Column, String
from sqlmodel import Field

from app.domain.subscription import UserRole
from app.infrastructure.db.models.base import CreatedAtMixin, IntIdMixin


class User(IntIdMixin, CreatedAtMixin, table=True):
    """
    User database table model.

    Maps to the 'users' table.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )

    email: str = Field(
        ...,
        sa_column=Column(String(255), unique=True, nullable=False),
        description="Login email"
    )
    username: str = Field(
        ...,
        sa_column=Column(String(100), unique=True, nullable=False, index=True),
        description="Display name"
    )
    role: str = Field(
        default=UserRole.USER.value,
        sa_column=Column(String(20), nullable=False, server_default=UserRole.USER.value),
        description="'user' or 'admin'"
    )
