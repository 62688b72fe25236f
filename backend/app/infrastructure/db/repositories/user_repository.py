"""
User Repository

Read access to the account rows owned by the auth collaborator.
"""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import UserAccount, UserRole
from app.infrastructure.db.models.user import User
from app.infrastructure.db.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user accounts."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def list_accounts(self, skip: int = 0, limit: int = 100) -> List[UserAccount]:
        """Accounts ordered by id."""
        users = await self.get_all(skip=skip, limit=limit)
        return [
            UserAccount(
                id=user.id,
                email=user.email,
                username=user.username,
                role=UserRole(user.role),
                created_at=user.created_at,
            )
            for user in users
        ]
