"""
Dependency Injection Providers for the Studio Membership backend

Provides the FastAPI session dependency. Service providers built on top of
it live in app.api.dependencies.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]
