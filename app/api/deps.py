"""Request dependencies: database session, authenticated user, pagination."""
from typing import Annotated, Optional
import logging

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.core.security import token_user_id
from app.models.user import User


logger = logging.getLogger(__name__)

# auto_error=False so a missing header gets the same 401 as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> User:
    """The active user named by the bearer token."""
    if credentials is None:
        raise _unauthorized()

    user_id = token_user_id(credentials.credentials)
    if user_id is None:
        logger.warning("Rejected request with an invalid or expired bearer token")
        raise _unauthorized()

    user = await db.get(User, user_id)
    if user is None:
        logger.warning(f"Bearer token names unknown user {user_id}")
        raise _unauthorized()

    if not user.is_active:
        logger.warning(f"Deactivated user {user_id} attempted a request")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


class Pagination:
    """page/size query parameters shared by list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ):
        self.page = page
        self.size = size

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size


# Type aliases for dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
Page = Annotated[Pagination, Depends()]
