"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.database import init_db
from hr_payroll.models import User
from hr_payroll.services.permission_service import PermissionService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request, e.g. bulk payroll."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_current_user(
    db: DbSession,
    x_user_id: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the caller from the X-User-ID header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-ID format",
        )
    user = await PermissionService(db).get_user_with_permissions(user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_permission(name: str) -> Callable[[User], Awaitable[User]]:
    """Dependency factory that rejects callers lacking a named permission."""

    async def checker(user: CurrentUser) -> User:
        if not user.has_permission(name):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission '{name}'",
            )
        return user

    return checker


def Permitted(name: str):
    """``Annotated`` alias for a caller holding ``name``."""
    return Annotated[User, Depends(require_permission(name))]
