"""User CRUD operations."""
from typing import Any, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.app.db.models import Role, User


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[User]:
    """Get a user by ID.

    Args:
        session: Database session from FastAPI dependency
        user_id: The user ID

    Returns:
        User object if found, None otherwise
    """
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """Get a user by email address."""
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def list_users(
    session: AsyncSession,
    skip: int = 0,
    take: Optional[int] = None,
    active_only: bool = False,
) -> List[User]:
    """List users, newest first.

    Args:
        session: Database session from FastAPI dependency
        skip: Number of rows to skip
        take: Maximum number of rows to return (None = all)
        active_only: Only return users with is_active set

    Returns:
        List of users
    """
    stmt = select(User).order_by(User.created_at.desc(), User.id).offset(skip)
    if active_only:
        stmt = stmt.where(User.is_active.is_(True))
    if take is not None:
        stmt = stmt.limit(take)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_users_by_role(session: AsyncSession, role: Role) -> List[User]:
    result = await session.execute(select(User).where(User.role == role))
    return list(result.scalars().all())


async def count_users(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(User))
    return int(result.scalar_one())


async def user_exists_by_email(session: AsyncSession, email: str) -> bool:
    result = await session.execute(
        select(func.count()).select_from(User).where(User.email == email)
    )
    return result.scalar_one() > 0


async def create_user(
    session: AsyncSession,
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
) -> User:
    """Insert a new user.

    Args:
        session: Database session from FastAPI dependency
        email: Unique email address
        password: Already hashed password
        first_name: Given name
        last_name: Family name

    Returns:
        The persisted user (flushed, not committed)
    """
    user = User(
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def update_user(session: AsyncSession, user_id: str, **values: Any) -> Optional[User]:
    """Apply a partial update and return the refreshed user.

    Returns:
        Updated user, or None if no such user exists
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        return None
    for field, value in values.items():
        setattr(user, field, value)
    await session.flush()
    await session.refresh(user)
    return user


async def update_user_password(session: AsyncSession, user_id: str, hashed_password: str) -> bool:
    result = await session.execute(
        update(User).where(User.id == user_id).values(password=hashed_password)
    )
    return result.rowcount > 0


async def soft_delete_user(session: AsyncSession, user_id: str) -> Optional[User]:
    """Deactivate a user instead of deleting the row."""
    return await update_user(session, user_id, is_active=False)


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    """Hard delete a user.

    Returns:
        True if a row was deleted
    """
    result = await session.execute(delete(User).where(User.id == user_id))
    return result.rowcount > 0
