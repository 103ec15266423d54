"""User management service.

Business rules for users sit here: uniqueness of email, password hashing,
name splitting and the mapping to the public response model. Persistence
is delegated to the CRUD functions.
"""

from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.app.core.logging import get_logger
from userapi.app.core.security import hash_password, verify_password
from userapi.app.db import crud
from userapi.app.db.models import User
from userapi.app.exceptions import ConflictError, NotFoundError
from userapi.app.schemas.user import (
    CreateUserRequest,
    PaginatedUsers,
    PaginationParams,
    UpdateUserRequest,
    UserResponse,
)

logger = get_logger(__name__)

EMAIL_TAKEN_MESSAGE = "User with this email already exists"


def split_name(name: Optional[str]) -> tuple[str, str]:
    """Split a display name into (first, last) on the first space."""
    if not name:
        return "", ""
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.full_name,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserService:
    """User operations bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_or_404(self, user_id: str) -> User:
        user = await crud.get_user_by_id(self.session, user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    async def find_all(self, pagination: PaginationParams) -> PaginatedUsers:
        users = await crud.list_users(
            self.session, skip=pagination.skip, take=pagination.limit
        )
        total = await crud.count_users(self.session)
        return PaginatedUsers(
            data=[to_response(user) for user in users],
            total=total,
            page=pagination.page,
            limit=pagination.limit,
        )

    async def find_one(self, user_id: str) -> UserResponse:
        return to_response(await self._get_or_404(user_id))

    async def find_by_email(self, email: str) -> Optional[UserResponse]:
        user = await crud.get_user_by_email(self.session, email)
        return to_response(user) if user else None

    async def find_active_users(self, pagination: Optional[PaginationParams] = None) -> list[UserResponse]:
        pagination = pagination or PaginationParams()
        users = await crud.list_users(
            self.session,
            skip=pagination.skip,
            take=pagination.limit,
            active_only=True,
        )
        return [to_response(user) for user in users]

    async def create(self, data: CreateUserRequest) -> UserResponse:
        """Register a new user.

        Raises:
            ConflictError: If the email is already registered
        """
        if await crud.user_exists_by_email(self.session, data.email):
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        first_name, last_name = split_name(data.name)
        try:
            user = await crud.create_user(
                self.session,
                email=data.email,
                password=hash_password(data.password),
                first_name=first_name,
                last_name=last_name,
            )
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise ConflictError(EMAIL_TAKEN_MESSAGE)
        logger.info(f"Created user {user.id}")
        return to_response(user)

    async def update(self, user_id: str, data: UpdateUserRequest) -> UserResponse:
        """Apply a partial update.

        Raises:
            NotFoundError: If the user does not exist
            ConflictError: If the new email belongs to another user
        """
        existing = await self._get_or_404(user_id)

        values: dict[str, Any] = {}
        if data.email and data.email != existing.email:
            if await crud.user_exists_by_email(self.session, data.email):
                raise ConflictError(EMAIL_TAKEN_MESSAGE)
            values["email"] = data.email
        if data.name:
            values["first_name"], values["last_name"] = split_name(data.name)
        if data.password:
            values["password"] = hash_password(data.password)

        if not values:
            return to_response(existing)

        try:
            user = await crud.update_user(self.session, user_id, **values)
        except IntegrityError:
            raise ConflictError(EMAIL_TAKEN_MESSAGE)
        return to_response(user)

    async def remove(self, user_id: str) -> None:
        """Hard delete a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        await self._get_or_404(user_id)
        await crud.delete_user(self.session, user_id)
        logger.info(f"Deleted user {user_id}")

    async def soft_remove(self, user_id: str) -> UserResponse:
        await self._get_or_404(user_id)
        user = await crud.soft_delete_user(self.session, user_id)
        return to_response(user)

    async def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return verify_password(plain_password, hashed_password)

    async def update_password(self, user_id: str, new_password: str) -> None:
        await self._get_or_404(user_id)
        await crud.update_user_password(self.session, user_id, hash_password(new_password))
