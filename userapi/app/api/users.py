from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from userapi.app.db.async_session import SessionDep
from userapi.app.schemas.error import ErrorResponse, ValidationErrorResponse
from userapi.app.schemas.user import (
    CreateUserRequest,
    PaginatedUsers,
    PaginationParams,
    UpdateUserRequest,
    UserResponse,
)
from userapi.app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "User not found"}}
_VALIDATION = {400: {"model": ValidationErrorResponse, "description": "Validation error"}}
_CONFLICT = {409: {"model": ErrorResponse, "description": "User with this email already exists"}}


def get_user_service(session: SessionDep) -> UserService:
    return UserService(session)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


@router.get("", response_model=PaginatedUsers, summary="Get all users")
async def find_all(
    service: UserServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> PaginatedUsers:
    """Retrieve a paginated list of all users."""
    return await service.find_all(PaginationParams(page=page, limit=limit))


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses=_NOT_FOUND,
    summary="Get user by ID",
)
async def find_one(user_id: str, service: UserServiceDep) -> UserResponse:
    return await service.find_one(user_id)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_VALIDATION, **_CONFLICT},
    summary="Create a new user",
)
async def create(data: CreateUserRequest, service: UserServiceDep) -> UserResponse:
    """Register a new user account."""
    return await service.create(data)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={**_VALIDATION, **_NOT_FOUND, **_CONFLICT},
    summary="Update user",
)
async def update(user_id: str, data: UpdateUserRequest, service: UserServiceDep) -> UserResponse:
    return await service.update(user_id, data)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_NOT_FOUND,
    summary="Delete user",
)
async def remove(user_id: str, service: UserServiceDep) -> Response:
    await service.remove(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
