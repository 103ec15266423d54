"""Tests for the user service and the /users API."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from userapi.app.db import crud
from userapi.app.db.models import Role
from userapi.app.exceptions import ConflictError, NotFoundError
from userapi.app.schemas.user import (
    CreateUserRequest,
    PaginationParams,
    UpdateUserRequest,
)
from userapi.app.services.user_service import UserService, split_name


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Jane Doe", ("Jane", "Doe")),
        ("Jane van der Berg", ("Jane", "van der Berg")),
        ("Cher", ("Cher", "")),
        ("", ("", "")),
        (None, ("", "")),
    ],
)
def test_split_name(name, expected):
    assert split_name(name) == expected


class TestUserService:

    @pytest.fixture
    def service(self, session):
        return UserService(session)

    @pytest.mark.asyncio
    async def test_create_hashes_password(self, service, session):
        user = await service.create(
            CreateUserRequest(email="jane@example.com", password="Password123", name="Jane Doe")
        )

        assert user.email == "jane@example.com"
        assert user.name == "Jane Doe"
        stored = await crud.get_user_by_id(session, user.id)
        assert stored.password != "Password123"
        assert await service.verify_password("Password123", stored.password) is True
        assert stored.role == Role.USER
        assert stored.is_active is True

    @pytest.mark.asyncio
    async def test_create_duplicate_email_conflicts(self, service):
        data = CreateUserRequest(email="jane@example.com", password="Password123")
        await service.create(data)

        with pytest.raises(ConflictError) as exc_info:
            await service.create(data)
        assert exc_info.value.message == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_find_one_missing_raises(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.find_one("does-not-exist")
        assert exc_info.value.message == "User with ID does-not-exist not found"

    @pytest.mark.asyncio
    async def test_find_all_paginates(self, service):
        for i in range(3):
            await service.create(
                CreateUserRequest(email=f"user{i}@example.com", password="Password123")
            )

        page = await service.find_all(PaginationParams(page=2, limit=2))

        assert page.total == 3
        assert page.page == 2
        assert page.limit == 2
        assert len(page.data) == 1

    @pytest.mark.asyncio
    async def test_update_partial_fields(self, service, session):
        user = await service.create(
            CreateUserRequest(email="jane@example.com", password="Password123", name="Jane Doe")
        )

        updated = await service.update(user.id, UpdateUserRequest(name="Janet Smith"))

        assert updated.name == "Janet Smith"
        assert updated.email == "jane@example.com"

    @pytest.mark.asyncio
    async def test_update_to_taken_email_conflicts(self, service):
        await service.create(CreateUserRequest(email="a@example.com", password="Password123"))
        other = await service.create(
            CreateUserRequest(email="b@example.com", password="Password123")
        )

        with pytest.raises(ConflictError):
            await service.update(other.id, UpdateUserRequest(email="a@example.com"))

    @pytest.mark.asyncio
    async def test_update_losing_email_race_conflicts(self, service):
        user = await service.create(
            CreateUserRequest(email="b@example.com", password="Password123")
        )
        duplicate = IntegrityError("UPDATE users", {}, Exception("UNIQUE constraint failed"))

        with patch.object(crud, "update_user", AsyncMock(side_effect=duplicate)):
            with pytest.raises(ConflictError) as exc_info:
                await service.update(user.id, UpdateUserRequest(email="a@example.com"))
        assert exc_info.value.message == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_update_password(self, service, session):
        user = await service.create(
            CreateUserRequest(email="jane@example.com", password="Password123")
        )

        await service.update_password(user.id, "NewPassword456")
        await session.commit()

        stored = await crud.get_user_by_id(session, user.id)
        await session.refresh(stored)
        assert await service.verify_password("NewPassword456", stored.password) is True

    @pytest.mark.asyncio
    async def test_soft_remove_hides_from_active_users(self, service):
        keep = await service.create(CreateUserRequest(email="a@example.com", password="Password123"))
        gone = await service.create(CreateUserRequest(email="b@example.com", password="Password123"))

        await service.soft_remove(gone.id)

        active = await service.find_active_users()
        assert [u.id for u in active] == [keep.id]

    @pytest.mark.asyncio
    async def test_list_users_by_role(self, service, session):
        user = await service.create(CreateUserRequest(email="a@example.com", password="Password123"))
        admin = await service.create(CreateUserRequest(email="b@example.com", password="Password123"))
        await crud.update_user(session, admin.id, role=Role.ADMIN)

        admins = await crud.list_users_by_role(session, Role.ADMIN)

        assert [u.id for u in admins] == [admin.id]
        assert user.id not in [u.id for u in admins]

    @pytest.mark.asyncio
    async def test_remove(self, service):
        user = await service.create(
            CreateUserRequest(email="jane@example.com", password="Password123")
        )

        await service.remove(user.id)

        with pytest.raises(NotFoundError):
            await service.remove(user.id)
        assert await service.find_by_email("jane@example.com") is None


class TestUsersApi:

    def _create(self, client, email="jane@example.com", **extra):
        return client.post(
            "/api/users",
            json={"email": email, "password": "Password123", "name": "Jane Doe", **extra},
        )

    def test_create_and_fetch(self, client):
        resp = self._create(client)
        assert resp.status_code == 201, resp.text
        created = resp.json()
        assert set(created) == {"id", "email", "name", "createdAt", "updatedAt"}

        resp = client.get(f"/api/users/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["email"] == "jane@example.com"

    def test_duplicate_email_is_409(self, client):
        self._create(client)
        resp = self._create(client)

        assert resp.status_code == 409
        assert resp.json()["message"] == "User with this email already exists"

    def test_invalid_payload_is_400(self, client):
        resp = client.post("/api/users", json={"email": "not-an-email", "password": "short"})

        assert resp.status_code == 400
        data = resp.json()
        assert data["statusCode"] == 400
        assert len(data["message"]) == 2

    def test_unknown_fields_are_rejected(self, client):
        resp = self._create(client, role="ADMIN")

        assert resp.status_code == 400

    def test_list_is_paginated(self, client):
        for i in range(3):
            self._create(client, email=f"user{i}@example.com")

        resp = client.get("/api/users", params={"page": 1, "limit": 2})

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert len(data["data"]) == 2

    def test_limit_out_of_range_is_400(self, client):
        assert client.get("/api/users", params={"limit": 101}).status_code == 400

    def test_update_and_delete(self, client):
        user_id = self._create(client).json()["id"]

        resp = client.put(f"/api/users/{user_id}", json={"name": "Janet Doe"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Janet Doe"

        assert client.delete(f"/api/users/{user_id}").status_code == 204
        resp = client.get(f"/api/users/{user_id}")
        assert resp.status_code == 404
        assert resp.json()["message"] == f"User with ID {user_id} not found"
