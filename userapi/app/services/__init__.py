"""Service layer for the API."""

from userapi.app.services.user_service import UserService

__all__ = ["UserService"]
