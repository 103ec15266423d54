"""CRUD operations package."""

from userapi.app.db.crud.user import (
    count_users,
    create_user,
    delete_user,
    get_user_by_email,
    get_user_by_id,
    list_users,
    list_users_by_role,
    soft_delete_user,
    update_user,
    update_user_password,
    user_exists_by_email,
)

__all__ = [
    "count_users",
    "create_user",
    "delete_user",
    "get_user_by_email",
    "get_user_by_id",
    "list_users",
    "list_users_by_role",
    "soft_delete_user",
    "update_user",
    "update_user_password",
    "user_exists_by_email",
]
