"""User account service."""

from __future__ import annotations

import logging

from .exceptions import NotFoundError
from .models import User
from .storage import Storage
from .validation import normalize_user_name, validate_user

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, storage: Storage):
        self.storage = storage

    def get_all_users(self) -> list[User]:
        return self.storage.get_all_users()

    def get_user(self, user_id: int) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            logger.warning(f"User {user_id} not found")
            raise NotFoundError("User", user_id)
        return user

    def user_exists(self, user_id: int) -> bool:
        return self.storage.user_exists(user_id)

    def require_users(self, *user_ids: int) -> None:
        """Raise NotFoundError for the first id that does not exist."""
        for user_id in user_ids:
            if not self.storage.user_exists(user_id):
                logger.warning(f"User {user_id} not found")
                raise NotFoundError("User", user_id)

    def create_user(self, user: User) -> User:
        logger.debug(f"Creating user '{user.login}'")
        validate_user(user)
        normalize_user_name(user)
        created = self.storage.create_user(user)
        logger.info(f"Created user '{created.login}' (id: {created.id})")
        return created

    def update_user(self, user: User) -> User:
        logger.debug(f"Updating user {user.id}")
        validate_user(user)
        self.require_users(user.id)
        normalize_user_name(user)
        updated = self.storage.update_user(user)
        logger.info(f"Updated user {updated.id}")
        return updated

    def delete_user(self, user_id: int) -> None:
        self.require_users(user_id)
        self.storage.delete_user(user_id)
        logger.info(f"Deleted user {user_id} with their likes and friendships")
