"""
Friendship engine.

Friendships are directed edges `user -> friend` carrying a status:

- `send_friend_request(a, b)` creates `a -> b = PENDING`
- `confirm_friend_request(b, a)` requires `a -> b = PENDING`, flips it to
  CONFIRMED and adds the reciprocal `b -> a = CONFIRMED`
- `remove_friend` drops the edges in both directions

A user's friends are the targets of their CONFIRMED outgoing edges; their
pending requests are the sources of PENDING edges pointing at them.
"""

from __future__ import annotations

import logging

from .exceptions import InvalidStateError, ValidationError
from .models import FriendshipStatus, User
from .storage import Storage
from .users import UserService

logger = logging.getLogger(__name__)


class FriendshipService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.users = UserService(storage)

    def send_friend_request(self, user_id: int, target_id: int) -> None:
        logger.debug(f"Friend request: {user_id} -> {target_id}")
        self.users.require_users(user_id, target_id)
        if user_id == target_id:
            raise ValidationError("Users cannot befriend themselves", field="friendId")

        existing = self.storage.get_friendship_status(user_id, target_id)
        if existing is not None:
            logger.warning(f"Friendship edge {user_id} -> {target_id} already exists ({existing.value})")
            raise InvalidStateError(
                f"User {user_id} already has a {existing.value.lower()} friendship with user {target_id}"
            )

        self.storage.set_friendship(user_id, target_id, FriendshipStatus.PENDING)
        logger.info(f"User {user_id} sent a friend request to user {target_id}")

    def confirm_friend_request(self, user_id: int, target_id: int) -> None:
        """Accept the pending request that `target_id` sent to `user_id`."""
        logger.debug(f"Confirming friend request {target_id} -> {user_id}")
        self.users.require_users(user_id, target_id)

        if self.storage.get_friendship_status(target_id, user_id) != FriendshipStatus.PENDING:
            logger.warning(f"No pending friend request from {target_id} to {user_id}")
            raise InvalidStateError(f"No pending friend request from user {target_id} to user {user_id}")

        self.storage.confirm_friendship(user_id, target_id)
        logger.info(f"Friendship between users {user_id} and {target_id} confirmed")

    def remove_friend(self, user_id: int, target_id: int) -> None:
        logger.debug(f"Removing friendship between {user_id} and {target_id}")
        self.users.require_users(user_id, target_id)

        removed = self.storage.remove_friendship(user_id, target_id)
        removed = self.storage.remove_friendship(target_id, user_id) or removed
        if removed:
            logger.info(f"Users {user_id} and {target_id} are no longer friends")

    def list_friends(self, user_id: int) -> list[User]:
        self.users.require_users(user_id)
        return self.storage.get_users(self.storage.get_outgoing(user_id, FriendshipStatus.CONFIRMED))

    def list_pending_requests(self, user_id: int) -> list[User]:
        self.users.require_users(user_id)
        return self.storage.get_users(self.storage.get_incoming(user_id, FriendshipStatus.PENDING))

    def common_friends(self, user_id: int, other_id: int) -> list[User]:
        self.users.require_users(user_id, other_id)
        mine = set(self.storage.get_outgoing(user_id, FriendshipStatus.CONFIRMED))
        theirs = set(self.storage.get_outgoing(other_id, FriendshipStatus.CONFIRMED))
        common = mine & theirs
        logger.debug(f"Users {user_id} and {other_id} share {len(common)} friends")
        return self.storage.get_users(sorted(common))

    def get_friendship_status(self, user_id: int, friend_id: int) -> FriendshipStatus | None:
        self.users.require_users(user_id, friend_id)
        return self.storage.get_friendship_status(user_id, friend_id)
