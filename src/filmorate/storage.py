"""
Persistence interface used by every service.

Services only talk to `Storage`; each backend (in-memory, SQLite) implements
the whole interface so nothing above this layer inspects the concrete type.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .models import Director, Film, FriendshipStatus, Genre, MpaRating, User

logger = logging.getLogger(__name__)


class Storage(ABC):
    """CRUD and relation-table operations for the film catalog."""

    # Films

    @abstractmethod
    def create_film(self, film: Film) -> Film:
        """Insert a film with its genre/director associations; assigns `film.id`."""

    @abstractmethod
    def get_film(self, film_id: int) -> Film | None:
        """Return the film with associations and likes, or None."""

    @abstractmethod
    def get_films(self, film_ids: list[int]) -> list[Film]:
        """Return existing films among `film_ids`, ordered by id."""

    @abstractmethod
    def get_all_films(self) -> list[Film]:
        """Return all films ordered by id."""

    @abstractmethod
    def update_film(self, film: Film) -> Film:
        """Replace scalar fields and genre/director associations."""

    @abstractmethod
    def delete_film(self, film_id: int) -> bool:
        """Delete a film and its likes/associations. Returns False if it did not exist."""

    @abstractmethod
    def film_exists(self, film_id: int) -> bool: ...

    # Users

    @abstractmethod
    def create_user(self, user: User) -> User: ...

    @abstractmethod
    def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    def get_users(self, user_ids: list[int]) -> list[User]:
        """Return existing users among `user_ids`, ordered by id."""

    @abstractmethod
    def get_all_users(self) -> list[User]: ...

    @abstractmethod
    def update_user(self, user: User) -> User: ...

    @abstractmethod
    def delete_user(self, user_id: int) -> bool:
        """Delete a user together with their likes and friendship edges."""

    @abstractmethod
    def user_exists(self, user_id: int) -> bool: ...

    # Likes

    @abstractmethod
    def add_like(self, film_id: int, user_id: int) -> bool:
        """Record a like. Returns False (and changes nothing) if it already existed."""

    @abstractmethod
    def remove_like(self, film_id: int, user_id: int) -> bool:
        """Delete a like. Returns False if there was none."""

    @abstractmethod
    def get_film_likers(self, film_id: int) -> set[int]: ...

    @abstractmethod
    def get_user_likes(self, user_id: int) -> set[int]: ...

    @abstractmethod
    def get_like_counts(self) -> dict[int, int]:
        """Map of film id -> like count, for films with at least one like."""

    @abstractmethod
    def get_neighbor_likes(self, user_id: int) -> dict[int, set[int]]:
        """
        Likes of every other user who shares at least one liked film with `user_id`.

        Returns:
            neighbor user id -> ids of all films that neighbor liked
        """

    # Friendships (directed edges user_id -> friend_id)

    @abstractmethod
    def get_friendship_status(self, user_id: int, friend_id: int) -> FriendshipStatus | None: ...

    @abstractmethod
    def set_friendship(self, user_id: int, friend_id: int, status: FriendshipStatus) -> None:
        """Create or overwrite the edge user_id -> friend_id."""

    @abstractmethod
    def confirm_friendship(self, user_id: int, friend_id: int) -> None:
        """Mark `friend_id -> user_id` and `user_id -> friend_id` CONFIRMED in one step."""

    @abstractmethod
    def remove_friendship(self, user_id: int, friend_id: int) -> bool: ...

    @abstractmethod
    def get_outgoing(self, user_id: int, status: FriendshipStatus) -> list[int]:
        """Ids targeted by edges from `user_id` with `status`, ascending."""

    @abstractmethod
    def get_incoming(self, user_id: int, status: FriendshipStatus) -> list[int]:
        """Ids of users with an edge to `user_id` with `status`, ascending."""

    # Reference data

    @abstractmethod
    def get_genre(self, genre_id: int) -> Genre | None: ...

    @abstractmethod
    def get_all_genres(self) -> list[Genre]: ...

    @abstractmethod
    def get_mpa(self, mpa_id: int) -> MpaRating | None: ...

    @abstractmethod
    def get_all_mpa(self) -> list[MpaRating]: ...

    @abstractmethod
    def get_director(self, director_id: int) -> Director | None: ...

    @abstractmethod
    def get_all_directors(self) -> list[Director]: ...

    @abstractmethod
    def create_director(self, director: Director) -> Director: ...

    @abstractmethod
    def update_director(self, director: Director) -> Director: ...

    @abstractmethod
    def delete_director(self, director_id: int) -> bool: ...

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Row counts per entity/relation, for diagnostics."""


def create_storage(backend: str | None = None) -> Storage:
    """
    Build the storage backend named by `backend` or `config.STORAGE_BACKEND`.

    The SQLite backend expects `database.init_db()` to have been called.
    """
    from . import config

    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "memory":
        from .memory_storage import InMemoryStorage
        logger.info("Using in-memory storage")
        return InMemoryStorage()
    if backend == "sqlite":
        from .sqlite_storage import SqliteStorage
        logger.info(f"Using SQLite storage at {config.DB_PATH}")
        return SqliteStorage()
    raise ValueError(f"Unknown storage backend: {backend}")
