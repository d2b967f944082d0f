"""Like/popularity engine: the user x film like relation and rankings derived from it."""

from __future__ import annotations

import logging

from .config import DEFAULT_POPULAR_COUNT
from .exceptions import InvalidStateError
from .films import FilmService
from .models import Film
from .storage import Storage
from .users import UserService

logger = logging.getLogger(__name__)


def rank_by_popularity(films: list[Film], like_counts: dict[int, int]) -> list[Film]:
    """Order films by like count (desc), then film id (asc)."""
    return sorted(films, key=lambda f: (-like_counts.get(f.id, 0), f.id))


class LikeService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.films = FilmService(storage)
        self.users = UserService(storage)

    def add_like(self, film_id: int, user_id: int) -> None:
        """
        Record that `user_id` likes `film_id`.

        Raises:
            NotFoundError: if the film or user does not exist
            InvalidStateError: if the user already liked the film
        """
        logger.debug(f"Adding like: user {user_id} -> film {film_id}")
        self.films.require_film(film_id)
        self.users.require_users(user_id)

        if not self.storage.add_like(film_id, user_id):
            logger.warning(f"User {user_id} already liked film {film_id}")
            raise InvalidStateError(f"User {user_id} already liked film {film_id}")
        logger.info(f"User {user_id} liked film {film_id}")

    def remove_like(self, film_id: int, user_id: int) -> None:
        logger.debug(f"Removing like: user {user_id} -> film {film_id}")
        self.films.require_film(film_id)
        self.users.require_users(user_id)

        if self.storage.remove_like(film_id, user_id):
            logger.info(f"User {user_id} removed like from film {film_id}")
        else:
            logger.debug(f"User {user_id} had not liked film {film_id}, nothing to remove")

    def like_count(self, film_id: int) -> int:
        self.films.require_film(film_id)
        return len(self.storage.get_film_likers(film_id))

    def popular_films(self, count: int | None = None) -> list[Film]:
        """
        Most liked films.

        Args:
            count: Maximum number of films; None means DEFAULT_POPULAR_COUNT,
                values below 1 are clamped to 1
        """
        count = DEFAULT_POPULAR_COUNT if count is None else max(1, int(count))
        like_counts = self.storage.get_like_counts()
        ranked = rank_by_popularity(self.storage.get_all_films(), like_counts)[:count]
        logger.debug(f"Returning {len(ranked)} popular films (requested {count})")
        return ranked

    def common_liked_films(self, user_id: int, other_id: int) -> list[Film]:
        """Films liked by both users, most liked overall first."""
        self.users.require_users(user_id, other_id)
        common = self.storage.get_user_likes(user_id) & self.storage.get_user_likes(other_id)
        if not common:
            return []
        films = self.storage.get_films(sorted(common))
        return rank_by_popularity(films, {f.id: f.like_count for f in films})
