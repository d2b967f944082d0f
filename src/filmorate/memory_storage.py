"""In-memory storage backend, used for tests and the `memory` storage mode."""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from collections import defaultdict

from .config import GENRES, MPA_RATINGS
from .exceptions import NotFoundError
from .models import Director, Film, FriendshipStatus, Genre, MpaRating, User
from .storage import Storage

logger = logging.getLogger(__name__)


class InMemoryStorage(Storage):
    """
    Dict-backed store owning its entities and id counters.

    All access goes through one re-entrant lock, so a single instance can be
    shared across request threads. Entities are copied on the way in and out
    so callers never hold references to stored state.
    """

    def __init__(self):
        self._lock = threading.RLock()

        self._films: dict[int, Film] = {}
        self._users: dict[int, User] = {}
        self._directors: dict[int, Director] = {}
        self._genres = {gid: Genre(gid, name) for gid, name in GENRES}
        self._mpa = {mid: MpaRating(mid, name, desc) for mid, name, desc in MPA_RATINGS}

        self._likes: dict[int, set[int]] = defaultdict(set)  # film_id -> user ids
        self._friendships: dict[tuple[int, int], FriendshipStatus] = {}

        self._film_ids = itertools.count(1)
        self._user_ids = itertools.count(1)
        self._director_ids = itertools.count(1)

    def _resolve_associations(self, film: Film) -> Film:
        """Replace association stubs with stored reference entities, in id order."""
        film.mpa = copy.copy(self._mpa.get(film.mpa.id)) if film.mpa else None
        film.genres = [copy.copy(self._genres[gid]) for gid in film.genre_ids() if gid in self._genres]
        film.directors = [copy.copy(self._directors[did]) for did in film.director_ids() if did in self._directors]
        film.likes = set()
        return film

    def _load_film(self, film_id: int) -> Film:
        film = copy.deepcopy(self._films[film_id])
        # Directors may have been renamed or deleted since the film was saved
        film.directors = [copy.copy(self._directors[d.id]) for d in film.directors if d.id in self._directors]
        film.likes = set(self._likes.get(film_id, ()))
        return film

    # Films

    def create_film(self, film: Film) -> Film:
        with self._lock:
            stored = self._resolve_associations(copy.deepcopy(film))
            stored.id = next(self._film_ids)
            self._films[stored.id] = stored
            return self._load_film(stored.id)

    def get_film(self, film_id: int) -> Film | None:
        with self._lock:
            if film_id not in self._films:
                return None
            return self._load_film(film_id)

    def get_films(self, film_ids: list[int]) -> list[Film]:
        with self._lock:
            return [self._load_film(fid) for fid in sorted(set(film_ids)) if fid in self._films]

    def get_all_films(self) -> list[Film]:
        with self._lock:
            return [self._load_film(fid) for fid in sorted(self._films)]

    def update_film(self, film: Film) -> Film:
        with self._lock:
            if film.id not in self._films:
                raise NotFoundError("Film", film.id)
            self._films[film.id] = self._resolve_associations(copy.deepcopy(film))
            return self._load_film(film.id)

    def delete_film(self, film_id: int) -> bool:
        with self._lock:
            if self._films.pop(film_id, None) is None:
                return False
            self._likes.pop(film_id, None)
            return True

    def film_exists(self, film_id: int) -> bool:
        with self._lock:
            return film_id in self._films

    # Users

    def create_user(self, user: User) -> User:
        with self._lock:
            stored = copy.deepcopy(user)
            stored.id = next(self._user_ids)
            self._users[stored.id] = stored
            return copy.deepcopy(stored)

    def get_user(self, user_id: int) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_users(self, user_ids: list[int]) -> list[User]:
        with self._lock:
            return [copy.deepcopy(self._users[uid]) for uid in sorted(set(user_ids)) if uid in self._users]

    def get_all_users(self) -> list[User]:
        with self._lock:
            return [copy.deepcopy(self._users[uid]) for uid in sorted(self._users)]

    def update_user(self, user: User) -> User:
        with self._lock:
            if user.id not in self._users:
                raise NotFoundError("User", user.id)
            self._users[user.id] = copy.deepcopy(user)
            return copy.deepcopy(user)

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            for likers in self._likes.values():
                likers.discard(user_id)
            for edge in [e for e in self._friendships if user_id in e]:
                del self._friendships[edge]
            return True

    def user_exists(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._users

    # Likes

    def add_like(self, film_id: int, user_id: int) -> bool:
        with self._lock:
            likers = self._likes[film_id]
            if user_id in likers:
                return False
            likers.add(user_id)
            return True

    def remove_like(self, film_id: int, user_id: int) -> bool:
        with self._lock:
            likers = self._likes.get(film_id)
            if not likers or user_id not in likers:
                return False
            likers.discard(user_id)
            return True

    def get_film_likers(self, film_id: int) -> set[int]:
        with self._lock:
            return set(self._likes.get(film_id, ()))

    def get_user_likes(self, user_id: int) -> set[int]:
        with self._lock:
            return {fid for fid, likers in self._likes.items() if user_id in likers}

    def get_like_counts(self) -> dict[int, int]:
        with self._lock:
            return {fid: len(likers) for fid, likers in self._likes.items() if likers}

    def get_neighbor_likes(self, user_id: int) -> dict[int, set[int]]:
        with self._lock:
            neighbors = {u for likers in self._likes.values() if user_id in likers for u in likers}
            neighbors.discard(user_id)

            by_user: dict[int, set[int]] = defaultdict(set)
            for fid, likers in self._likes.items():
                for uid in likers & neighbors:
                    by_user[uid].add(fid)
            return dict(by_user)

    # Friendships

    def get_friendship_status(self, user_id: int, friend_id: int) -> FriendshipStatus | None:
        with self._lock:
            return self._friendships.get((user_id, friend_id))

    def set_friendship(self, user_id: int, friend_id: int, status: FriendshipStatus) -> None:
        with self._lock:
            self._friendships[(user_id, friend_id)] = status

    def confirm_friendship(self, user_id: int, friend_id: int) -> None:
        with self._lock:
            self._friendships[(friend_id, user_id)] = FriendshipStatus.CONFIRMED
            self._friendships[(user_id, friend_id)] = FriendshipStatus.CONFIRMED

    def remove_friendship(self, user_id: int, friend_id: int) -> bool:
        with self._lock:
            return self._friendships.pop((user_id, friend_id), None) is not None

    def get_outgoing(self, user_id: int, status: FriendshipStatus) -> list[int]:
        with self._lock:
            return sorted(f for (u, f), s in self._friendships.items() if u == user_id and s == status)

    def get_incoming(self, user_id: int, status: FriendshipStatus) -> list[int]:
        with self._lock:
            return sorted(u for (u, f), s in self._friendships.items() if f == user_id and s == status)

    # Reference data

    def get_genre(self, genre_id: int) -> Genre | None:
        genre = self._genres.get(genre_id)
        return copy.copy(genre) if genre else None

    def get_all_genres(self) -> list[Genre]:
        return [copy.copy(self._genres[gid]) for gid in sorted(self._genres)]

    def get_mpa(self, mpa_id: int) -> MpaRating | None:
        mpa = self._mpa.get(mpa_id)
        return copy.copy(mpa) if mpa else None

    def get_all_mpa(self) -> list[MpaRating]:
        return [copy.copy(self._mpa[mid]) for mid in sorted(self._mpa)]

    def get_director(self, director_id: int) -> Director | None:
        with self._lock:
            director = self._directors.get(director_id)
            return copy.copy(director) if director else None

    def get_all_directors(self) -> list[Director]:
        with self._lock:
            return [copy.copy(self._directors[did]) for did in sorted(self._directors)]

    def create_director(self, director: Director) -> Director:
        with self._lock:
            stored = Director(id=next(self._director_ids), name=director.name)
            self._directors[stored.id] = stored
            return copy.copy(stored)

    def update_director(self, director: Director) -> Director:
        with self._lock:
            if director.id not in self._directors:
                raise NotFoundError("Director", director.id)
            self._directors[director.id] = copy.copy(director)
            return copy.copy(director)

    def delete_director(self, director_id: int) -> bool:
        with self._lock:
            return self._directors.pop(director_id, None) is not None

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "films": len(self._films),
                "users": len(self._users),
                "directors": len(self._directors),
                "likes": sum(len(likers) for likers in self._likes.values()),
                "friendships": len(self._friendships),
            }
