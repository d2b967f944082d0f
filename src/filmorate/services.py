"""Wiring of every service onto a single storage backend."""

from __future__ import annotations

from dataclasses import dataclass

from .films import DirectorService, FilmService, ReferenceService
from .friendship import FriendshipService
from .likes import LikeService
from .recommender import RecommendationService
from .search import SearchService
from .storage import Storage, create_storage
from .users import UserService


@dataclass
class Services:
    storage: Storage
    films: FilmService
    users: UserService
    directors: DirectorService
    reference: ReferenceService
    friendships: FriendshipService
    likes: LikeService
    recommendations: RecommendationService
    search: SearchService

    @classmethod
    def from_storage(cls, storage: Storage) -> "Services":
        return cls(
            storage=storage,
            films=FilmService(storage),
            users=UserService(storage),
            directors=DirectorService(storage),
            reference=ReferenceService(storage),
            friendships=FriendshipService(storage),
            likes=LikeService(storage),
            recommendations=RecommendationService(storage),
            search=SearchService(storage),
        )


def build_services(backend: str | None = None) -> Services:
    """Create the configured storage (initialising SQLite if needed) and wire services to it."""
    from . import config
    from .database import init_db

    backend = backend or config.STORAGE_BACKEND
    if backend == "sqlite":
        init_db()
    return Services.from_storage(create_storage(backend))
