"""Domain entities passed between storage, services and the request layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class FriendshipStatus(str, Enum):
    """State of a directed friendship edge."""

    PENDING = "PENDING"      # Request sent, not yet accepted
    CONFIRMED = "CONFIRMED"  # Request accepted


@dataclass
class Genre:
    id: int
    name: str = ""


@dataclass
class MpaRating:
    id: int
    name: str = ""
    description: str = ""


@dataclass
class Director:
    id: int = 0
    name: str = ""


@dataclass
class Film:
    """A film with its associations and the ids of users who liked it."""

    id: int = 0
    name: str = ""
    description: str | None = None
    release_date: date | None = None
    duration: int | None = None
    mpa: MpaRating | None = None
    genres: list[Genre] = field(default_factory=list)
    directors: list[Director] = field(default_factory=list)
    likes: set[int] = field(default_factory=set)

    @property
    def like_count(self) -> int:
        return len(self.likes)

    def genre_ids(self) -> list[int]:
        """Unique genre ids in ascending order."""
        return sorted({g.id for g in self.genres})

    def director_ids(self) -> list[int]:
        """Unique director ids in ascending order."""
        return sorted({d.id for d in self.directors})


@dataclass
class User:
    id: int = 0
    email: str = ""
    login: str = ""
    name: str | None = None
    birthday: date | None = None
