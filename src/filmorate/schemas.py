"""Pydantic schemas for the REST API and their conversion to domain dataclasses."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import Director, Film, Genre, MpaRating, User


class IdRef(BaseModel):
    """Reference to a genre, MPA rating or director by id (other fields ignored)."""

    id: int = Field(..., ge=1)


class GenreOut(BaseModel):
    id: int
    name: str


class MpaOut(BaseModel):
    id: int
    name: str
    description: str = ""


class DirectorIn(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., description="Director's full name")


class DirectorOut(BaseModel):
    id: int
    name: str


class FilmIn(BaseModel):
    """Film payload for create (id ignored) and update (id required)."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    name: str = Field(..., description="Film title")
    description: Optional[str] = None
    release_date: date = Field(..., alias="releaseDate")
    duration: Optional[int] = Field(None, description="Duration in minutes")
    mpa: Optional[IdRef] = None
    genres: list[IdRef] = Field(default_factory=list)
    directors: list[IdRef] = Field(default_factory=list)


class FilmOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    description: Optional[str] = None
    release_date: date = Field(..., alias="releaseDate")
    duration: Optional[int] = None
    mpa: Optional[MpaOut] = None
    genres: list[GenreOut] = Field(default_factory=list)
    directors: list[DirectorOut] = Field(default_factory=list)
    likes: list[int] = Field(default_factory=list)


class UserIn(BaseModel):
    """User payload for create (id ignored) and update (id required)."""

    id: Optional[int] = None
    email: EmailStr
    login: str
    name: Optional[str] = None
    birthday: Optional[date] = None


class UserOut(BaseModel):
    id: int
    email: str
    login: str
    name: Optional[str] = None
    birthday: Optional[date] = None


class FriendshipStatusOut(BaseModel):
    userId: int
    friendId: int
    status: Optional[str] = None


class LikeCountOut(BaseModel):
    filmId: int
    likes: int


def film_from_schema(payload: FilmIn, film_id: int | None = None) -> Film:
    return Film(
        id=film_id if film_id is not None else (payload.id or 0),
        name=payload.name,
        description=payload.description,
        release_date=payload.release_date,
        duration=payload.duration,
        mpa=MpaRating(payload.mpa.id) if payload.mpa else None,
        genres=[Genre(g.id) for g in payload.genres],
        directors=[Director(d.id) for d in payload.directors],
    )


def film_to_schema(film: Film) -> FilmOut:
    return FilmOut(
        id=film.id,
        name=film.name,
        description=film.description,
        release_date=film.release_date,
        duration=film.duration,
        mpa=MpaOut(id=film.mpa.id, name=film.mpa.name, description=film.mpa.description) if film.mpa else None,
        genres=[GenreOut(id=g.id, name=g.name) for g in film.genres],
        directors=[DirectorOut(id=d.id, name=d.name) for d in film.directors],
        likes=sorted(film.likes),
    )


def user_from_schema(payload: UserIn, user_id: int | None = None) -> User:
    return User(
        id=user_id if user_id is not None else (payload.id or 0),
        email=str(payload.email),
        login=payload.login,
        name=payload.name,
        birthday=payload.birthday,
    )


def user_to_schema(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, login=user.login, name=user.name, birthday=user.birthday)
