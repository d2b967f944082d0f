"""FastAPI request layer: translates HTTP calls into service calls and errors into status codes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .database import close_pool
from .exceptions import InvalidStateError, NotFoundError, StorageError, ValidationError
from .models import Director
from .schemas import (
    DirectorIn,
    DirectorOut,
    FilmIn,
    FilmOut,
    FriendshipStatusOut,
    GenreOut,
    LikeCountOut,
    MpaOut,
    UserIn,
    UserOut,
    film_from_schema,
    film_to_schema,
    user_from_schema,
    user_to_schema,
)
from .services import Services, build_services
from .storage import Storage

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(_request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(InvalidStateError)
    async def invalid_state(_request: Request, exc: InvalidStateError):
        return _error(409, str(exc))

    @app.exception_handler(ValidationError)
    async def invalid_input(_request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(_request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Validation error") if errors else "Validation error"
        return _error(400, message)

    @app.exception_handler(StorageError)
    async def storage_failure(_request: Request, exc: StorageError):
        logger.error(f"Storage failure: {exc}")
        return _error(500, "Internal server error")


def create_app(storage: Storage | None = None) -> FastAPI:
    """
    Build the API.

    Args:
        storage: Backend to serve; None builds the configured one at startup
            (and closes the SQLite pool at shutdown)
    """

    @asynccontextmanager
    async def lifespan(app_: FastAPI):
        if storage is not None:
            app_.state.services = Services.from_storage(storage)
            yield
            return
        app_.state.services = build_services()
        logger.info("Filmorate API started")
        yield
        close_pool()

    app = FastAPI(title="Filmorate", lifespan=lifespan)
    _register_error_handlers(app)

    def svc() -> Services:
        return app.state.services

    # Films

    @app.get("/films", response_model=list[FilmOut])
    def list_films():
        return [film_to_schema(f) for f in svc().films.get_all_films()]

    @app.post("/films", response_model=FilmOut, status_code=201)
    def create_film(payload: FilmIn):
        return film_to_schema(svc().films.create_film(film_from_schema(payload, film_id=0)))

    @app.put("/films", response_model=FilmOut)
    def update_film(payload: FilmIn):
        if payload.id is None:
            raise ValidationError("Film id is required for update", field="id")
        return film_to_schema(svc().films.update_film(film_from_schema(payload)))

    @app.get("/films/popular", response_model=list[FilmOut])
    def popular_films(count: Optional[int] = None):
        return [film_to_schema(f) for f in svc().likes.popular_films(count)]

    @app.get("/films/common", response_model=list[FilmOut])
    def common_films(user_id: int = Query(..., alias="userId"), friend_id: int = Query(..., alias="friendId")):
        return [film_to_schema(f) for f in svc().likes.common_liked_films(user_id, friend_id)]

    @app.get("/films/search", response_model=list[FilmOut])
    def search_films(query: str = "", by: str = "title"):
        return [film_to_schema(f) for f in svc().search.search_films(query, by)]

    @app.get("/films/{film_id}", response_model=FilmOut)
    def get_film(film_id: int):
        return film_to_schema(svc().films.get_film(film_id))

    @app.delete("/films/{film_id}", status_code=204)
    def delete_film(film_id: int):
        svc().films.delete_film(film_id)

    @app.put("/films/{film_id}/like/{user_id}", status_code=204)
    def add_like(film_id: int, user_id: int):
        svc().likes.add_like(film_id, user_id)

    @app.delete("/films/{film_id}/like/{user_id}", status_code=204)
    def remove_like(film_id: int, user_id: int):
        svc().likes.remove_like(film_id, user_id)

    @app.get("/films/{film_id}/likes", response_model=LikeCountOut)
    def like_count(film_id: int):
        return LikeCountOut(filmId=film_id, likes=svc().likes.like_count(film_id))

    # Users

    @app.get("/users", response_model=list[UserOut])
    def list_users():
        return [user_to_schema(u) for u in svc().users.get_all_users()]

    @app.post("/users", response_model=UserOut, status_code=201)
    def create_user(payload: UserIn):
        return user_to_schema(svc().users.create_user(user_from_schema(payload, user_id=0)))

    @app.put("/users", response_model=UserOut)
    def update_user(payload: UserIn):
        if payload.id is None:
            raise ValidationError("User id is required for update", field="id")
        return user_to_schema(svc().users.update_user(user_from_schema(payload)))

    @app.get("/users/{user_id}", response_model=UserOut)
    def get_user(user_id: int):
        return user_to_schema(svc().users.get_user(user_id))

    @app.delete("/users/{user_id}", status_code=204)
    def delete_user(user_id: int):
        svc().users.delete_user(user_id)

    @app.get("/users/{user_id}/friends", response_model=list[UserOut])
    def list_friends(user_id: int):
        return [user_to_schema(u) for u in svc().friendships.list_friends(user_id)]

    @app.get("/users/{user_id}/friends/requests", response_model=list[UserOut])
    def list_friend_requests(user_id: int):
        return [user_to_schema(u) for u in svc().friendships.list_pending_requests(user_id)]

    @app.get("/users/{user_id}/friends/common/{other_id}", response_model=list[UserOut])
    def common_friends(user_id: int, other_id: int):
        return [user_to_schema(u) for u in svc().friendships.common_friends(user_id, other_id)]

    @app.put("/users/{user_id}/friends/{friend_id}", status_code=204)
    def send_friend_request(user_id: int, friend_id: int):
        svc().friendships.send_friend_request(user_id, friend_id)

    @app.put("/users/{user_id}/friends/{friend_id}/confirm", status_code=204)
    def confirm_friend_request(user_id: int, friend_id: int):
        svc().friendships.confirm_friend_request(user_id, friend_id)

    @app.get("/users/{user_id}/friends/{friend_id}/status", response_model=FriendshipStatusOut)
    def friendship_status(user_id: int, friend_id: int):
        status = svc().friendships.get_friendship_status(user_id, friend_id)
        return FriendshipStatusOut(userId=user_id, friendId=friend_id, status=status.value if status else None)

    @app.delete("/users/{user_id}/friends/{friend_id}", status_code=204)
    def remove_friend(user_id: int, friend_id: int):
        svc().friendships.remove_friend(user_id, friend_id)

    @app.get("/users/{user_id}/recommendations", response_model=list[FilmOut])
    def recommendations(user_id: int, limit: Optional[int] = None):
        return [film_to_schema(f) for f in svc().recommendations.recommend(user_id, limit)]

    # Reference data

    @app.get("/genres", response_model=list[GenreOut])
    def list_genres():
        return [GenreOut(id=g.id, name=g.name) for g in svc().reference.get_all_genres()]

    @app.get("/genres/{genre_id}", response_model=GenreOut)
    def get_genre(genre_id: int):
        genre = svc().reference.get_genre(genre_id)
        return GenreOut(id=genre.id, name=genre.name)

    @app.get("/mpa", response_model=list[MpaOut])
    def list_mpa():
        return [MpaOut(id=m.id, name=m.name, description=m.description) for m in svc().reference.get_all_mpa()]

    @app.get("/mpa/{mpa_id}", response_model=MpaOut)
    def get_mpa(mpa_id: int):
        mpa = svc().reference.get_mpa(mpa_id)
        return MpaOut(id=mpa.id, name=mpa.name, description=mpa.description)

    # Directors

    @app.get("/directors", response_model=list[DirectorOut])
    def list_directors():
        return [DirectorOut(id=d.id, name=d.name) for d in svc().directors.get_all_directors()]

    @app.get("/directors/{director_id}", response_model=DirectorOut)
    def get_director(director_id: int):
        director = svc().directors.get_director(director_id)
        return DirectorOut(id=director.id, name=director.name)

    @app.post("/directors", response_model=DirectorOut, status_code=201)
    def create_director(payload: DirectorIn):
        director = svc().directors.create_director(Director(name=payload.name))
        return DirectorOut(id=director.id, name=director.name)

    @app.put("/directors", response_model=DirectorOut)
    def update_director(payload: DirectorIn):
        if payload.id is None:
            raise ValidationError("Director id is required for update", field="id")
        director = svc().directors.update_director(Director(id=payload.id, name=payload.name))
        return DirectorOut(id=director.id, name=director.name)

    @app.delete("/directors/{director_id}", status_code=204)
    def delete_director(director_id: int):
        svc().directors.delete_director(director_id)

    return app
