"""Film catalog services: films, directors and read-only reference data."""

from __future__ import annotations

import logging

from .exceptions import NotFoundError
from .models import Director, Film, Genre, MpaRating
from .storage import Storage
from .validation import validate_director, validate_film

logger = logging.getLogger(__name__)


class ReferenceService:
    """Lookup of the fixed genre and MPA rating sets."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def get_all_genres(self) -> list[Genre]:
        return self.storage.get_all_genres()

    def get_genre(self, genre_id: int) -> Genre:
        genre = self.storage.get_genre(genre_id)
        if genre is None:
            raise NotFoundError("Genre", genre_id)
        return genre

    def get_all_mpa(self) -> list[MpaRating]:
        return self.storage.get_all_mpa()

    def get_mpa(self, mpa_id: int) -> MpaRating:
        mpa = self.storage.get_mpa(mpa_id)
        if mpa is None:
            raise NotFoundError("MPA rating", mpa_id)
        return mpa


class DirectorService:
    def __init__(self, storage: Storage):
        self.storage = storage

    def get_all_directors(self) -> list[Director]:
        return self.storage.get_all_directors()

    def get_director(self, director_id: int) -> Director:
        director = self.storage.get_director(director_id)
        if director is None:
            raise NotFoundError("Director", director_id)
        return director

    def create_director(self, director: Director) -> Director:
        validate_director(director)
        created = self.storage.create_director(director)
        logger.info(f"Created director '{created.name}' (id: {created.id})")
        return created

    def update_director(self, director: Director) -> Director:
        validate_director(director)
        self.get_director(director.id)
        updated = self.storage.update_director(director)
        logger.info(f"Updated director '{updated.name}' (id: {updated.id})")
        return updated

    def delete_director(self, director_id: int) -> None:
        self.get_director(director_id)
        self.storage.delete_director(director_id)
        logger.info(f"Deleted director {director_id}")


class FilmService:
    """
    CRUD for films.

    Create and update validate the film first, then check that every
    referenced MPA rating, genre and director exists, and only then touch
    storage.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def get_all_films(self) -> list[Film]:
        films = self.storage.get_all_films()
        logger.debug(f"Loaded {len(films)} films")
        return films

    def get_film(self, film_id: int) -> Film:
        film = self.storage.get_film(film_id)
        if film is None:
            logger.warning(f"Film {film_id} not found")
            raise NotFoundError("Film", film_id)
        return film

    def film_exists(self, film_id: int) -> bool:
        return self.storage.film_exists(film_id)

    def require_film(self, film_id: int) -> None:
        if not self.storage.film_exists(film_id):
            logger.warning(f"Film {film_id} not found")
            raise NotFoundError("Film", film_id)

    def _check_references(self, film: Film) -> None:
        if film.mpa is not None and self.storage.get_mpa(film.mpa.id) is None:
            raise NotFoundError("MPA rating", film.mpa.id)
        for genre_id in film.genre_ids():
            if self.storage.get_genre(genre_id) is None:
                raise NotFoundError("Genre", genre_id)
        for director_id in film.director_ids():
            if self.storage.get_director(director_id) is None:
                raise NotFoundError("Director", director_id)

    def create_film(self, film: Film) -> Film:
        logger.debug(f"Creating film '{film.name}'")
        validate_film(film)
        self._check_references(film)
        created = self.storage.create_film(film)
        logger.info(f"Created film '{created.name}' (id: {created.id})")
        return created

    def update_film(self, film: Film) -> Film:
        logger.debug(f"Updating film {film.id}")
        validate_film(film)
        self.require_film(film.id)
        self._check_references(film)
        updated = self.storage.update_film(film)
        logger.info(f"Updated film '{updated.name}' (id: {updated.id})")
        return updated

    def delete_film(self, film_id: int) -> None:
        self.require_film(film_id)
        self.storage.delete_film(film_id)
        logger.info(f"Deleted film {film_id}")
