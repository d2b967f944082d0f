"""Film search by title and/or director name."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .config import SEARCH_FIELD_DIRECTOR, SEARCH_FIELD_TITLE, SEARCH_FIELDS
from .likes import rank_by_popularity
from .models import Film
from .storage import Storage

logger = logging.getLogger(__name__)


def parse_search_fields(fields: str | Iterable[str] | None) -> set[str]:
    """
    Normalize the requested search fields.

    Accepts a comma-separated string ("title,director") or an iterable of
    tokens. Unknown tokens are ignored; if nothing recognizable remains the
    search falls back to titles only.
    """
    if fields is None:
        tokens: Iterable[str] = []
    elif isinstance(fields, str):
        tokens = fields.split(",")
    else:
        tokens = fields

    parsed = {t.strip().lower() for t in tokens if t and t.strip().lower() in SEARCH_FIELDS}
    return parsed or {SEARCH_FIELD_TITLE}


def film_matches(film: Film, needle: str, fields: set[str]) -> bool:
    """True if the casefolded `needle` occurs in any of the requested fields."""
    if not needle:
        return True
    if SEARCH_FIELD_TITLE in fields and needle in (film.name or "").casefold():
        return True
    if SEARCH_FIELD_DIRECTOR in fields:
        return any(needle in (d.name or "").casefold() for d in film.directors)
    return False


class SearchService:
    def __init__(self, storage: Storage):
        self.storage = storage

    def search_films(self, query: str | None, fields: str | Iterable[str] | None = None) -> list[Film]:
        """
        Case-insensitive substring search over film titles and director names.

        A film matches when any requested field contains the query; each film
        appears once. Results are ordered by like count (desc), then id (asc).
        An empty query matches every film.
        """
        wanted = parse_search_fields(fields)
        needle = (query or "").casefold()

        matches = [f for f in self.storage.get_all_films() if film_matches(f, needle, wanted)]
        logger.debug(f"Search '{query}' by {sorted(wanted)}: {len(matches)} films")
        return rank_by_popularity(matches, {f.id: f.like_count for f in matches})
