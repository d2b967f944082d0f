"""
Configuration constants for the Filmorate backend.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables.
"""
import os
import logging
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_choice_env(key: str, default: str, choices: tuple[str, ...]) -> str:
    """Read a lowercase string env var restricted to `choices`."""
    val = os.environ.get(key, default).strip().lower()
    if val not in choices:
        logger.warning(f"Invalid {key}='{val}' (expected one of {', '.join(choices)}), using default {default}")
        return default
    return val


# Storage Configuration
DB_PATH = Path(os.environ.get("FILMORATE_DB", "data/filmorate.db"))
STORAGE_BACKENDS = ("sqlite", "memory")
STORAGE_BACKEND = _get_choice_env("FILMORATE_STORAGE", "sqlite", STORAGE_BACKENDS)

# Connection pool
POOL_MAX_SIZE = _get_int_env("FILMORATE_POOL_MAX_SIZE", 50, min_val=1)
POOL_HEALTH_CHECK_INTERVAL = _get_int_env("FILMORATE_POOL_HEALTH_CHECK_INTERVAL", 300, min_val=1)

# Request layer
API_HOST = os.environ.get("FILMORATE_HOST", "127.0.0.1")
API_PORT = _get_int_env("FILMORATE_PORT", 8080, min_val=1)
LOG_LEVEL = os.environ.get("FILMORATE_LOG_LEVEL", "INFO").upper()

# Ranking defaults
DEFAULT_POPULAR_COUNT = _get_int_env("FILMORATE_POPULAR_COUNT", 10, min_val=1)
DEFAULT_RECOMMENDATION_LIMIT = _get_int_env("FILMORATE_RECOMMENDATION_LIMIT", 10, min_val=1)

# Domain invariants
MIN_RELEASE_DATE = date(1895, 12, 28)  # First public film screening
MAX_DESCRIPTION_LENGTH = 200

# Search
SEARCH_FIELD_TITLE = "title"
SEARCH_FIELD_DIRECTOR = "director"
SEARCH_FIELDS = (SEARCH_FIELD_TITLE, SEARCH_FIELD_DIRECTOR)

# Export/import batching
EXPORT_CHUNK_SIZE = 1000
IMPORT_CHUNK_SIZE = 500

# Reference data - seeded into every storage backend
GENRES = [
    (1, "Комедия"),
    (2, "Драма"),
    (3, "Мультфильм"),
    (4, "Триллер"),
    (5, "Документальный"),
    (6, "Боевик"),
]

MPA_RATINGS = [
    (1, "G", "у фильма нет возрастных ограничений"),
    (2, "PG", "детям рекомендуется смотреть фильм с родителями"),
    (3, "PG-13", "детям до 13 лет просмотр не желателен"),
    (4, "R", "лицам до 17 лет просматривать фильм можно только в присутствии взрослого"),
    (5, "NC-17", "лицам до 18 лет просмотр запрещён"),
]
