"""
Field-level validation for films, users and directors.

Services call these explicitly before any mutation so that a rejected
entity never reaches storage.
"""
import logging
from datetime import date

from email_validator import EmailNotValidError, validate_email

from .config import MAX_DESCRIPTION_LENGTH, MIN_RELEASE_DATE
from .exceptions import ValidationError
from .models import Director, Film, User

logger = logging.getLogger(__name__)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_film(film: Film) -> None:
    """
    Check a film against the catalog invariants.

    Raises:
        ValidationError: on the first violated field
    """
    if _is_blank(film.name):
        raise ValidationError("Film name must not be blank", field="name")

    if film.description is not None and len(film.description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Film description must be at most {MAX_DESCRIPTION_LENGTH} characters",
            field="description",
        )

    if film.release_date is None:
        raise ValidationError("Film release date is required", field="releaseDate")

    if film.release_date < MIN_RELEASE_DATE:
        logger.warning(f"Rejected release date {film.release_date} (before {MIN_RELEASE_DATE})")
        raise ValidationError(
            f"Release date must not be earlier than {MIN_RELEASE_DATE.isoformat()}",
            field="releaseDate",
        )

    if film.duration is not None and film.duration <= 0:
        raise ValidationError("Film duration must be positive", field="duration")


def validate_user(user: User, today: date | None = None) -> None:
    """
    Check a user's email, login and birthday.

    Args:
        user: User to validate
        today: Reference date for the birthday check (defaults to date.today())

    Raises:
        ValidationError: on the first violated field
    """
    if _is_blank(user.email):
        raise ValidationError("Email must not be blank", field="email")
    try:
        validate_email(user.email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Email is not valid: {e}", field="email") from e

    if _is_blank(user.login):
        raise ValidationError("Login must not be blank", field="login")
    if any(ch.isspace() for ch in user.login):
        raise ValidationError("Login must not contain whitespace", field="login")

    today = today or date.today()
    if user.birthday is not None and user.birthday > today:
        raise ValidationError("Birthday must not be in the future", field="birthday")


def normalize_user_name(user: User) -> User:
    """Use the login as display name when the name is blank or absent."""
    if _is_blank(user.name):
        logger.debug(f"User name is blank, falling back to login '{user.login}'")
        user.name = user.login
    return user


def validate_director(director: Director) -> None:
    if _is_blank(director.name):
        raise ValidationError("Director name must not be blank", field="name")
