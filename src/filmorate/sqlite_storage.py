"""SQLite storage backend built on the pooled connections from `database`."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from datetime import date

from . import database
from .exceptions import NotFoundError, StorageError
from .models import Director, Film, FriendshipStatus, Genre, MpaRating, User
from .storage import Storage

logger = logging.getLogger(__name__)

# SQLite supports up to 999 bound parameters per statement
CHUNK_SIZE = 900

_FILM_SELECT = """
    SELECT f.id, f.name, f.description, f.release_date, f.duration,
           m.id AS mpa_id, m.name AS mpa_name, m.description AS mpa_description
    FROM films f
    LEFT JOIN mpa_ratings m ON f.mpa_id = m.id
"""

_UPSERT_FRIENDSHIP = """
    INSERT INTO friendships (user_id, friend_id, status) VALUES (?, ?, ?)
    ON CONFLICT(user_id, friend_id) DO UPDATE SET status = excluded.status
"""


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _format_date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _row_to_film(row: sqlite3.Row) -> Film:
    mpa = None
    if row['mpa_id'] is not None:
        mpa = MpaRating(row['mpa_id'], row['mpa_name'], row['mpa_description'] or "")
    return Film(
        id=row['id'],
        name=row['name'],
        description=row['description'],
        release_date=_parse_date(row['release_date']),
        duration=row['duration'],
        mpa=mpa,
    )


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row['id'],
        email=row['email'],
        login=row['login'],
        name=row['name'],
        birthday=_parse_date(row['birthday']),
    )


def _chunks(items: list, size: int = CHUNK_SIZE):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class SqliteStorage(Storage):
    """
    Storage backed by the relational schema created in `database.init_db()`.

    Every method opens a `get_db()` context, so calls made inside an outer
    `get_db()` block share its transaction.
    """

    @contextmanager
    def _db(self, read_only: bool = False):
        try:
            with database.get_db(read_only=read_only) as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error: {e}")
            raise StorageError(str(e)) from e

    def _load_details(self, conn, films: list[Film]) -> list[Film]:
        """Attach genres, directors and likes to films in batched queries."""
        if not films:
            return films

        genres_by_film: dict[int, list[Genre]] = defaultdict(list)
        directors_by_film: dict[int, list[Director]] = defaultdict(list)
        likes_by_film: dict[int, set[int]] = defaultdict(set)

        film_ids = [f.id for f in films]
        for chunk in _chunks(film_ids):
            placeholders = ','.join('?' * len(chunk))
            for row in conn.execute(f"""
                SELECT fg.film_id, g.id, g.name
                FROM film_genres fg JOIN genres g ON fg.genre_id = g.id
                WHERE fg.film_id IN ({placeholders})
                ORDER BY fg.film_id, g.id
            """, chunk):
                genres_by_film[row['film_id']].append(Genre(row['id'], row['name']))

            for row in conn.execute(f"""
                SELECT fd.film_id, d.id, d.name
                FROM film_directors fd JOIN directors d ON fd.director_id = d.id
                WHERE fd.film_id IN ({placeholders})
                ORDER BY fd.film_id, d.id
            """, chunk):
                directors_by_film[row['film_id']].append(Director(row['id'], row['name']))

            for row in conn.execute(
                f"SELECT film_id, user_id FROM likes WHERE film_id IN ({placeholders})", chunk
            ):
                likes_by_film[row['film_id']].add(row['user_id'])

        for film in films:
            film.genres = genres_by_film.get(film.id, [])
            film.directors = directors_by_film.get(film.id, [])
            film.likes = likes_by_film.get(film.id, set())
        return films

    def _save_associations(self, conn, film: Film) -> None:
        conn.execute("DELETE FROM film_genres WHERE film_id = ?", (film.id,))
        conn.execute("DELETE FROM film_directors WHERE film_id = ?", (film.id,))
        conn.executemany(
            "INSERT OR IGNORE INTO film_genres (film_id, genre_id) VALUES (?, ?)",
            [(film.id, gid) for gid in film.genre_ids()],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO film_directors (film_id, director_id) VALUES (?, ?)",
            [(film.id, did) for did in film.director_ids()],
        )

    # Films

    def create_film(self, film: Film) -> Film:
        with self._db() as conn:
            cursor = conn.execute(
                "INSERT INTO films (name, description, release_date, duration, mpa_id) VALUES (?, ?, ?, ?, ?)",
                (film.name, film.description, _format_date(film.release_date), film.duration,
                 film.mpa.id if film.mpa else None),
            )
            film_id = cursor.lastrowid
            self._save_associations(conn, replace(film, id=film_id))
            return self.get_film(film_id)

    def get_film(self, film_id: int) -> Film | None:
        with self._db(read_only=True) as conn:
            row = conn.execute(_FILM_SELECT + " WHERE f.id = ?", (film_id,)).fetchone()
            if row is None:
                return None
            return self._load_details(conn, [_row_to_film(row)])[0]

    def get_films(self, film_ids: list[int]) -> list[Film]:
        ids = sorted(set(film_ids))
        films: list[Film] = []
        with self._db(read_only=True) as conn:
            for chunk in _chunks(ids):
                placeholders = ','.join('?' * len(chunk))
                rows = conn.execute(_FILM_SELECT + f" WHERE f.id IN ({placeholders}) ORDER BY f.id", chunk)
                films.extend(_row_to_film(r) for r in rows)
            return self._load_details(conn, films)

    def get_all_films(self) -> list[Film]:
        with self._db(read_only=True) as conn:
            films = [_row_to_film(r) for r in conn.execute(_FILM_SELECT + " ORDER BY f.id")]
            return self._load_details(conn, films)

    def update_film(self, film: Film) -> Film:
        with self._db() as conn:
            cursor = conn.execute(
                "UPDATE films SET name = ?, description = ?, release_date = ?, duration = ?, mpa_id = ? WHERE id = ?",
                (film.name, film.description, _format_date(film.release_date), film.duration,
                 film.mpa.id if film.mpa else None, film.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Film", film.id)
            self._save_associations(conn, film)
            return self.get_film(film.id)

    def delete_film(self, film_id: int) -> bool:
        with self._db() as conn:
            for table in ("likes", "film_genres", "film_directors"):
                conn.execute(f"DELETE FROM {table} WHERE film_id = ?", (film_id,))
            return conn.execute("DELETE FROM films WHERE id = ?", (film_id,)).rowcount > 0

    def film_exists(self, film_id: int) -> bool:
        with self._db(read_only=True) as conn:
            return conn.execute("SELECT 1 FROM films WHERE id = ?", (film_id,)).fetchone() is not None

    # Users

    def create_user(self, user: User) -> User:
        with self._db() as conn:
            cursor = conn.execute(
                "INSERT INTO users (email, login, name, birthday) VALUES (?, ?, ?, ?)",
                (user.email, user.login, user.name, _format_date(user.birthday)),
            )
            return replace(user, id=cursor.lastrowid)

    def get_user(self, user_id: int) -> User | None:
        with self._db(read_only=True) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return _row_to_user(row) if row else None

    def get_users(self, user_ids: list[int]) -> list[User]:
        ids = sorted(set(user_ids))
        users: list[User] = []
        with self._db(read_only=True) as conn:
            for chunk in _chunks(ids):
                placeholders = ','.join('?' * len(chunk))
                rows = conn.execute(f"SELECT * FROM users WHERE id IN ({placeholders}) ORDER BY id", chunk)
                users.extend(_row_to_user(r) for r in rows)
        return users

    def get_all_users(self) -> list[User]:
        with self._db(read_only=True) as conn:
            return [_row_to_user(r) for r in conn.execute("SELECT * FROM users ORDER BY id")]

    def update_user(self, user: User) -> User:
        with self._db() as conn:
            cursor = conn.execute(
                "UPDATE users SET email = ?, login = ?, name = ?, birthday = ? WHERE id = ?",
                (user.email, user.login, user.name, _format_date(user.birthday), user.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("User", user.id)
            return replace(user)

    def delete_user(self, user_id: int) -> bool:
        with self._db() as conn:
            # Explicit deletes keep the cascade working on databases created without foreign keys
            conn.execute("DELETE FROM friendships WHERE user_id = ? OR friend_id = ?", (user_id, user_id))
            conn.execute("DELETE FROM likes WHERE user_id = ?", (user_id,))
            return conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount > 0

    def user_exists(self, user_id: int) -> bool:
        with self._db(read_only=True) as conn:
            return conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is not None

    # Likes

    def add_like(self, film_id: int, user_id: int) -> bool:
        with self._db() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO likes (film_id, user_id) VALUES (?, ?)", (film_id, user_id)
            )
            return cursor.rowcount > 0

    def remove_like(self, film_id: int, user_id: int) -> bool:
        with self._db() as conn:
            cursor = conn.execute("DELETE FROM likes WHERE film_id = ? AND user_id = ?", (film_id, user_id))
            return cursor.rowcount > 0

    def get_film_likers(self, film_id: int) -> set[int]:
        with self._db(read_only=True) as conn:
            return {r['user_id'] for r in conn.execute("SELECT user_id FROM likes WHERE film_id = ?", (film_id,))}

    def get_user_likes(self, user_id: int) -> set[int]:
        with self._db(read_only=True) as conn:
            return {r['film_id'] for r in conn.execute("SELECT film_id FROM likes WHERE user_id = ?", (user_id,))}

    def get_like_counts(self) -> dict[int, int]:
        with self._db(read_only=True) as conn:
            rows = conn.execute("SELECT film_id, COUNT(*) AS cnt FROM likes GROUP BY film_id")
            return {r['film_id']: r['cnt'] for r in rows}

    def get_neighbor_likes(self, user_id: int) -> dict[int, set[int]]:
        by_user: dict[int, set[int]] = defaultdict(set)
        with self._db(read_only=True) as conn:
            rows = conn.execute("""
                SELECT l.user_id, l.film_id
                FROM likes l
                WHERE l.user_id IN (
                    SELECT DISTINCT other.user_id
                    FROM likes mine
                    JOIN likes other ON other.film_id = mine.film_id
                    WHERE mine.user_id = ? AND other.user_id != ?
                )
            """, (user_id, user_id))
            for row in rows:
                by_user[row['user_id']].add(row['film_id'])
        return dict(by_user)

    # Friendships

    def get_friendship_status(self, user_id: int, friend_id: int) -> FriendshipStatus | None:
        with self._db(read_only=True) as conn:
            row = conn.execute(
                "SELECT status FROM friendships WHERE user_id = ? AND friend_id = ?", (user_id, friend_id)
            ).fetchone()
            return FriendshipStatus(row['status']) if row else None

    def set_friendship(self, user_id: int, friend_id: int, status: FriendshipStatus) -> None:
        with self._db() as conn:
            conn.execute(_UPSERT_FRIENDSHIP, (user_id, friend_id, status.value))

    def confirm_friendship(self, user_id: int, friend_id: int) -> None:
        with self._db() as conn:
            conn.executemany(_UPSERT_FRIENDSHIP, [
                (friend_id, user_id, FriendshipStatus.CONFIRMED.value),
                (user_id, friend_id, FriendshipStatus.CONFIRMED.value),
            ])

    def remove_friendship(self, user_id: int, friend_id: int) -> bool:
        with self._db() as conn:
            cursor = conn.execute(
                "DELETE FROM friendships WHERE user_id = ? AND friend_id = ?", (user_id, friend_id)
            )
            return cursor.rowcount > 0

    def get_outgoing(self, user_id: int, status: FriendshipStatus) -> list[int]:
        with self._db(read_only=True) as conn:
            rows = conn.execute(
                "SELECT friend_id FROM friendships WHERE user_id = ? AND status = ? ORDER BY friend_id",
                (user_id, status.value),
            )
            return [r['friend_id'] for r in rows]

    def get_incoming(self, user_id: int, status: FriendshipStatus) -> list[int]:
        with self._db(read_only=True) as conn:
            rows = conn.execute(
                "SELECT user_id FROM friendships WHERE friend_id = ? AND status = ? ORDER BY user_id",
                (user_id, status.value),
            )
            return [r['user_id'] for r in rows]

    # Reference data

    def get_genre(self, genre_id: int) -> Genre | None:
        with self._db(read_only=True) as conn:
            row = conn.execute("SELECT id, name FROM genres WHERE id = ?", (genre_id,)).fetchone()
            return Genre(row['id'], row['name']) if row else None

    def get_all_genres(self) -> list[Genre]:
        with self._db(read_only=True) as conn:
            return [Genre(r['id'], r['name']) for r in conn.execute("SELECT id, name FROM genres ORDER BY id")]

    def get_mpa(self, mpa_id: int) -> MpaRating | None:
        with self._db(read_only=True) as conn:
            row = conn.execute("SELECT * FROM mpa_ratings WHERE id = ?", (mpa_id,)).fetchone()
            return MpaRating(row['id'], row['name'], row['description'] or "") if row else None

    def get_all_mpa(self) -> list[MpaRating]:
        with self._db(read_only=True) as conn:
            rows = conn.execute("SELECT * FROM mpa_ratings ORDER BY id")
            return [MpaRating(r['id'], r['name'], r['description'] or "") for r in rows]

    def get_director(self, director_id: int) -> Director | None:
        with self._db(read_only=True) as conn:
            row = conn.execute("SELECT id, name FROM directors WHERE id = ?", (director_id,)).fetchone()
            return Director(row['id'], row['name']) if row else None

    def get_all_directors(self) -> list[Director]:
        with self._db(read_only=True) as conn:
            return [Director(r['id'], r['name']) for r in conn.execute("SELECT id, name FROM directors ORDER BY id")]

    def create_director(self, director: Director) -> Director:
        with self._db() as conn:
            cursor = conn.execute("INSERT INTO directors (name) VALUES (?)", (director.name,))
            return Director(cursor.lastrowid, director.name)

    def update_director(self, director: Director) -> Director:
        with self._db() as conn:
            cursor = conn.execute("UPDATE directors SET name = ? WHERE id = ?", (director.name, director.id))
            if cursor.rowcount == 0:
                raise NotFoundError("Director", director.id)
            return director

    def delete_director(self, director_id: int) -> bool:
        with self._db() as conn:
            conn.execute("DELETE FROM film_directors WHERE director_id = ?", (director_id,))
            return conn.execute("DELETE FROM directors WHERE id = ?", (director_id,)).rowcount > 0

    def stats(self) -> dict[str, int]:
        with self._db(read_only=True) as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("films", "users", "directors", "likes", "friendships")
            }
