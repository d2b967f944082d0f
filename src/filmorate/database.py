import sqlite3
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from .config import DB_PATH, GENRES, MPA_RATINGS, POOL_HEALTH_CHECK_INTERVAL, POOL_MAX_SIZE

logger = logging.getLogger(__name__)

# Seconds between sweeps for connections owned by finished threads
DEAD_THREAD_SWEEP_INTERVAL = 60


@dataclass
class _ThreadSlot:
    """The connection owned by one thread and its `get_db()` nesting depth."""

    conn: sqlite3.Connection
    checked_at: float
    depth: int = 0


class ConnectionPool:
    """
    One SQLite connection per thread, created on first use.

    A slot's connection is re-checked with `SELECT 1` once it has been idle
    for `health_check_interval` seconds, and slots of threads that have
    exited are swept periodically. At most `max_size` slots exist at once.
    """

    def __init__(self, db_path, max_size: int = 50, health_check_interval: int = 300):
        self._db_path = db_path
        self._max_size = max_size
        self._health_check_interval = health_check_interval

        self._lock = threading.Lock()
        self._slots: dict[int, _ThreadSlot] = {}
        self._last_sweep = time.time()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row

        conn.execute("PRAGMA foreign_keys = ON")  # Cascades on film/user deletion
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    @staticmethod
    def _is_alive(conn: sqlite3.Connection) -> bool:
        try:
            conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def _sweep_dead_threads(self, force: bool = False) -> None:
        """Close slots whose owning thread has exited. Caller holds the lock."""
        now = time.time()
        if not force and now - self._last_sweep < DEAD_THREAD_SWEEP_INTERVAL:
            return
        self._last_sweep = now

        alive = {t.ident for t in threading.enumerate()}
        for thread_id in [tid for tid in self._slots if tid not in alive]:
            slot = self._slots.pop(thread_id)
            try:
                slot.conn.close()
            except sqlite3.Error as e:
                logger.warning(f"Error closing connection of finished thread {thread_id}: {e}")
            logger.debug(f"Released connection of finished thread {thread_id}")

    def acquire(self) -> _ThreadSlot:
        """Return the calling thread's slot, opening or replacing its connection if needed."""
        thread_id = threading.get_ident()
        now = time.time()

        with self._lock:
            self._sweep_dead_threads()
            slot = self._slots.get(thread_id)

            # Never swap a connection out from under an open transaction
            if slot is not None and slot.depth == 0 and now - slot.checked_at > self._health_check_interval:
                if self._is_alive(slot.conn):
                    slot.checked_at = now
                else:
                    logger.warning(f"Connection for thread {thread_id} failed health check, reopening")
                    del self._slots[thread_id]
                    slot = None

            if slot is None:
                if len(self._slots) >= self._max_size:
                    self._sweep_dead_threads(force=True)
                if len(self._slots) >= self._max_size:
                    raise RuntimeError(
                        f"Connection pool exhausted ({self._max_size} connections); "
                        f"are connections being held by too many threads?"
                    )
                slot = _ThreadSlot(self._connect(), checked_at=now)
                self._slots[thread_id] = slot
                logger.debug(f"Opened connection for thread {thread_id} ({len(self._slots)} open)")

            return slot

    def close_all(self) -> None:
        """Close every connection (application shutdown)."""
        with self._lock:
            for thread_id, slot in self._slots.items():
                try:
                    slot.conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Error closing connection for thread {thread_id}: {e}")
            self._slots.clear()
        logger.info("Connection pool closed")


# Global pool instance
_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def init_db() -> None:
    """Create the schema (idempotent) and seed genre and MPA reference rows."""
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS mpa_ratings (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT
            );

            CREATE TABLE IF NOT EXISTS genres (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS directors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS films (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                release_date TEXT NOT NULL,     -- ISO date
                duration INTEGER,
                mpa_id INTEGER REFERENCES mpa_ratings(id)
            );

            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL,
                login TEXT NOT NULL,
                name TEXT,
                birthday TEXT                   -- ISO date
            );

            CREATE TABLE IF NOT EXISTS film_genres (
                film_id INTEGER NOT NULL REFERENCES films(id) ON DELETE CASCADE,
                genre_id INTEGER NOT NULL REFERENCES genres(id),
                PRIMARY KEY (film_id, genre_id)
            );

            CREATE TABLE IF NOT EXISTS film_directors (
                film_id INTEGER NOT NULL REFERENCES films(id) ON DELETE CASCADE,
                director_id INTEGER NOT NULL REFERENCES directors(id) ON DELETE CASCADE,
                PRIMARY KEY (film_id, director_id)
            );

            CREATE TABLE IF NOT EXISTS likes (
                film_id INTEGER NOT NULL REFERENCES films(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                PRIMARY KEY (film_id, user_id)
            );

            -- Directed edges: user_id -> friend_id
            CREATE TABLE IF NOT EXISTS friendships (
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                friend_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                status TEXT NOT NULL CHECK (status IN ('PENDING', 'CONFIRMED')),
                PRIMARY KEY (user_id, friend_id)
            );

            CREATE INDEX IF NOT EXISTS idx_likes_user ON likes(user_id);
            CREATE INDEX IF NOT EXISTS idx_friendships_friend ON friendships(friend_id, status);
            CREATE INDEX IF NOT EXISTS idx_fd_director ON film_directors(director_id);
        """)

        conn.executemany("INSERT OR IGNORE INTO genres (id, name) VALUES (?, ?)", GENRES)
        conn.executemany(
            "INSERT OR IGNORE INTO mpa_ratings (id, name, description) VALUES (?, ?, ?)",
            MPA_RATINGS,
        )

    logger.debug(f"Database initialised at {DB_PATH}")


def _get_pool() -> ConnectionPool:
    """Get or create the global connection pool."""
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                DB_PATH.parent.mkdir(exist_ok=True, parents=True)
                _pool = ConnectionPool(
                    DB_PATH,
                    max_size=POOL_MAX_SIZE,
                    health_check_interval=POOL_HEALTH_CHECK_INTERVAL,
                )
    return _pool


@contextmanager
def get_db(read_only: bool = False):
    """
    Yield the calling thread's connection inside a transaction scope.

    Args:
        read_only: Skip the commit on exit

    Nested calls share the outer scope: only the outermost context commits
    on success or rolls back on error.
    """
    slot = _get_pool().acquire()
    is_outermost = slot.depth == 0
    slot.depth += 1

    try:
        yield slot.conn

        if is_outermost and not read_only:
            slot.conn.commit()

    except Exception:
        if is_outermost:
            slot.conn.rollback()
        raise

    finally:
        slot.depth -= 1


def close_pool():
    """Close the connection pool. Call on application shutdown."""
    global _pool
    if _pool is not None:
        _pool.close_all()
        _pool = None


def run_maintenance(vacuum: bool = True, analyze: bool = True) -> None:
    """
    Run optional VACUUM/ANALYZE after bulk imports.
    Uses a dedicated connection to avoid interfering with pooled transactions.
    """
    if not vacuum and not analyze:
        return

    conn = sqlite3.connect(DB_PATH)
    try:
        if vacuum:
            conn.execute("VACUUM")
        if analyze:
            conn.execute("ANALYZE")
        conn.commit()
    finally:
        conn.close()
    logger.info("Database maintenance completed")
