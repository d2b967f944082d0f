import sqlite3

import pytest


def test_init_db_creates_expected_tables(fresh_db):
    db = fresh_db
    db.init_db()

    with db.get_db(read_only=True) as conn:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }

    expected = {
        "films",
        "users",
        "genres",
        "mpa_ratings",
        "directors",
        "film_genres",
        "film_directors",
        "likes",
        "friendships",
    }
    assert expected.issubset(tables)


def test_init_db_is_idempotent_and_seeds_reference_rows(fresh_db):
    db = fresh_db
    db.init_db()
    db.init_db()

    with db.get_db(read_only=True) as conn:
        genres = conn.execute("SELECT COUNT(*) FROM genres").fetchone()[0]
        mpa = [row["name"] for row in conn.execute("SELECT name FROM mpa_ratings ORDER BY id")]

    assert genres == 6
    assert mpa == ["G", "PG", "PG-13", "R", "NC-17"]


def test_nested_transactions_commit_once(fresh_db):
    db = fresh_db
    db.init_db()

    with db.get_db() as conn:
        conn.execute(
            "INSERT INTO users (email, login, name) VALUES (?, ?, ?)",
            ("alice@mail.com", "alice", "Alice"),
        )
        with db.get_db() as inner:
            inner.execute(
                "INSERT INTO users (email, login, name) VALUES (?, ?, ?)",
                ("bob@mail.com", "bob", "Bob"),
            )

    with db.get_db(read_only=True) as conn:
        count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
        assert count == 2


def test_outer_failure_rolls_back_inner_writes(fresh_db):
    db = fresh_db
    db.init_db()

    with pytest.raises(RuntimeError):
        with db.get_db() as conn:
            with db.get_db() as inner:
                inner.execute(
                    "INSERT INTO users (email, login, name) VALUES (?, ?, ?)",
                    ("alice@mail.com", "alice", "Alice"),
                )
            raise RuntimeError("boom")

    with db.get_db(read_only=True) as conn:
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0


def test_friendship_status_is_constrained(fresh_db):
    db = fresh_db
    db.init_db()

    with db.get_db() as conn:
        conn.execute("INSERT INTO users (id, email, login) VALUES (1, 'a@mail.com', 'a')")
        conn.execute("INSERT INTO users (id, email, login) VALUES (2, 'b@mail.com', 'b')")

    with pytest.raises(sqlite3.IntegrityError):
        with db.get_db() as conn:
            conn.execute("INSERT INTO friendships (user_id, friend_id, status) VALUES (1, 2, 'MAYBE')")


def test_close_pool_resets_global_pool(fresh_db):
    db = fresh_db
    db.init_db()
    assert db._pool is not None

    db.close_pool()
    assert db._pool is None


def test_run_maintenance_noop_when_disabled(fresh_db):
    db = fresh_db
    db.init_db()
    db.run_maintenance(vacuum=False, analyze=False)
    db.run_maintenance(vacuum=False, analyze=True)


def test_pool_reuses_connection_per_thread(fresh_db):
    db = fresh_db
    db.init_db()

    with db.get_db() as outer:
        with db.get_db(read_only=True) as inner:
            assert inner is outer
            assert db._pool.acquire().depth == 2

    assert db._pool.acquire().depth == 0


def test_pool_reopens_closed_connection_after_health_check(fresh_db, tmp_path):
    pool = fresh_db.ConnectionPool(tmp_path / "pool.db", health_check_interval=1)
    slot = pool.acquire()
    slot.conn.close()
    slot.checked_at -= 10

    replacement = pool.acquire()
    assert replacement is not slot
    assert replacement.conn.execute("SELECT 1").fetchone()[0] == 1
    pool.close_all()


def test_pool_exhaustion_raises(fresh_db, tmp_path):
    import threading

    pool = fresh_db.ConnectionPool(tmp_path / "pool.db", max_size=1)
    pool.acquire()

    errors = []
    release = threading.Event()

    def other_thread():
        try:
            pool.acquire()
        except RuntimeError as e:
            errors.append(e)
        release.set()

    worker = threading.Thread(target=other_thread)
    worker.start()
    release.wait(5)
    worker.join()

    assert errors and "exhausted" in str(errors[0])
    pool.close_all()
