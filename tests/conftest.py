import importlib
import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary database path to keep tests isolated.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("FILMORATE_DB", str(db_path))
    import filmorate.config as config

    importlib.reload(config)
    return config


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("FILMORATE_DB", str(db_path))

    import filmorate.config as config
    import filmorate.database as database

    importlib.reload(config)
    importlib.reload(database)

    yield database
    database.close_pool()


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Every storage backend, so service tests run against both."""
    if request.param == "memory":
        from filmorate.memory_storage import InMemoryStorage

        return InMemoryStorage()

    database = request.getfixturevalue("fresh_db")
    database.init_db()
    from filmorate.sqlite_storage import SqliteStorage

    return SqliteStorage()


@pytest.fixture
def services(storage):
    from filmorate.services import Services

    return Services.from_storage(storage)


@pytest.fixture
def make_film(services):
    """Create a valid film through the service, overriding any field."""
    from filmorate.models import Film

    def _make(name="Film", **overrides):
        fields = {
            "name": name,
            "description": "A film",
            "release_date": date(2000, 1, 1),
            "duration": 100,
        }
        fields.update(overrides)
        return services.films.create_film(Film(**fields))

    return _make


@pytest.fixture
def make_user(services):
    """Create a valid user through the service; login doubles as email local part."""
    from filmorate.models import User

    def _make(login="user", **overrides):
        fields = {
            "email": f"{login}@mail.com",
            "login": login,
            "name": login.capitalize(),
            "birthday": date(1990, 5, 17),
        }
        fields.update(overrides)
        return services.users.create_user(User(**fields))

    return _make
