import json
import logging
import sys
from datetime import date
from types import SimpleNamespace

from filmorate import cli
from filmorate.models import Director, Film, User


def test_cli_dispatch_stats(monkeypatch):
    called = {}

    def fake_stats(args):
        called["command"] = args.command

    monkeypatch.setattr(cli, "cmd_stats", fake_stats)
    monkeypatch.setattr(sys, "argv", ["prog", "stats"])

    cli.main()
    assert called["command"] == "stats"


def test_cli_parses_recommend_args(monkeypatch):
    captured = {}

    def fake_recommend(args):
        captured["user_id"] = args.user_id
        captured["limit"] = args.limit
        captured["explain"] = args.explain

    monkeypatch.setattr(cli, "cmd_recommend", fake_recommend)
    monkeypatch.setattr(sys, "argv", ["prog", "recommend", "7", "--limit", "3", "--explain"])

    cli.main()
    assert captured == {"user_id": 7, "limit": 3, "explain": True}


def test_cli_parses_search_args(monkeypatch):
    captured = {}

    def fake_search(args):
        captured["query"] = args.query
        captured["by"] = cli._parse_search_by(args.by)

    monkeypatch.setattr(cli, "cmd_search", fake_search)
    monkeypatch.setattr(sys, "argv", ["prog", "search", "нолан", "--by", "title", "director"])

    cli.main()
    assert captured == {"query": "нолан", "by": "title,director"}


def test_parse_search_by_defaults_to_title():
    assert cli._parse_search_by(None) == "title"
    assert cli._parse_search_by(["title,director"]) == "title,director"


def test_cli_serve_uses_config_defaults(monkeypatch):
    captured = {}

    def fake_serve(args):
        captured["host"] = args.host
        captured["port"] = args.port

    monkeypatch.setattr(cli, "cmd_serve", fake_serve)
    monkeypatch.setattr(sys, "argv", ["prog", "serve", "--port", "9000"])

    cli.main()
    assert captured == {"host": cli.config.API_HOST, "port": 9000}


def test_format_film_includes_directors_and_score():
    film = Film(id=3, name="Начало", release_date=date(2010, 7, 8),
                directors=[Director(1, "Кристофер Нолан")], likes={1, 2})
    line = cli._format_film(film, score=4)

    assert "[3] Начало (2010)" in line
    assert "2 likes" in line
    assert "Кристофер Нолан" in line
    assert "4 taste neighbors" in line


def _seed(services):
    film = services.films.create_film(Film(name="Solaris", release_date=date(1972, 3, 20), duration=167))
    alice = services.users.create_user(User(email="alice@mail.com", login="alice"))
    bob = services.users.create_user(User(email="bob@mail.com", login="bob"))
    services.likes.add_like(film.id, alice.id)
    services.friendships.send_friend_request(alice.id, bob.id)
    return film


def test_export_import_roundtrip(fresh_db, tmp_path, monkeypatch):
    from filmorate.services import build_services

    services = build_services("sqlite")
    _seed(services)

    out = tmp_path / "export.json"
    cli.cmd_export(SimpleNamespace(file=str(out)))

    data = json.loads(out.read_text())
    assert len(data["films"]) == 1
    assert len(data["users"]) == 2
    assert data["likes"] == [{"film_id": 1, "user_id": 1}]
    assert data["friendships"][0]["status"] == "PENDING"
    assert "exported_at" in data

    # Import into a fresh database
    fresh_path = tmp_path / "imported.db"
    fresh_db.close_pool()
    monkeypatch.setattr(fresh_db, "DB_PATH", fresh_path)

    cli.cmd_import(SimpleNamespace(file=str(out), maintenance=False))

    with fresh_db.get_db(read_only=True) as conn:
        assert conn.execute("SELECT name FROM films").fetchone()[0] == "Solaris"
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 2
        assert conn.execute("SELECT COUNT(*) FROM likes").fetchone()[0] == 1


def test_import_into_populated_database_keeps_existing_relations(fresh_db, tmp_path):
    from filmorate.services import build_services

    services = build_services("sqlite")
    film = _seed(services)

    out = tmp_path / "export.json"
    cli.cmd_export(SimpleNamespace(file=str(out)))

    # Changes made after the export: a new like and a renamed film
    bob = services.users.get_all_users()[1]
    services.likes.add_like(film.id, bob.id)
    film.name = "Солярис"
    services.films.update_film(film)

    cli.cmd_import(SimpleNamespace(file=str(out), maintenance=False))

    assert services.likes.like_count(film.id) == 2
    assert services.films.get_film(film.id).name == "Solaris"
    assert [u.login for u in services.friendships.list_pending_requests(bob.id)] == ["alice"]


def test_import_sql_upserts_parents_and_ignores_duplicate_links():
    films_sql = cli._import_sql("films", ["id", "name", "duration"])
    assert "OR REPLACE" not in films_sql
    assert films_sql.endswith("ON CONFLICT(id) DO UPDATE SET name = excluded.name, duration = excluded.duration")

    assert cli._import_sql("likes", ["film_id", "user_id"]).startswith("INSERT OR IGNORE INTO likes")
    assert "ON CONFLICT(user_id, friend_id) DO UPDATE SET status = excluded.status" in \
        cli._import_sql("friendships", ["user_id", "friend_id", "status"])


def test_popular_and_stats_log_output(fresh_db, monkeypatch, caplog):
    from filmorate.services import build_services

    monkeypatch.setattr(cli, "build_services", lambda: build_services("sqlite"))
    _seed(build_services("sqlite"))

    with caplog.at_level(logging.INFO, logger="filmorate.cli"):
        cli.cmd_popular(SimpleNamespace(count=5))
        cli.cmd_stats(SimpleNamespace())

    assert "Solaris" in caplog.text
    assert "Films: 1" in caplog.text


def test_recommend_without_likes_logs_message(fresh_db, monkeypatch, caplog):
    from filmorate.services import build_services

    monkeypatch.setattr(cli, "build_services", lambda: build_services("sqlite"))
    services = build_services("sqlite")
    user = services.users.create_user(User(email="solo@mail.com", login="solo"))

    with caplog.at_level(logging.INFO, logger="filmorate.cli"):
        cli.cmd_recommend(SimpleNamespace(user_id=user.id, limit=5, explain=True))

    assert "No recommendations" in caplog.text
