import argparse
import atexit
import json
import logging
from datetime import datetime

from tqdm import tqdm

from . import config
from .database import close_pool, get_db, init_db, run_maintenance
from .services import build_services

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)

# Export order matters on import: referenced rows first
EXPORT_TABLES = [
    "directors",
    "films",
    "users",
    "film_genres",
    "film_directors",
    "likes",
    "friendships",
]

# Conflict targets for rows updated in place on import; rows are never deleted,
# so ON DELETE CASCADE never fires. Other link tables keep existing rows.
IMPORT_CONFLICT_KEYS = {
    "directors": ("id",),
    "films": ("id",),
    "users": ("id",),
    "friendships": ("user_id", "friend_id"),
}


def _import_sql(table: str, columns: list[str]) -> str:
    placeholders = ", ".join("?" * len(columns))
    insert = f"INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"

    keys = IMPORT_CONFLICT_KEYS.get(table)
    updates = [c for c in columns if keys and c not in keys]
    if not updates:
        return f"INSERT OR IGNORE {insert}"
    assignments = ", ".join(f"{c} = excluded.{c}" for c in updates)
    return f"INSERT {insert} ON CONFLICT({', '.join(keys)}) DO UPDATE SET {assignments}"


def _parse_search_by(values: list[str] | None) -> str:
    """Join `--by title director` / `--by title,director` into the API's comma form."""
    if not values:
        return config.SEARCH_FIELD_TITLE
    return ",".join(part for value in values for part in value.split(",") if part)


def _format_film(film, score: int | None = None) -> str:
    year = film.release_date.year if film.release_date else "????"
    line = f"  [{film.id}] {film.name} ({year}) - {film.like_count} likes"
    if film.directors:
        line += f" - dir. {', '.join(d.name for d in film.directors)}"
    if score is not None:
        line += f" - liked by {score} taste neighbors"
    return line


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the schema and seed reference data."""
    init_db()
    logger.info(f"Database ready at {config.DB_PATH}")


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    from .app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=config.LOG_LEVEL.lower())


def cmd_stats(args: argparse.Namespace) -> None:
    """Show storage statistics."""
    services = build_services()
    stats = services.storage.stats()

    logger.info("\nDatabase Statistics:")
    for name, count in stats.items():
        logger.info(f"  {name.capitalize()}: {count}")

    popular = services.likes.popular_films(5)
    if stats.get("likes"):
        logger.info("\nMost liked films:")
        for film in popular:
            logger.info(_format_film(film))


def cmd_popular(args: argparse.Namespace) -> None:
    services = build_services()
    films = services.likes.popular_films(args.count)
    logger.info(f"\nTop {len(films)} films:")
    for film in films:
        logger.info(_format_film(film))


def cmd_recommend(args: argparse.Namespace) -> None:
    services = build_services()
    recs = services.recommendations.recommend_with_scores(args.user_id, args.limit)
    if not recs:
        logger.info(f"No recommendations for user {args.user_id} (no likes or no taste neighbors yet)")
        return

    logger.info(f"\nRecommendations for user {args.user_id}:")
    for rec in recs:
        logger.info(_format_film(rec.film, rec.score if args.explain else None))


def cmd_search(args: argparse.Namespace) -> None:
    services = build_services()
    by = _parse_search_by(args.by)
    films = services.search.search_films(args.query, by)
    logger.info(f"\n{len(films)} films matching '{args.query}' (by {by}):")
    for film in films:
        logger.info(_format_film(film))


def cmd_export(args: argparse.Namespace) -> None:
    """Export database to JSON file."""
    def _stream_rows(conn, query: str):
        cursor = conn.execute(query)
        while True:
            chunk = cursor.fetchmany(config.EXPORT_CHUNK_SIZE)
            if not chunk:
                break
            for row in chunk:
                yield dict(row)

    init_db()
    counts = {}
    with get_db(read_only=True) as conn, open(args.file, 'w') as f:
        f.write('{')
        for i, table in enumerate(EXPORT_TABLES):
            if i:
                f.write(',')
            f.write(f'"{table}":[')
            first = True
            counts[table] = 0
            for row in _stream_rows(conn, f"SELECT * FROM {table}"):
                if not first:
                    f.write(',')
                json.dump(row, f, ensure_ascii=False)
                first = False
                counts[table] += 1
            f.write(']')
        f.write(', "exported_at": "%s"}' % datetime.now().isoformat())

    summary = ", ".join(f"{n} {table}" for table, n in counts.items())
    logger.info(f"Exported {summary} to {args.file}")


def cmd_import(args: argparse.Namespace) -> None:
    """Import database from a JSON file produced by `export`."""
    with open(args.file, 'r') as f:
        data = json.load(f)

    init_db()

    def _batched(items, size=config.IMPORT_CHUNK_SIZE):
        for i in range(0, len(items), size):
            yield items[i:i + size]

    with get_db() as conn:
        for table in EXPORT_TABLES:
            rows = data.get(table) or []
            if not rows:
                continue
            columns = list(rows[0].keys())
            sql = _import_sql(table, columns)

            with tqdm(total=len(rows), desc=f"Importing {table}", unit="rows") as pbar:
                for chunk in _batched(rows):
                    conn.executemany(sql, [tuple(row.get(c) for c in columns) for row in chunk])
                    pbar.update(len(chunk))
            logger.info(f"Imported {len(rows)} {table}")

    if args.maintenance:
        run_maintenance(vacuum=True, analyze=True)


def main():
    parser = argparse.ArgumentParser(description="Filmorate film catalog backend")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema and reference data")
    init_parser.set_defaults(func=cmd_init_db)

    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", default=config.API_HOST, help=f"Bind address (default: {config.API_HOST})")
    serve_parser.add_argument("--port", type=int, default=config.API_PORT, help=f"Port (default: {config.API_PORT})")
    serve_parser.set_defaults(func=cmd_serve)

    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    popular_parser = subparsers.add_parser("popular", help="List the most liked films")
    popular_parser.add_argument("--count", type=int, default=config.DEFAULT_POPULAR_COUNT,
                                help=f"Number of films (default: {config.DEFAULT_POPULAR_COUNT})")
    popular_parser.set_defaults(func=cmd_popular)

    rec_parser = subparsers.add_parser("recommend", help="Recommend films liked by users with similar taste")
    rec_parser.add_argument("user_id", type=int, help="Target user id")
    rec_parser.add_argument("--limit", type=int, default=config.DEFAULT_RECOMMENDATION_LIMIT,
                            help="Number of recommendations")
    rec_parser.add_argument("--explain", action="store_true", help="Show the co-like score of each film")
    rec_parser.set_defaults(func=cmd_recommend)

    search_parser = subparsers.add_parser("search", help="Search films by title and/or director")
    search_parser.add_argument("query", help="Substring to look for (case-insensitive)")
    search_parser.add_argument("--by", nargs="+",
                               help="Fields to search: title, director (default: title)")
    search_parser.set_defaults(func=cmd_search)

    export_parser = subparsers.add_parser("export", help="Export database to JSON")
    export_parser.add_argument("file", help="Output JSON file path")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Import database from JSON")
    import_parser.add_argument("file", help="Input JSON file path")
    import_parser.add_argument("--maintenance", action="store_true", default=False,
                               help="Run VACUUM/ANALYZE after import")
    import_parser.set_defaults(func=cmd_import)

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else config.LOG_LEVEL
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)


if __name__ == "__main__":
    main()
