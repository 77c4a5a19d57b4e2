"""newtab CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from server.app import run_server
from server.config import DEFAULT_CONFIG_PATH, NewtabConfig, load_config, write_default_config
from server.database import DatabaseError, check_database_health, open_database, reset_database
from server.favicons import FaviconResolver
from server.logging_config import setup_logging
from server.migrations import get_status, run_migrations, stamp_if_needed
from server.repository import LinkRepository
from server import services


__version__ = "1.0.0"

app = typer.Typer(add_completion=False, help="newtab bookmark page CLI")
logger = logging.getLogger("newtab")

STARTUP_BANNER = r"""
 _ __   _____      _| |_ __ _| |__
| '_ \ / _ \ \ /\ / / __/ _` | '_ \
| | | |  __/\ V  V /| || (_| | |_) |
|_| |_|\___| \_/\_/  \__\__,_|_.__/
"""


def _ensure_config() -> NewtabConfig:
    try:
        return load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: newtab init")
        raise typer.Exit(code=1)


def _setup_logging(config: NewtabConfig) -> None:
    setup_logging(config.log_file, config.logging.level, config.logging.access_log)


def _open_database(config: NewtabConfig) -> Engine:
    """Open the database and verify it, exiting the process on failure."""
    try:
        engine = open_database(config.database_path, config.database.seed)
    except DatabaseError as exc:
        logger.error(f"[Error] {exc}")
        raise typer.Exit(code=1)

    if not check_database_health(engine):
        logger.error("[Error] Database is not initialized or corrupted.")
        raise typer.Exit(code=1)
    return engine


@app.command()
def init(
    host: str = typer.Option("0.0.0.0", "--host", help="Server host"),
    port: int = typer.Option(8080, "--port", help="Server port"),
    seed: Optional[Path] = typer.Option(None, "--seed", help="SQLite file to seed a new database from"),
) -> None:
    """Initialize config.ini with default settings."""
    config_path = write_default_config(DEFAULT_CONFIG_PATH, host=host, port=port, seed=seed)
    typer.echo(f"[OK] Config created at {config_path}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
) -> None:
    """Start the new tab page server."""
    config = _ensure_config()
    _setup_logging(config)

    typer.echo(typer.style(STARTUP_BANNER, fg=typer.colors.CYAN, bold=True))
    engine = _open_database(config)

    # Migrations: stamp unversioned DBs, then upgrade to head.
    db_path = config.database_path
    stamp_if_needed(db_path)
    current, head = get_status(db_path)
    if current != head:
        logger.info(f"Migrating database {current} -> {head} ...")
        run_migrations(db_path, backup=True)
        logger.info("Migration complete.")
    else:
        logger.info(f"Database at {head} (up to date).")

    with Session(engine) as session:
        logger.info(f"Serving {LinkRepository(session).count()} links")

    try:
        run_server(config, engine, host=host, port=port)
    except KeyboardInterrupt:
        pass
    finally:
        engine.dispose()


@app.command()
def add(
    name: str = typer.Argument(..., help="Display name (max 20 characters)"),
    url: str = typer.Argument(..., help="Target URL"),
    favicon: str = typer.Option("", "--favicon", help="Icon URL; detected when omitted"),
) -> None:
    """Add a link at the end of the list."""
    config = _ensure_config()
    _setup_logging(config)
    engine = _open_database(config)
    resolver = FaviconResolver.from_config(config.favicons)

    try:
        with Session(engine) as session:
            link = services.add_link(LinkRepository(session), resolver, name, url, favicon)
            typer.echo(f"[OK] Added #{link.id} {link.name} -> {link.img or 'no icon'}")
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)
    except SQLAlchemyError as exc:
        typer.echo(f"[ERROR] Failed to insert link: {exc}")
        raise typer.Exit(code=1)


@app.command("list")
def list_links() -> None:
    """Print links in display order."""
    config = _ensure_config()
    engine = _open_database(config)

    with Session(engine) as session:
        links = LinkRepository(session).list_ordered()
        if not links:
            typer.echo("No links.")
            return
        for link in links:
            icon = "-" if link.img is None else (link.img or "(cleared)")
            typer.echo(f"{link.position:>4}  #{link.id:<4} {link.name or '':<20}  {link.href}  [{icon}]")


@app.command()
def icons(
    all_links: bool = typer.Option(False, "--all", help="Re-detect icons for every link"),
) -> None:
    """Detect missing (or all) link icons and store them."""
    config = _ensure_config()
    _setup_logging(config)
    engine = _open_database(config)
    resolver = FaviconResolver.from_config(config.favicons)

    with Session(engine) as session:
        updated = services.refresh_icons(LinkRepository(session), resolver, all_links=all_links)
    typer.echo(f"[INFO] Updated {updated} icons")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    config = _ensure_config()
    _open_database(config)

    db_path = config.database_path
    current, head = get_status(db_path)

    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind: current {current}, head {head}")
        raise typer.Exit(code=1)

    if current == head:
        logger.info(f"Database already at {head} (head). Nothing to do.")
        raise typer.Exit(code=0)

    logger.info(f"Migrating database {current} -> {head} ...")
    run_migrations(db_path, backup=True)
    logger.info("Migration complete.")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Delete all links by recreating an empty database."""
    if not confirm:
        typer.echo("[ERROR] This will delete your database. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    try:
        engine = reset_database(config.database_path)
    except DatabaseError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)
    engine.dispose()
    typer.echo("[INFO] Database reset.")


if __name__ == "__main__":
    app()
