# reviewrecall/storage/migrations.py

"""Database migration utilities for ReviewRecall."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import psycopg
from psycopg import sql

from reviewrecall.config.settings import get_settings


SCHEMA_FILENAME = "schema.sql"


def _get_schema_path() -> Path:
    """
    Resolve path to schema.sql relative to this file.
    """
    return Path(__file__).parent / SCHEMA_FILENAME


def render_schema(table: str, dimensions: int) -> sql.Composed:
    """
    Fill the table name, vector width and index names into schema.sql.
    """
    schema_path = _get_schema_path()

    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    text = schema_path.read_text(encoding="utf-8")

    return sql.SQL(text).format(
        table=sql.Identifier(table),
        dimensions=sql.SQL(str(int(dimensions))),
        project_idx=sql.Identifier(f"{table}_project_idx"),
        comment_idx=sql.Identifier(f"{table}_comment_embedding_idx"),
        code_idx=sql.Identifier(f"{table}_code_embedding_idx"),
        combined_idx=sql.Identifier(f"{table}_combined_embedding_idx"),
    )


def run_migrations(database_url: Optional[str] = None) -> None:
    """
    Execute schema.sql against the configured database.

    This function:
    - Connects to DATABASE_URL
    - Renders schema.sql for the configured table and dimensions
    - Executes it in a single transaction
    - Commits on success

    Raises:
        ValueError: if DATABASE_URL is not configured
        FileNotFoundError: if schema.sql cannot be located
        psycopg.Error: for database-level failures
    """
    settings = get_settings()
    db_url = database_url or settings.database_url

    if not db_url:
        raise ValueError("DATABASE_URL must be set to run migrations.")

    statement = render_schema(settings.comments_table, settings.embedding_dimensions)

    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cur:
            cur.execute(statement)
        conn.commit()


def reset_db(database_url: Optional[str] = None) -> None:
    """
    Drop and recreate the comments table.

    WARNING:
    This will delete all stored review comments for every project.

    Intended for:
    - Local development
    - Test environments
    """
    settings = get_settings()
    db_url = database_url or settings.database_url

    if not db_url:
        raise ValueError("DATABASE_URL must be set to reset database.")

    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("drop table if exists {} cascade").format(
                    sql.Identifier(settings.comments_table)
                )
            )
        conn.commit()

    run_migrations(database_url=db_url)
