"""Table definitions for the capture service."""

import structlog

from soonlist.database.connections import DatabaseManager


logger = structlog.get_logger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        display_name TEXT,
        user_image TEXT,
        email TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lists (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        visibility TEXT NOT NULL DEFAULT 'public',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        user_name TEXT NOT NULL,
        event JSONB NOT NULL,
        event_metadata JSONB,
        start_date_time TIMESTAMPTZ NOT NULL,
        end_date_time TIMESTAMPTZ NOT NULL,
        visibility TEXT NOT NULL DEFAULT 'private' CHECK (visibility IN ('public', 'private')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ
    )
    """,
    "CREATE INDEX IF NOT EXISTS events_user_id_created_at_idx ON events (user_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS comments (
        id SERIAL PRIMARY KEY,
        event_id TEXT NOT NULL REFERENCES events(id),
        user_id TEXT NOT NULL REFERENCES users(id),
        content TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ,
        UNIQUE (event_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS event_to_lists (
        event_id TEXT NOT NULL REFERENCES events(id),
        list_id TEXT NOT NULL REFERENCES lists(id),
        PRIMARY KEY (event_id, list_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS event_follows (
        user_id TEXT NOT NULL REFERENCES users(id),
        event_id TEXT NOT NULL REFERENCES events(id),
        PRIMARY KEY (user_id, event_id)
    )
    """,
]


async def apply_schema(db_manager: DatabaseManager) -> None:
    """Create any missing tables. Safe to run repeatedly."""
    async with db_manager.get_postgres_transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)
    logger.info("Database schema applied", statements=len(SCHEMA_STATEMENTS))
