"""SQLite database schema and initialization for phrasespam.

This module defines the database schema:
- phrases: One row per learned phrase with spam/good occurrence counters
- totals: Singleton row counting learned spam and good messages
- schema_version: Schema version for future migrations

It also converts databases written by the older single-table layout, where
the totals lived in the phrase table under the key ' '.

Usage:
    from phrasespam.db.models import init_database

    # Initialize database (creates tables if not exist, migrates old layout)
    await init_database("data/phrasespam.db")
"""

import sqlite3
from pathlib import Path

import aiosqlite

from phrasespam.core.errors import DatabaseError, StoreBusyError
from phrasespam.core.logging import get_logger

logger = get_logger(__name__)

# Schema version for migrations (increment when schema changes)
SCHEMA_VERSION = 2

# Longest phrase stored, in UTF-8 bytes
MAX_PHRASE_BYTES = 256

# Table name and totals key used by the single-table layout
LEGACY_TABLE = "SPAMSTATS"
LEGACY_TOTAL_KEY = " "

REQUIRED_TABLES = ("phrases", "totals", "schema_version")

# Primary result codes; sqlite_errorcode carries extended codes such as
# SQLITE_BUSY_SNAPSHOT (517) whose low byte is the primary code
_BUSY_ERROR_CODES = {sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED}

SCHEMA_SQL = """
-- Learned phrases (lower-cased, at most 256 bytes)
CREATE TABLE IF NOT EXISTS phrases (
    phrase TEXT NOT NULL PRIMARY KEY,
    spam INTEGER NOT NULL DEFAULT 0,        -- spam messages containing the phrase
    good INTEGER NOT NULL DEFAULT 0         -- good messages containing the phrase
);

-- Message counters (exactly one row, id = 1)
CREATE TABLE IF NOT EXISTS totals (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    spam_messages INTEGER NOT NULL DEFAULT 0,
    good_messages INTEGER NOT NULL DEFAULT 0
);

INSERT OR IGNORE INTO totals (id, spam_messages, good_messages) VALUES (1, 0, 0);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""


def normalize_phrase(phrase: str) -> str:
    """Lower-case a phrase and clip it to MAX_PHRASE_BYTES of UTF-8.

    Clipping never splits a multi-byte character.

    Args:
        phrase: Raw phrase text

    Returns:
        Phrase in the form used as the storage key
    """
    phrase = phrase.lower()
    encoded = phrase.encode("utf-8")
    if len(encoded) <= MAX_PHRASE_BYTES:
        return phrase
    return encoded[:MAX_PHRASE_BYTES].decode("utf-8", errors="ignore")


def is_busy_error(error: aiosqlite.Error) -> bool:
    """Return True when SQLite reported lock contention."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    code = getattr(error, "sqlite_errorcode", None)
    if code is not None:
        return code & 0xFF in _BUSY_ERROR_CODES
    message = str(error).lower()
    return "locked" in message or "busy" in message


async def _table_exists(db: aiosqlite.Connection, name: str) -> bool:
    cursor = await db.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ? COLLATE NOCASE",
        (name,),
    )
    return await cursor.fetchone() is not None


async def migrate_legacy_table(db: aiosqlite.Connection) -> int:
    """Move data from the single-table layout into phrases/totals.

    Runs inside the caller's open transaction. Phrase rows are normalized
    and merged by summing counters when two legacy keys collapse into one.
    The legacy totals row replaces the current totals, and the legacy table
    is dropped.

    Args:
        db: Connection with an open transaction

    Returns:
        Number of legacy phrase rows migrated (0 if no legacy table exists)
    """
    if not await _table_exists(db, LEGACY_TABLE):
        return 0

    cursor = await db.execute(f"SELECT phrase, spam, good FROM {LEGACY_TABLE}")
    rows = await cursor.fetchall()

    migrated = 0
    for phrase, spam, good in rows:
        spam = int(spam or 0)
        good = int(good or 0)
        if phrase == LEGACY_TOTAL_KEY:
            await db.execute(
                "UPDATE totals SET spam_messages = ?, good_messages = ? WHERE id = 1",
                (spam, good),
            )
            continue

        await db.execute(
            """
            INSERT INTO phrases (phrase, spam, good) VALUES (?, ?, ?)
            ON CONFLICT(phrase) DO UPDATE SET
                spam = spam + excluded.spam,
                good = good + excluded.good
            """,
            (normalize_phrase(phrase), spam, good),
        )
        migrated += 1

    await db.execute(f"DROP TABLE {LEGACY_TABLE}")
    logger.info("Migrated legacy phrase table", rows=migrated, legacy_table=LEGACY_TABLE)
    return migrated


async def _schema_is_current(db: aiosqlite.Connection) -> bool:
    """Return True when every table exists at SCHEMA_VERSION and no legacy table remains."""
    cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0].lower() for row in await cursor.fetchall()}
    if LEGACY_TABLE.lower() in tables or not set(REQUIRED_TABLES) <= tables:
        return False
    cursor = await db.execute("SELECT MAX(version) FROM schema_version")
    row = await cursor.fetchone()
    return row is not None and row[0] == SCHEMA_VERSION


async def init_database(db_path: str | Path, busy_timeout_ms: int = 5000) -> None:
    """Initialize the SQLite database with schema and WAL mode.

    Creates the database file if it doesn't exist, enables WAL mode for
    concurrent readers, creates all tables, seeds the totals row, and
    migrates a legacy single-table database in the same transaction.
    A database already at the current schema is only read, so no write
    lock is taken.

    Args:
        db_path: Path to the SQLite database file
        busy_timeout_ms: Milliseconds SQLite waits on a lock before failing

    Raises:
        StoreBusyError: If another connection holds the database lock
        DatabaseError: If database initialization fails
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    migrated = 0

    try:
        async with aiosqlite.connect(
            db_path, isolation_level=None, timeout=busy_timeout_ms / 1000
        ) as db:
            if await _schema_is_current(db):
                logger.debug("Database schema current", db_path=str(db_path))
                return

            await db.execute("PRAGMA journal_mode=WAL")
            journal_mode = await db.execute("PRAGMA journal_mode")
            mode = await journal_mode.fetchone()
            if mode and mode[0].lower() != "wal":
                logger.warning(
                    "WAL mode not enabled",
                    requested="wal",
                    actual=mode[0],
                    db_path=str(db_path),
                )

            await db.execute("BEGIN IMMEDIATE")
            try:
                for statement in SCHEMA_SQL.split(";"):
                    if statement.strip():
                        await db.execute(statement)
                migrated = await migrate_legacy_table(db)
                await db.execute(
                    "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
                await db.execute("COMMIT")
            except BaseException:
                if db.in_transaction:
                    await db.execute("ROLLBACK")
                raise

    except aiosqlite.Error as e:
        if is_busy_error(e):
            raise StoreBusyError(f"Database {db_path} is locked: {e}") from e
        logger.error(
            "Database initialization failed",
            db_path=str(db_path),
            error=str(e),
        )
        raise DatabaseError(
            f"Failed to initialize database at {db_path}: {e}. "
            "Check that the directory is writable and the database file is not corrupted."
        ) from e

    logger.info(
        "Database initialized",
        db_path=str(db_path),
        schema_version=SCHEMA_VERSION,
        legacy_rows_migrated=migrated,
    )


async def verify_schema(db_path: str | Path) -> bool:
    """Verify that the database has the expected schema.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        True if all tables exist, False otherwise
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table'")
            existing_tables = {row[0] for row in await cursor.fetchall()}

            missing = set(REQUIRED_TABLES) - existing_tables
            if missing:
                logger.warning(
                    "Missing database tables",
                    missing=sorted(missing),
                    db_path=str(db_path),
                )
                return False

            return True

    except aiosqlite.Error as e:
        logger.error(
            "Schema verification failed",
            db_path=str(db_path),
            error=str(e),
        )
        return False
