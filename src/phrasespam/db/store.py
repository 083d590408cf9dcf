"""Persistent phrase statistics backed by SQLite.

This module provides the StatStore class holding the phrase counters and
the message totals. Every public operation runs through a RetryPolicy, so
a locked database is retried transparently and only surfaces as
StorageUnavailableError once the retries are exhausted.

Usage:
    from phrasespam.db.store import StatStore

    store = StatStore("data/phrasespam.db")
    await store.initialize()

    await store.record_message(["buy", "buy now"], is_spam=True)
    record = await store.get_phrase("buy")
    page = await store.page_query(offset=0, limit=10000)
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import aiosqlite

from phrasespam.core.errors import DatabaseError, MalformedInputError, StoreBusyError
from phrasespam.core.logging import get_logger
from phrasespam.core.progress import ProgressEvent, ProgressHandler, notify
from phrasespam.core.retry import RetryPolicy
from phrasespam.db.models import init_database, is_busy_error, normalize_phrase

logger = get_logger(__name__)

T = TypeVar("T")

# Default wait inside SQLite before it reports SQLITE_BUSY
DEFAULT_BUSY_TIMEOUT_MS = 1000

# Stay well below SQLITE_MAX_VARIABLE_NUMBER for IN (...) lookups
LOOKUP_CHUNK_SIZE = 500


@dataclass(frozen=True, slots=True)
class PhraseRecord:
    """Counters for one phrase."""

    phrase: str
    spam_count: int
    good_count: int

    @property
    def occurrences(self) -> int:
        return self.spam_count + self.good_count


@dataclass(frozen=True, slots=True)
class Totals:
    """Number of learned messages per class."""

    spam_messages: int
    good_messages: int

    @property
    def total_messages(self) -> int:
        return self.spam_messages + self.good_messages


class StatStore:
    """SQLite store for phrase counters and message totals.

    Each operation opens its own connection in autocommit mode; the learn
    transaction uses BEGIN IMMEDIATE so all phrase increments and the totals
    increment become visible together or not at all.

    Attributes:
        db_path: Path to the SQLite database file
        retry: RetryPolicy applied to every operation
        busy_timeout_ms: SQLite busy timeout per connection
    """

    def __init__(
        self,
        db_path: str | Path,
        retry: RetryPolicy | None = None,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            retry: Retry policy for contended operations (default policy if None)
            busy_timeout_ms: Milliseconds SQLite waits on a lock before failing
        """
        self.db_path = Path(db_path)
        self.retry = retry or RetryPolicy()
        self.busy_timeout_ms = busy_timeout_ms

    async def initialize(self, progress: ProgressHandler | None = None) -> None:
        """Create the schema and migrate a legacy database if present.

        This must be called before any other operations. Lock contention
        is retried like every other store operation.
        """
        await self._run(
            "initialize",
            lambda: init_database(self.db_path, busy_timeout_ms=self.busy_timeout_ms),
            progress,
        )

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a configured connection, translating SQLite errors.

        Lock contention becomes StoreBusyError so the retry policy can act on
        it; any other SQLite failure becomes DatabaseError.
        """
        try:
            async with aiosqlite.connect(self.db_path, isolation_level=None) as db:
                await db.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
                yield db
        except aiosqlite.Error as e:
            if is_busy_error(e):
                raise StoreBusyError(f"Database {self.db_path} is locked: {e}") from e
            logger.error("Database operation failed", db_path=str(self.db_path), error=str(e))
            raise DatabaseError(f"Database operation on {self.db_path} failed: {e}") from e

    async def _run(
        self,
        description: str,
        operation: Callable[[], Awaitable[T]],
        progress: ProgressHandler | None,
    ) -> T:
        return await self.retry.run(operation, description=description, progress=progress)

    # =========================================================================
    # Point lookups
    # =========================================================================

    async def get_phrase(
        self, phrase: str, progress: ProgressHandler | None = None
    ) -> PhraseRecord | None:
        """Look up the counters of a single phrase.

        Args:
            phrase: Phrase to look up (normalized before the query)
            progress: Optional progress handler for retry notifications

        Returns:
            PhraseRecord if the phrase has been learned, None otherwise
        """
        key = normalize_phrase(phrase)

        async def lookup() -> PhraseRecord | None:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT phrase, spam, good FROM phrases WHERE phrase = ?", (key,)
                )
                row = await cursor.fetchone()
                return PhraseRecord(row[0], row[1], row[2]) if row else None

        return await self._run("get_phrase", lookup, progress)

    async def get_phrases(
        self, phrases: Iterable[str], progress: ProgressHandler | None = None
    ) -> dict[str, PhraseRecord]:
        """Look up many phrases over a single connection.

        Args:
            phrases: Phrases to look up (normalized before the query)
            progress: Optional progress handler for retry notifications

        Returns:
            Mapping of normalized phrase to record, for learned phrases only
        """
        keys = list(dict.fromkeys(normalize_phrase(p) for p in phrases))
        if not keys:
            return {}

        async def lookup() -> dict[str, PhraseRecord]:
            found: dict[str, PhraseRecord] = {}
            async with self._db() as db:
                for start in range(0, len(keys), LOOKUP_CHUNK_SIZE):
                    chunk = keys[start : start + LOOKUP_CHUNK_SIZE]
                    placeholders = ", ".join("?" for _ in chunk)
                    cursor = await db.execute(
                        f"SELECT phrase, spam, good FROM phrases WHERE phrase IN ({placeholders})",
                        chunk,
                    )
                    for row in await cursor.fetchall():
                        found[row[0]] = PhraseRecord(row[0], row[1], row[2])
            return found

        return await self._run("get_phrases", lookup, progress)

    async def get_totals(self, progress: ProgressHandler | None = None) -> Totals:
        """Read the message totals.

        Raises:
            MalformedInputError: If the totals record is missing
        """

        async def read() -> Totals:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT spam_messages, good_messages FROM totals WHERE id = 1"
                )
                row = await cursor.fetchone()
            if row is None:
                raise MalformedInputError(
                    f"Totals record missing from {self.db_path}. "
                    "The database was not initialized; run 'phrasespam init-db'."
                )
            return Totals(spam_messages=row[0], good_messages=row[1])

        return await self._run("get_totals", read, progress)

    async def count_phrases(self, progress: ProgressHandler | None = None) -> int:
        """Return the number of learned phrases."""

        async def count() -> int:
            async with self._db() as db:
                cursor = await db.execute("SELECT COUNT(*) FROM phrases")
                row = await cursor.fetchone()
                return int(row[0])

        return await self._run("count_phrases", count, progress)

    # =========================================================================
    # Learning
    # =========================================================================

    async def increment_phrase(
        self, phrase: str, is_spam: bool, progress: ProgressHandler | None = None
    ) -> None:
        """Add one occurrence of a phrase on its own, outside a learn transaction."""
        await self._run(
            "increment_phrase",
            lambda: self._increment(phrases=[normalize_phrase(phrase)], is_spam=is_spam),
            progress,
        )

    async def increment_totals(
        self, is_spam: bool, progress: ProgressHandler | None = None
    ) -> None:
        """Count one more learned message on its own, outside a learn transaction."""
        await self._run(
            "increment_totals",
            lambda: self._increment(phrases=[], is_spam=is_spam, count_message=True),
            progress,
        )

    async def record_message(
        self,
        phrases: Iterable[str],
        is_spam: bool,
        progress: ProgressHandler | None = None,
    ) -> int:
        """Record one learned message atomically.

        Increments each unique phrase once on the relevant side, creating
        missing phrases, then increments the message totals, all in one
        transaction.

        Args:
            phrases: Phrases extracted from the message
            is_spam: True to count as spam, False to count as good
            progress: Optional handler for retry and per-phrase notifications

        Returns:
            Number of phrase counters incremented
        """
        keys = list(dict.fromkeys(normalize_phrase(p) for p in phrases))
        await self._run(
            "record_message",
            lambda: self._increment(keys, is_spam, count_message=True, progress=progress),
            progress,
        )
        logger.debug("Message recorded", phrases=len(keys), is_spam=is_spam)
        return len(keys)

    async def _increment(
        self,
        phrases: list[str],
        is_spam: bool,
        count_message: bool = False,
        progress: ProgressHandler | None = None,
    ) -> None:
        """Run one write transaction incrementing phrases and optionally totals."""
        column = "spam" if is_spam else "good"
        async with self._db() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                for phrase in phrases:
                    await db.execute(
                        f"""
                        INSERT INTO phrases (phrase, {column}) VALUES (?, 1)
                        ON CONFLICT(phrase) DO UPDATE SET {column} = {column} + 1
                        """,
                        (phrase,),
                    )

                if count_message:
                    cursor = await db.execute(
                        f"UPDATE totals SET {column}_messages = {column}_messages + 1 "
                        "WHERE id = 1"
                    )
                    if cursor.rowcount != 1:
                        raise MalformedInputError(
                            f"Totals record missing from {self.db_path}. "
                            "The database was not initialized; run 'phrasespam init-db'."
                        )

                await db.execute("COMMIT")
            except BaseException:
                if db.in_transaction:
                    await db.execute("ROLLBACK")
                raise

        # Only after COMMIT; a retried attempt emits nothing
        for index, phrase in enumerate(phrases, start=1):
            notify(progress, ProgressEvent("phrase", index, len(phrases), phrase))

    # =========================================================================
    # Paging
    # =========================================================================

    async def page_query(
        self, offset: int, limit: int, progress: ProgressHandler | None = None
    ) -> list[PhraseRecord]:
        """Read one page of phrases ordered by phrase.

        Args:
            offset: Number of phrases to skip
            limit: Maximum number of phrases to return
            progress: Optional progress handler for retry notifications

        Returns:
            Up to `limit` records in phrase order
        """

        async def read() -> list[PhraseRecord]:
            async with self._db() as db:
                cursor = await db.execute(
                    "SELECT phrase, spam, good FROM phrases ORDER BY phrase LIMIT ? OFFSET ?",
                    (limit, offset),
                )
                rows = await cursor.fetchall()
            return [PhraseRecord(row[0], row[1], row[2]) for row in rows]

        return await self._run("page_query", read, progress)
