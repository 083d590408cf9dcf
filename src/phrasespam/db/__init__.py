"""Database layer for phrasespam.

This module provides SQLite access with async operations.

Usage:
    from phrasespam.db import StatStore

    store = StatStore("data/phrasespam.db")
    await store.initialize()

    await store.record_message(["cheap", "cheap pills"], is_spam=True)
    totals = await store.get_totals()
"""

from phrasespam.db.models import (
    MAX_PHRASE_BYTES,
    SCHEMA_VERSION,
    init_database,
    is_busy_error,
    migrate_legacy_table,
    normalize_phrase,
    verify_schema,
)
from phrasespam.db.store import PhraseRecord, StatStore, Totals

__all__ = [
    # Models
    "SCHEMA_VERSION",
    "MAX_PHRASE_BYTES",
    "init_database",
    "is_busy_error",
    "migrate_legacy_table",
    "normalize_phrase",
    "verify_schema",
    # Store
    "StatStore",
    # Dataclasses
    "PhraseRecord",
    "Totals",
]
