"""Entry store: SQLite connection management, migrations and the entry table."""

from todust.lib.store.entries import (
    EntrySource,
    EntryStore,
    escape_like,
    format_timestamp,
    from_row,
    parse_timestamp,
)
from todust.lib.store.migrations import ensure_schema, load_migrations, migrate
from todust.lib.store.sqlite import connect

__all__ = [
    "EntrySource",
    "EntryStore",
    "connect",
    "ensure_schema",
    "escape_like",
    "format_timestamp",
    "from_row",
    "load_migrations",
    "migrate",
    "parse_timestamp",
]
