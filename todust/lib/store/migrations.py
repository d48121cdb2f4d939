"""Database schema migrations and initialization."""

import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path

from todust.errors import MigrationError
from todust.lib import paths
from todust.lib.store.sqlite import connect

logger = logging.getLogger(__name__)

Migration = tuple[str, str | Callable[[sqlite3.Connection], None]]


def load_migrations(migrations_dir: Path | None = None) -> list[tuple[str, str]]:
    """Load numbered .sql files (001_*.sql, 002_*.sql, ...) in lexical order.

    Returns:
        List of (migration_name, sql_content) tuples
    """
    migrations_dir = migrations_dir or paths.migrations_dir()
    if not migrations_dir.exists():
        return []

    return [(sql_file.stem, sql_file.read_text()) for sql_file in sorted(migrations_dir.glob("*.sql"))]


def ensure_schema(db_path: Path, migs: list[Migration] | None = None) -> None:
    """Ensure database exists and apply pending migrations."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        if migs:
            migrate(conn, migs)
    finally:
        conn.close()


def _is_applied(conn: sqlite3.Connection, name: str) -> bool:
    return conn.execute("SELECT 1 FROM _migrations WHERE name = ?", (name,)).fetchone() is not None


def applied_migrations(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute("SELECT name FROM _migrations ORDER BY name").fetchall()
    return [row[0] for row in rows]


def migrate(conn: sqlite3.Connection, migs: list[Migration]) -> None:
    """Apply migrations to connection with data loss safeguards."""
    conn.execute("CREATE TABLE IF NOT EXISTS _migrations (name TEXT PRIMARY KEY)")

    for name, migration in migs:
        try:
            # Another process may apply the same migration between our check
            # and our write, so the check runs under the write lock.
            conn.execute("BEGIN IMMEDIATE")
            if _is_applied(conn, name):
                conn.execute("COMMIT")
                continue

            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name != '_migrations' AND name != 'sqlite_sequence'"
            )
            before = {row[0]: _get_table_count(conn, row[0]) for row in cursor.fetchall()}

            if callable(migration):
                migration(conn)
            else:
                for statement in _split_statements(migration):
                    conn.execute(statement)

            for table, count_before in before.items():
                _check_migration_safety(conn, table, count_before)

            conn.execute("INSERT OR IGNORE INTO _migrations (name) VALUES (?)", (name,))
            conn.execute("COMMIT")
        except (sqlite3.Error, ValueError) as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error(f"Migration '{name}' failed: {e}")
            raise MigrationError(f"Migration '{name}' failed: {e}") from e

        logger.info(f"Applied migration '{name}'")


def _split_statements(script: str) -> list[str]:
    """Split a migration script on statement boundaries.

    executescript() would commit the surrounding transaction, so each
    statement runs separately inside it.
    """
    statements = []
    pending = ""
    for line in script.splitlines(keepends=True):
        if line.strip().startswith("--"):
            continue
        pending += line
        if sqlite3.complete_statement(pending):
            statements.append(pending.strip())
            pending = ""
    if pending.strip():
        statements.append(pending.strip())
    return statements


def _get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for table, returns 0 if table doesn't exist."""
    try:
        cursor = conn.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=?",
            (table,),
        )
        if not cursor.fetchone()[0]:
            return 0
        result = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return result[0] if result else 0
    except sqlite3.OperationalError:
        return 0


def _check_migration_safety(
    conn: sqlite3.Connection, table: str, before: int, allow_loss: int = 0
) -> None:
    """Verify row count after migration, raise if data loss exceeds threshold.

    Raises:
        ValueError: If data loss detected exceeds allow_loss
    """
    after = _get_table_count(conn, table)
    lost = before - after

    if lost > allow_loss:
        msg = f"Migration {table}: {lost} rows lost (before: {before}, after: {after})"
        logger.error(msg)
        raise ValueError(msg)

    if lost > 0:
        logger.warning(
            f"Migration {table}: {lost} rows removed (expected for allow_loss={allow_loss})"
        )
