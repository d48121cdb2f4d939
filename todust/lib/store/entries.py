"""Entry store: the durable v1_entries table and its transactions."""

import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import fields
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from todust.errors import (
    AmbiguousIdError,
    ConstraintViolationError,
    NotFoundError,
    StoreUnavailableError,
)
from todust.lib.store import migrations
from todust.lib.store.sqlite import connect
from todust.models import Entry, ProjectCount

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, uuid, project_name AS project, text, started, last_change, finished, due"
)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 so text ordering matches time ordering."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(raw: str) -> datetime:
    value = datetime.fromisoformat(raw.strip().replace(" UTC", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_row(row: dict[str, Any] | Any) -> Entry:
    """Convert dict-like row to an Entry.

    Matches row keys to Entry field names and decodes the text columns.
    Legacy rows may carry NULL text or last_change.
    """
    field_names = {f.name for f in fields(Entry)}
    row_dict = dict(row) if not isinstance(row, dict) else row
    data = {key: row_dict[key] for key in field_names if key in row_dict}

    data["text"] = data.get("text") or ""
    data["started"] = parse_timestamp(data["started"])
    data["finished"] = parse_timestamp(data["finished"]) if data.get("finished") else None
    if data.get("last_change"):
        data["last_change"] = parse_timestamp(data["last_change"])
    else:
        data["last_change"] = data["finished"] or data["started"]
    data["due"] = date.fromisoformat(data["due"]) if data.get("due") else None
    return Entry(**data)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise ConstraintViolationError(f"can not {action}: {e}") from e
    except sqlite3.Error as e:
        raise StoreUnavailableError(f"can not {action}: {e}") from e


class EntryStore:
    """SQLite-backed entry table. No business rules live here.

    Each thread gets its own cached connection to the same database file.
    Read-modify-write operations run inside BEGIN IMMEDIATE so writers are
    serialized and readers only ever see committed rows.
    """

    def __init__(self, db_path: Path, migrations_dir: Path | None = None):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

        with _translate_errors("open database"):
            migrations.ensure_schema(self.db_path, migrations.load_migrations(migrations_dir))
        logger.debug(f"opened entry store at {self.db_path}")

    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn

        with _translate_errors("connect to database"):
            conn = connect(self.db_path)
        self._local.conn = conn
        with self._lock:
            self._connections.append(conn)
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside BEGIN IMMEDIATE ... COMMIT.

        Any exception rolls the transaction back and propagates.
        """
        conn = self.connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        try:
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def insert(self, uuid: str, project: str, text: str, started: datetime) -> int:
        start = time.perf_counter()
        stamp = format_timestamp(started)
        with _translate_errors("insert entry"), self.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO v1_entries (project_name, started, finished, uuid, text, last_change) VALUES (?, ?, NULL, ?, ?, ?)",
                (project, stamp, uuid, text, stamp),
            )
            entry_id = cursor.lastrowid
        logger.debug(f"inserted entry {uuid} after {time.perf_counter() - start:.4f}s")
        return entry_id

    def insert_entries(self, entries: Iterable[Entry]) -> int:
        """Copy entries verbatim in one transaction, skipping known uuids.

        uuid, project, text and every timestamp are kept. Returns how many
        entries were inserted.
        """
        start = time.perf_counter()
        inserted = 0
        with _translate_errors("import entries"), self.transaction() as conn:
            for entry in entries:
                exists = conn.execute(
                    "SELECT 1 FROM v1_entries WHERE uuid = ?", (entry.uuid,)
                ).fetchone()
                if exists:
                    continue
                conn.execute(
                    "INSERT INTO v1_entries (project_name, started, finished, uuid, text, last_change, due) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.project,
                        format_timestamp(entry.started),
                        format_timestamp(entry.finished) if entry.finished else None,
                        entry.uuid,
                        entry.text,
                        format_timestamp(entry.last_change),
                        entry.due.isoformat() if entry.due else None,
                    ),
                )
                inserted += 1
        logger.debug(f"imported {inserted} entries after {time.perf_counter() - start:.4f}s")
        return inserted

    def get(self, uuid: str) -> Entry:
        with _translate_errors("get entry"):
            row = self.connection().execute(
                f"SELECT {_COLUMNS} FROM v1_entries WHERE uuid = ?", (uuid,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No entry with uuid '{uuid}'")
        return from_row(row)

    def query(self, project_pattern: str = "%", active_only: bool = False) -> list[Entry]:
        """Entries whose project matches a LIKE pattern, oldest first."""
        start = time.perf_counter()
        query = f"SELECT {_COLUMNS} FROM v1_entries WHERE project_name LIKE ? ESCAPE '\\'"
        if active_only:
            query += " AND finished IS NULL"
        query += " ORDER BY started, id"

        with _translate_errors("query entries"):
            rows = self.connection().execute(query, (project_pattern,)).fetchall()

        logger.debug(
            f"queried {len(rows)} entries for '{project_pattern}' after {time.perf_counter() - start:.4f}s"
        )
        return [from_row(row) for row in rows]

    def update(self, uuid: str, mutator: Callable[[Entry], Entry]) -> Entry:
        """Apply mutator to the stored entry in one transaction.

        The mutator receives the current entry and returns the desired one.
        Returning the entry unchanged performs no write.
        """
        start = time.perf_counter()
        with _translate_errors("update entry"), self.transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM v1_entries WHERE uuid = ?", (uuid,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"No entry with uuid '{uuid}'")

            current = from_row(row)
            updated = mutator(current)
            if updated == current:
                return current
            if updated.uuid != current.uuid or updated.started != current.started:
                raise ConstraintViolationError(f"uuid and started of entry '{uuid}' are immutable")

            conn.execute(
                "UPDATE v1_entries SET project_name = ?, text = ?, finished = ?, last_change = ?, due = ? WHERE uuid = ?",
                (
                    updated.project,
                    updated.text,
                    format_timestamp(updated.finished) if updated.finished else None,
                    format_timestamp(updated.last_change),
                    updated.due.isoformat() if updated.due else None,
                    uuid,
                ),
            )

        logger.debug(f"updated entry {uuid} after {time.perf_counter() - start:.4f}s")
        return updated

    def rename_project(self, old: str, new: str, changed_at: datetime) -> int:
        """Move every entry of project old to new. Returns moved count."""
        with _translate_errors("rename project"), self.transaction() as conn:
            rows = conn.execute(
                "SELECT id, last_change, started, finished FROM v1_entries WHERE project_name = ?",
                (old,),
            ).fetchall()
            for row in rows:
                previous = parse_timestamp(row["last_change"] or row["finished"] or row["started"])
                conn.execute(
                    "UPDATE v1_entries SET project_name = ?, last_change = ? WHERE id = ?",
                    (new, format_timestamp(max(previous, changed_at)), row["id"]),
                )
        logger.info(f"renamed project '{old}' to '{new}' ({len(rows)} entries)")
        return len(rows)

    def count_by_project(self) -> list[ProjectCount]:
        with _translate_errors("count entries"):
            rows = self.connection().execute(
                """
                SELECT
                    project_name AS project,
                    SUM(finished IS NULL) AS active_count,
                    SUM(finished IS NOT NULL) AS done_count,
                    COUNT(*) AS total_count
                FROM v1_entries
                GROUP BY project_name
                ORDER BY project_name
                """
            ).fetchall()
        return [ProjectCount(**dict(row)) for row in rows]

    def resolve(self, partial: str) -> str:
        """Resolve a full uuid or a unique uuid suffix to the full uuid."""
        partial = (partial or "").strip()
        if not partial:
            raise NotFoundError("Entry id must be a non-empty string")

        with _translate_errors("resolve entry id"):
            conn = self.connection()
            exact = conn.execute("SELECT uuid FROM v1_entries WHERE uuid = ?", (partial,)).fetchone()
            if exact:
                return exact[0]
            rows = conn.execute(
                "SELECT uuid FROM v1_entries WHERE uuid LIKE ? ESCAPE '\\'",
                (f"%{escape_like(partial)}",),
            ).fetchall()

        if not rows:
            raise NotFoundError(f"No entry found with ID ending in '{partial}'")
        if len(rows) > 1:
            ambiguous_ids = [row[0] for row in rows]
            raise AmbiguousIdError(f"Ambiguous ID: '{partial}' matches multiple entries: {ambiguous_ids}")
        return rows[0][0]


class EntrySource:
    """Read-only view of another todust data file, for import.

    Accepts the bare v1 schema as well as a migrated one. Columns the file
    does not have yet read as NULL and get the same fallbacks as legacy rows.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        if not self.db_path.is_file():
            raise NotFoundError(f"No data file at '{self.db_path}'")

        with _translate_errors(f"open {self.db_path}"):
            self.conn = sqlite3.connect(f"{self.db_path.resolve().as_uri()}?mode=ro", uri=True)
        self.conn.row_factory = sqlite3.Row
        try:
            with _translate_errors(f"read {self.db_path}"):
                columns = {row["name"] for row in self.conn.execute("PRAGMA table_info(v1_entries)")}
            if not columns:
                raise StoreUnavailableError(f"'{self.db_path}' has no entries table")
        except StoreUnavailableError:
            self.conn.close()
            raise

        optional = ("last_change", "due")
        self._select = ", ".join(
            [
                "id, uuid, COALESCE(NULLIF(TRIM(project_name), ''), 'default') AS project",
                "text, started, finished",
            ]
            + [name if name in columns else f"NULL AS {name}" for name in optional]
        )

    def query(self, project_pattern: str = "%", active_only: bool = False) -> list[Entry]:
        query = (
            f"SELECT {self._select} FROM v1_entries "
            "WHERE COALESCE(NULLIF(TRIM(project_name), ''), 'default') LIKE ? ESCAPE '\\'"
        )
        if active_only:
            query += " AND finished IS NULL"
        query += " ORDER BY started, id"

        with _translate_errors(f"read {self.db_path}"):
            rows = self.conn.execute(query, (project_pattern,)).fetchall()
        return [from_row(row) for row in rows]

    def close(self) -> None:
        self.conn.close()
