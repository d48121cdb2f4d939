import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)

OPEN_ATTEMPTS = 5


def _configure(conn: sqlite3.Connection) -> None:
    conn.row_factory = sqlite3.Row
    conn.isolation_level = None
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA journal_mode = WAL")


def connect(db_path: Path) -> sqlite3.Connection:
    """Open a connection to the todust entry database.

    Rows come back as sqlite3.Row so EntryStore can map them by column
    name. The connection stays in autocommit; EntryStore.transaction and
    migrate open BEGIN IMMEDIATE themselves. The first processes to open a
    fresh file race on switching it to WAL, and that switch reports
    "database is locked" without honouring busy_timeout, so it is retried
    with a short backoff.
    """
    start = time.perf_counter()

    for attempt in range(1, OPEN_ATTEMPTS + 1):
        conn = sqlite3.connect(db_path, check_same_thread=False)
        try:
            _configure(conn)
            break
        except sqlite3.OperationalError as err:
            conn.close()
            if "locked" not in str(err).lower() or attempt == OPEN_ATTEMPTS:
                raise
            logger.debug(f"{db_path} locked while opening, attempt {attempt}/{OPEN_ATTEMPTS}")
            time.sleep(0.05 * attempt)

    elapsed = time.perf_counter() - start
    if elapsed > 0.1:
        logger.warning(f"opening {db_path} took {elapsed:.3f}s (another todust process holds the lock)")

    return conn
