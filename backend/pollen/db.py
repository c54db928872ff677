"""
SQLite access for the pollen store.

Schema changes only ever happen through the Alembic revisions under
backend/alembic; ``ensure_schema`` applies them programmatically so the
collector, the API and the tests all start from the same tables.

``BaseRepository`` hands out one connection per thread. The collector calls
it from executor threads while the event loop keeps fetching, and the API
calls it from FastAPI's threadpool.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from alembic import command
from alembic.config import Config as AlembicConfig

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).parent.parent
MIGRATIONS_DIR = BACKEND_DIR / "alembic"

# Seconds a writer waits for a competing lock before sqlite3 gives up
BUSY_TIMEOUT = 30.0


def alembic_config(db_path: str) -> AlembicConfig:
    """Alembic config pointing at ``db_path``.

    Built without alembic.ini so its logging section cannot replace the
    caller's handlers.
    """
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return cfg


def ensure_schema(db_path: str) -> None:
    """
    Upgrade ``db_path`` to the latest revision, creating the file if needed.

    Idempotent: revisions already applied are skipped.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    logging.getLogger("alembic").setLevel(logging.WARNING)

    try:
        command.upgrade(alembic_config(db_path), "head")
    except Exception as e:
        logger.error(f"Schema upgrade failed for {db_path}: {e}")
        raise
    logger.debug(f"Pollen schema is current in {db_path}")


class BaseRepository:
    """
    Shared connection handling for SQLite-backed repositories.

    - one connection per thread, opened lazily
    - foreign keys enforced on every connection
    - optional WAL journal so API reads do not block collector writes
    """

    def __init__(self, db_path: Optional[str] = None, use_wal: bool = False):
        """
        Args:
            db_path: SQLite file, Config.database_path() when omitted
            use_wal: Switch the journal to write-ahead logging
        """
        if db_path is None:
            from pollen.config import Config
            db_path = Config.database_path()

        self.db_path = str(db_path)
        self._use_wal = use_wal
        self._local = threading.local()
        self._opened: list[sqlite3.Connection] = []
        self._opened_lock = threading.Lock()

    def _open_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        if self._use_wal:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """This thread's connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._open_connection()
            self._local.connection = conn
            with self._opened_lock:
                self._opened.append(conn)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Cursor whose work is committed on exit and rolled back on error."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        """Close the connections of every thread that used this repository."""
        with self._opened_lock:
            for conn in self._opened:
                conn.close()
            self._opened.clear()
        self._local = threading.local()
