import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

DEFAULT_DB_PATH = str(Path(__file__).resolve().parents[2] / "data" / "vermafarm.sqlite3")


def configured_db_path() -> str:
    return os.getenv("VERMAFARM_DB_PATH", DEFAULT_DB_PATH)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteStore:
    """Shared connection handling for the sqlite-backed stores.

    Every store owns its tables inside the same database file and guards its
    own writes with a process-local lock. Subclasses create their schema in
    ``_init_db``.
    """

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self._lock = Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        with self._connect() as conn:
            return conn.execute("SELECT 1").fetchone()[0] == 1
