"""Line sink: stores finished lines outside the snapshot.

The scheduler writes every line that becomes done. The sqlite store keeps
one row per (session, line index); rewriting a line replaces its row.
"""
import json
import logging
import sqlite3
import threading
import time
from typing import List, Protocol

from fisher.core.lines import Line
from fisher.schema import LineModel

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fish_lines (
    session_id TEXT NOT NULL,
    line_index INTEGER NOT NULL,
    line_json TEXT NOT NULL,
    updated_at REAL NOT NULL,
    PRIMARY KEY (session_id, line_index)
)
"""


class LineSink(Protocol):
    def write_line(self, session_id: str, line: Line) -> None:
        ...

    def read_lines(self, session_id: str) -> List[Line]:
        ...


class SqliteLineStore:
    def __init__(self, path: str = ":memory:"):
        self.path = path
        # written from the scheduler thread, read from request handlers
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)
        log.info("line store at %s", path)

    def write_line(self, session_id: str, line: Line) -> None:
        payload = json.dumps(LineModel.from_line(line).model_dump(by_alias=True, mode="json"))
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO fish_lines (session_id, line_index, line_json, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(session_id, line_index) DO UPDATE SET "
                "line_json = excluded.line_json, updated_at = excluded.updated_at",
                (session_id, line.index, payload, time.time()),
            )

    def read_lines(self, session_id: str) -> List[Line]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT line_json FROM fish_lines WHERE session_id = ? ORDER BY line_index",
                (session_id,),
            ).fetchall()
        return [LineModel.model_validate_json(row[0]).to_line() for row in rows]

    def delete_session(self, session_id: str) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM fish_lines WHERE session_id = ?", (session_id,))
        return cur.rowcount

    def close(self):
        with self._lock:
            self._conn.close()
