from __future__ import annotations

import json
import os
import sqlite3
from contextlib import closing
from typing import Any

from .runtime import utc_now
from .settings import settings


def _resolve_db_path(path: str | None = None) -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (Docker creates one when a bind-mounted
    file does not exist yet), the DB file is placed inside it.
    """
    p = os.path.abspath(path or settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "dsvc.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(path: str | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: str | None = None) -> None:
    """Create tables if they do not exist."""
    with closing(connect(path)) as conn, conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              message TEXT NOT NULL,
              data TEXT -- JSON of the remaining observation fields
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_events_service ON events(service_name);
            """
        )


def _insert_event(
    conn: sqlite3.Connection, level: str, message: str, service_name: str | None, data: dict[str, Any] | None
) -> None:
    payload = json.dumps(data, sort_keys=True, default=str) if data else None
    conn.execute(
        "INSERT INTO events (ts, level, service_name, message, data) VALUES (?, ?, ?, ?, ?)",
        (utc_now(), level.upper(), service_name, message, payload),
    )


def log_event(
    level: str,
    message: str,
    service_name: str | None = None,
    data: dict[str, Any] | None = None,
    path: str | None = None,
    conn: sqlite3.Connection | None = None,
) -> None:
    if conn is not None:
        with conn:
            _insert_event(conn, level, message, service_name, data)
        return
    with closing(connect(path)) as own, own:
        _insert_event(own, level, message, service_name, data)


def latest_events(limit: int = 100, service_name: str | None = None, path: str | None = None) -> list[dict[str, Any]]:
    with closing(connect(path)) as conn:
        if service_name:
            rows = conn.execute(
                "SELECT * FROM events WHERE service_name=? ORDER BY id DESC LIMIT ?", (service_name, limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
    out: list[dict[str, Any]] = []
    for r in rows:
        row = dict(r)
        row["data"] = json.loads(row["data"]) if row["data"] else {}
        out.append(row)
    return out


class EventRecorder:
    """Listener that stores controller/monitor observations in the events table.

    Keeps one connection open for its lifetime; call ``close()`` when done.
    """

    def __init__(self, path: str | None = None):
        self.path = path
        self._conn: sqlite3.Connection | None = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            init_db(self.path)
            self._conn = connect(self.path)
        return self._conn

    def __call__(self, category: str, data: dict[str, Any]) -> None:
        fields = dict(data)
        message = str(fields.pop("message", category))
        service = fields.pop("taskName", None)
        log_event(category, message, service_name=service, data=fields, conn=self._connection())

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
