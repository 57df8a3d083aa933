# echoverse/db.py
from __future__ import annotations

import json
import sqlite3
import logging
import threading
import datetime as dt
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .errors import PersistenceError

log = logging.getLogger("echoverse.db")

MEMORY = ":memory:"


def iso_now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="microseconds")


def dictrow(row: sqlite3.Row) -> Dict[str, Any]:
    return {k: row[k] for k in row.keys()}


SCHEMA = """
CREATE TABLE IF NOT EXISTS realities (
    id TEXT PRIMARY KEY,
    user_session TEXT,
    title TEXT NOT NULL,
    description TEXT,
    original_event TEXT NOT NULL,
    outcomes TEXT,                 -- JSON array of outcomes
    probability_score REAL,
    impact_score INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL       -- set at creation, never mutated
);
CREATE INDEX IF NOT EXISTS idx_realities_session
    ON realities(user_session, created_at);

CREATE TABLE IF NOT EXISTS reality_trees (
    id TEXT PRIMARY KEY,
    user_session TEXT,
    tree_data TEXT,                -- opaque client JSON
    share_token TEXT UNIQUE,
    is_public INTEGER NOT NULL DEFAULT 0 CHECK (is_public IN (0, 1)),
    view_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    CHECK ((is_public = 1) = (share_token IS NOT NULL))
);
CREATE INDEX IF NOT EXISTS idx_trees_session ON reality_trees(user_session);

CREATE TABLE IF NOT EXISTS analytics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_session TEXT,
    event_type TEXT,               -- 'create_reality', 'save_tree', ...
    event_data TEXT,               -- JSON metadata
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_analytics_session ON analytics(user_session);
"""


class Store:
    """
    SQLite access for the three independent tables. Every call is a single
    statement (or a read-after-write on one row) in its own transaction.

    File databases get a short-lived connection per call; ":memory:" keeps one
    shared connection. Either way calls are serialized by an in-process lock.
    """

    def __init__(self, db_path: str = MEMORY, timeout_s: float = 10.0):
        self.db_path = db_path
        self.timeout_s = timeout_s
        self._lock = threading.Lock()
        self._shared: Optional[sqlite3.Connection] = None
        if db_path == MEMORY:
            self._shared = self._open()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout_s, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _conn(self, what: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = None
            try:
                conn = self._shared or self._open()
                with conn:   # commit / rollback
                    yield conn
            except sqlite3.Error as e:
                log.error("%s failed: %s", what, e)
                raise PersistenceError(f"{what} failed") from e
            finally:
                if conn is not None and conn is not self._shared:
                    conn.close()

    def bootstrap_schema(self) -> None:
        with self._conn("bootstrap schema") as con:
            con.executescript(SCHEMA)
        log.info("schema ready at %s", self.db_path)

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None

    # ---------------- realities ----------------

    def insert_reality(
        self,
        *,
        reality_id: str,
        user_session: str,
        title: str,
        description: str,
        original_event: str,
        outcomes: List[Dict[str, Any]],
        probability_score: float,
        impact_score: int,
    ) -> str:
        now = iso_now()
        with self._conn("insert reality") as con:
            con.execute(
                """
                INSERT INTO realities
                    (id, user_session, title, description, original_event, outcomes,
                     probability_score, impact_score, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (reality_id, user_session, title, description, original_event,
                 json.dumps(outcomes), probability_score, impact_score, now, now),
            )
        return now

    def list_realities(self, user_session: str, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """Newest first. `outcomes` is returned as stored (JSON text or NULL)."""
        with self._conn("list realities") as con:
            rows = con.execute(
                """
                SELECT * FROM realities
                WHERE user_session = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (user_session, limit, offset),
            ).fetchall()
        return [dictrow(r) for r in rows]

    # ---------------- trees ----------------

    def insert_tree(
        self,
        *,
        tree_id: str,
        user_session: str,
        tree_data: Any,
        share_token: Optional[str],
    ) -> str:
        now = iso_now()
        with self._conn("insert tree") as con:
            con.execute(
                """
                INSERT INTO reality_trees
                    (id, user_session, tree_data, share_token, is_public, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (tree_id, user_session, json.dumps(tree_data), share_token,
                 1 if share_token else 0, now),
            )
        return now

    def view_public_tree(self, share_token: str) -> Optional[Dict[str, Any]]:
        """
        Bump view_count on the public tree holding `share_token` and return the
        row after the increment, or None when no public tree matches.
        """
        with self._conn("view shared tree") as con:
            cur = con.execute(
                """
                UPDATE reality_trees SET view_count = view_count + 1
                WHERE share_token = ? AND is_public = 1
                """,
                (share_token,),
            )
            if cur.rowcount == 0:
                return None
            row = con.execute(
                "SELECT * FROM reality_trees WHERE share_token = ?", (share_token,)
            ).fetchone()
        return dictrow(row) if row else None

    # ---------------- analytics ----------------

    def insert_event(self, user_session: Optional[str], event_type: str, event_data: Any) -> int:
        payload = json.dumps(event_data)
        with self._conn("insert analytics event") as con:
            cur = con.execute(
                "INSERT INTO analytics (user_session, event_type, event_data, timestamp) VALUES (?, ?, ?, ?)",
                (user_session, event_type, payload, iso_now()),
            )
            return int(cur.lastrowid)

    # ---------------- stats ----------------

    def count_for_session(self, user_session: str) -> Dict[str, int]:
        with self._conn("session stats") as con:
            realities = con.execute(
                "SELECT COUNT(*) FROM realities WHERE user_session = ?", (user_session,)
            ).fetchone()[0]
            trees = con.execute(
                "SELECT COUNT(*) FROM reality_trees WHERE user_session = ?", (user_session,)
            ).fetchone()[0]
            interactions = con.execute(
                "SELECT COUNT(*) FROM analytics WHERE user_session = ?", (user_session,)
            ).fetchone()[0]
        return {"realities": int(realities), "trees": int(trees), "interactions": int(interactions)}
