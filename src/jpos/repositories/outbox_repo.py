from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class OutboxEntry:
    sale_id: str
    payload: dict
    created_at: str
    attempts: int
    last_error: Optional[str]


class OutboxRepository:
    """Local durable queue of sales that could not reach the main store."""

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self) -> None:
        conn = self._conn()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS pending_sales (
                sale_id TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                attempts INTEGER NOT NULL DEFAULT 0,
                last_error TEXT
            )
            """
        )
        conn.commit()
        conn.close()

    def enqueue(self, sale_id: str, payload: dict, error: Optional[str] = None) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO pending_sales (sale_id, payload, last_error) VALUES (?, ?, ?)
            ON CONFLICT(sale_id) DO UPDATE SET payload=excluded.payload, last_error=excluded.last_error
            """,
            (sale_id, json.dumps(payload, ensure_ascii=False), error),
        )
        conn.commit()
        conn.close()

    def pending(self) -> list[OutboxEntry]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT sale_id, payload, created_at, attempts, last_error FROM pending_sales ORDER BY created_at, sale_id")
        rows = cur.fetchall()
        conn.close()
        return [
            OutboxEntry(
                sale_id=str(r[0]),
                payload=json.loads(r[1]),
                created_at=str(r[2]),
                attempts=int(r[3]),
                last_error=(r[4] if r[4] is not None else None),
            )
            for r in rows
        ]

    def record_failure(self, sale_id: str, error: str) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "UPDATE pending_sales SET attempts = attempts + 1, last_error = ? WHERE sale_id = ?",
            (error, sale_id),
        )
        conn.commit()
        conn.close()

    def remove(self, sale_id: str) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM pending_sales WHERE sale_id = ?", (sale_id,))
        conn.commit()
        conn.close()

    def count(self) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT COUNT(*) FROM pending_sales")
        n = int(cur.fetchone()[0])
        conn.close()
        return n
