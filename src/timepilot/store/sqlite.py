"""SQLite-backed document store: one row per document id."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from timepilot.core.models import Document
from timepilot.store.base import StoreReadError, StoreWriteError, _SubscriberMixin

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS app_state (
    id          TEXT PRIMARY KEY,
    payload     TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


class SqliteDocumentStore(_SubscriberMixin):
    """Stores the whole document as a JSON payload in ``app_state``.

    Blocking sqlite calls run on a worker thread. Change notifications
    reach subscribers of this store instance after each committed write.
    """

    def __init__(self, db_path: Path, document_id: str = "default") -> None:
        super().__init__()
        self.db_path = db_path
        self._document_id = document_id

    @property
    def document_id(self) -> str:
        return self._document_id

    def _open(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        conn.executescript(_SCHEMA)
        return conn

    def _read_row(self) -> dict | None:
        conn = self._open()
        try:
            row = conn.execute(
                "SELECT payload FROM app_state WHERE id = ?", (self._document_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return json.loads(row["payload"])

    def _upsert_row(self, payload: dict) -> None:
        conn = self._open()
        try:
            conn.execute(
                """INSERT INTO app_state (id, payload, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     payload = excluded.payload,
                     updated_at = excluded.updated_at""",
                (
                    self._document_id,
                    json.dumps(payload, ensure_ascii=False),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    async def read(self) -> Document | None:
        try:
            payload = await asyncio.to_thread(self._read_row)
        except (sqlite3.Error, OSError, ValueError) as e:
            raise StoreReadError(f"Failed to read {self.db_path}: {e}") from e
        if payload is None:
            return None
        return Document.from_dict(payload)

    async def write(self, document: Document) -> None:
        payload = document.to_dict()
        try:
            await asyncio.to_thread(self._upsert_row, payload)
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            raise StoreWriteError(f"Failed to write {self.db_path}: {e}") from e
        log.debug("Stored document '%s' in %s", self._document_id, self.db_path)
        await self._notify(payload)

