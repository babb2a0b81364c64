"""In-process document store."""

from __future__ import annotations

import asyncio
import json

from timepilot.core.models import Document
from timepilot.store.base import StoreReadError, StoreWriteError, _SubscriberMixin


class MemoryDocumentStore(_SubscriberMixin):
    """Keeps documents as JSON strings keyed by id.

    Several stores can share one ``rows`` dict to stand in for two clients
    looking at the same backend. ``write_delay`` and the ``fail_*`` flags
    simulate a slow or broken backend.
    """

    def __init__(
        self,
        document_id: str = "default",
        rows: dict[str, str] | None = None,
        write_delay: float = 0.0,
    ) -> None:
        super().__init__()
        self._document_id = document_id
        self.rows = rows if rows is not None else {}
        self.write_delay = write_delay
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[dict] = []

    @property
    def document_id(self) -> str:
        return self._document_id

    async def read(self) -> Document | None:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise StoreReadError(f"Read failed for document '{self._document_id}'")
        raw = self.rows.get(self._document_id)
        if raw is None:
            return None
        return Document.from_dict(json.loads(raw))

    async def write(self, document: Document) -> None:
        payload = document.to_dict()
        await asyncio.sleep(self.write_delay)
        if self.fail_writes:
            raise StoreWriteError(f"Write failed for document '{self._document_id}'")
        self.rows[self._document_id] = json.dumps(payload, ensure_ascii=False)
        self.writes.append(payload)
        await self._notify(payload)

    async def push_remote(self, payload: dict) -> None:
        """Store a payload as if another client wrote it, and notify."""
        self.rows[self._document_id] = json.dumps(payload, ensure_ascii=False)
        await self._notify(payload)

    def stored(self) -> dict | None:
        raw = self.rows.get(self._document_id)
        return json.loads(raw) if raw is not None else None
