"""SyncOrchestrator — owns the local document mirror and its persistence.

Load state machine:
  UNLOADED -> LOADING -> LOADED | ERROR
  ERROR    -> LOADING          (load() again to retry)
  LOADED   -> UNLOADED         (only through reload())

Writes are suppressed until LOADED, so the empty default document can
never overwrite stored state during startup. Immediate writes go through
one FIFO lock; each persists the document as it is when its turn comes.
Remote notifications that arrive while writes are queued, in flight or
waiting on the debounce timer are held until they all settle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from timepilot.core.models import Document, LoadState
from timepilot.store.base import DocumentStore, StoreReadError, StoreWriteError, Subscription
from timepilot.sync.debounce import DebouncedTask
from timepilot.sync.view import DocumentView, FocusTracker

log = logging.getLogger(__name__)


class DocumentNotLoadedError(RuntimeError):
    """Raised when the document is used before a successful load."""


class SyncOrchestrator:
    """Keep the local document, the view and the store consistent."""

    def __init__(
        self,
        store: DocumentStore,
        view: DocumentView | None = None,
        debounce_seconds: float = 1.0,
    ) -> None:
        self.store = store
        self.view = view if view is not None else FocusTracker()
        self.state = LoadState.UNLOADED
        self.last_error: Exception | None = None
        self._document = Document()
        self._write_lock = asyncio.Lock()
        self._pending_writes = 0
        self._burst_payloads: list[dict] = []
        self._held_remote: Document | None = None
        self._subscription: Subscription | None = None
        self._debounced = DebouncedTask(self.write_now, debounce_seconds)

    @property
    def document(self) -> Document:
        return self._document

    @property
    def loaded(self) -> bool:
        return self.state is LoadState.LOADED

    @property
    def write_pending(self) -> bool:
        return self._pending_writes > 0 or self._debounced.pending

    # --- Loading ---

    async def load(self) -> Document:
        """Read the stored document and open the write gate.

        A missing row yields an empty default document. Calling load()
        again after a failure retries; after success it is a no-op.

        Raises:
            StoreReadError: The store could not be read; state becomes ERROR.
        """
        if self.state is LoadState.LOADED:
            return self._document
        if self.state is LoadState.LOADING:
            raise RuntimeError("Load already in progress")

        self.state = LoadState.LOADING
        try:
            stored = await self.store.read()
        except StoreReadError as e:
            self.state = LoadState.ERROR
            self.last_error = e
            log.error("Failed to load document '%s': %s", self.store.document_id, e)
            raise

        if stored is None:
            log.info("No stored document '%s', starting empty", self.store.document_id)
            stored = Document()
        self._document = stored
        self.last_error = None
        self.state = LoadState.LOADED

        if self._subscription is None:
            self._subscription = self.store.subscribe(self._on_remote_change)
        self._refresh()
        log.info(
            "Loaded document '%s' (%d records, %d todos)",
            self.store.document_id,
            len(stored.records),
            len(stored.todos),
        )
        return self._document

    async def reload(self) -> Document:
        """Close the write gate and load again."""
        self._debounced.cancel()
        self._held_remote = None
        self._burst_payloads = []
        self.state = LoadState.UNLOADED
        return await self.load()

    # --- Mutation ---

    async def mutate(self, fn: Callable[[Document], object], debounce: bool = False) -> bool:
        """Run fn on the document, refresh the view, then persist.

        With debounce=False the write is awaited, so the caller observes
        committed state when this returns. Returns the write outcome
        (True when scheduled, for debounced writes).

        Raises:
            DocumentNotLoadedError: The document has not been loaded.
        """
        if not self.loaded:
            raise DocumentNotLoadedError(
                f"Document is not loaded (state={self.state.value})"
            )
        fn(self._document)
        self._refresh()
        if debounce:
            return self.schedule_write()
        return await self.write_now()

    # --- Writes ---

    async def write_now(self) -> bool:
        """Persist the document, queued behind any write already in flight.

        Returns True if the store accepted it. Failures are logged and the
        local document is kept as is.
        """
        if not self.loaded:
            log.debug("Write suppressed, document not loaded (state=%s)", self.state.value)
            return False

        self._pending_writes += 1
        try:
            async with self._write_lock:
                return await self._persist()
        finally:
            self._pending_writes -= 1
            if not self.write_pending:
                await self._settle()

    def schedule_write(self) -> bool:
        """Debounced write: replaces any pending one. Returns False if suppressed."""
        if not self.loaded:
            log.debug("Debounced write suppressed, document not loaded")
            return False
        self._debounced.schedule()
        return True

    async def flush(self) -> bool:
        """Run a pending debounced write now. Returns True if one was pending."""
        return await self._debounced.flush()

    async def _persist(self) -> bool:
        cleared = self._document.clear_dangling_refs()
        if cleared:
            log.info("Cleared dangling references: %s", ", ".join(cleared))
        self._document.normalize_dates()

        snapshot = self._document.copy()
        self._burst_payloads.append(snapshot.to_dict())
        try:
            await self.store.write(snapshot)
        except StoreWriteError as e:
            self.last_error = e
            log.warning("Write failed, keeping local state: %s", e)
            return False
        return True

    # --- Remote changes ---

    async def _on_remote_change(self, remote: Document) -> None:
        if not self.loaded:
            return
        if self.write_pending:
            log.debug("Holding remote change until local writes settle")
            self._held_remote = remote
            return
        self._merge_remote(remote)

    async def _settle(self) -> None:
        """Called once no write is queued or scheduled. Resolves a held notification."""
        held, self._held_remote = self._held_remote, None
        written, self._burst_payloads = self._burst_payloads, []
        if held is None:
            return
        if held.to_dict() in written:
            log.debug("Dropped echo of a local write")
            return

        # The held snapshot may predate our own write; the store decides
        try:
            current = await self.store.read()
        except StoreReadError as e:
            log.warning("Could not re-read after remote change: %s", e)
            return
        if current is None:
            return
        if self.write_pending:
            self._held_remote = current
            return
        self._merge_remote(current)

    def _merge_remote(self, remote: Document) -> None:
        """Overwrite local fields with remote ones, except focused fields."""
        focused = self.view.focused_fields()
        for key in Document.FIELDS:
            if key in focused:
                log.debug("Kept focused field %s during remote merge", key)
                continue
            self._document.set(key, remote.get(key))
        self._document.extra = remote.extra
        self._refresh()

    # --- Teardown ---

    async def close(self) -> None:
        """Flush pending debounced work and stop listening for changes."""
        await self.flush()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _refresh(self) -> None:
        try:
            self.view.refresh(self._document)
        except Exception:
            log.warning("View refresh failed", exc_info=True)
