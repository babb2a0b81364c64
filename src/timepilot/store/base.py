"""DocumentStore protocol — the contract for the backing state row."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Protocol, runtime_checkable

from timepilot.core.models import Document

log = logging.getLogger(__name__)

ChangeCallback = Callable[[Document], Awaitable[None] | None]


class StoreError(Exception):
    """Base error for document store operations."""


class StoreReadError(StoreError):
    """The document could not be read."""


class StoreWriteError(StoreError):
    """The document could not be written."""


class Subscription:
    """Handle returned by DocumentStore.subscribe()."""

    def __init__(self, store: _SubscriberMixin, callback: ChangeCallback) -> None:
        self._store = store
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._store._remove_subscriber(self)
            self.active = False


@runtime_checkable
class DocumentStore(Protocol):
    """Contract for the single-row document store.

    The store is an opaque key-value row addressed by ``document_id``.
    It holds no merge logic.
    """

    @property
    def document_id(self) -> str:
        ...

    async def read(self) -> Document | None:
        """Return the stored document, or None if the row does not exist.

        Raises:
            StoreReadError: The backend failed.
        """
        ...

    async def write(self, document: Document) -> None:
        """Upsert the whole document.

        Raises:
            StoreWriteError: The backend failed.
        """
        ...

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        """Register a callback for changes to this document's row."""
        ...


class _SubscriberMixin:
    """Keeps subscribers and fans out change notifications."""

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        sub = Subscription(self, callback)
        self._subscribers.append(sub)
        return sub

    def _remove_subscriber(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    async def _notify(self, payload: dict) -> None:
        """Deliver a fresh Document copy to every subscriber."""
        for sub in list(self._subscribers):
            try:
                result = sub.callback(Document.from_dict(payload))
                if result is not None:
                    await result
            except Exception:
                log.warning("Change subscriber failed", exc_info=True)
