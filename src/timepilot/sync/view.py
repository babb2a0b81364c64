"""View boundary between the orchestrator and whatever renders the document."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

from timepilot.core.models import Document

log = logging.getLogger(__name__)


@runtime_checkable
class DocumentView(Protocol):
    """What the orchestrator needs from a view."""

    def refresh(self, document: Document) -> None:
        """Redraw from the current document."""
        ...

    def focused_fields(self) -> set[str]:
        """Document keys bound to an input control that has focus."""
        ...


class FocusTracker:
    """A DocumentView that records focus and forwards refreshes to listeners.

    Input controls call focus(key) / blur(key) with the document key they
    edit. Listeners receive every refresh.
    """

    def __init__(self) -> None:
        self._focused: set[str] = set()
        self._listeners: list[Callable[[Document], None]] = []
        self.refresh_count = 0

    def focus(self, key: str) -> None:
        if key not in Document.FIELDS:
            raise KeyError(f"Unknown document field: {key!r}")
        self._focused.add(key)

    def blur(self, key: str) -> None:
        self._focused.discard(key)

    def focused_fields(self) -> set[str]:
        return set(self._focused)

    def add_listener(self, listener: Callable[[Document], None]) -> None:
        self._listeners.append(listener)

    def refresh(self, document: Document) -> None:
        self.refresh_count += 1
        for listener in list(self._listeners):
            try:
                listener(document)
            except Exception:
                log.warning("View listener failed", exc_info=True)
