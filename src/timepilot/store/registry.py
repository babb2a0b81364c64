"""Document store registry."""

from __future__ import annotations

from pathlib import Path

from timepilot.store.base import DocumentStore
from timepilot.store.memory import MemoryDocumentStore
from timepilot.store.sqlite import SqliteDocumentStore

_BACKENDS = ("memory", "sqlite")


def get_store(config: dict) -> DocumentStore:
    """Build the document store named in the ``store`` config section.

    Raises:
        ValueError: Unknown backend name.
    """
    store_cfg = config.get("store", {})
    backend = store_cfg.get("backend", "sqlite")
    document_id = store_cfg.get("document_id", "default")

    if backend == "memory":
        return MemoryDocumentStore(document_id)
    if backend == "sqlite":
        return SqliteDocumentStore(Path(store_cfg["path"]), document_id)

    available = ", ".join(_BACKENDS)
    raise ValueError(f"Unknown store backend '{backend}'. Available: {available}")
