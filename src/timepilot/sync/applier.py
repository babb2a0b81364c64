"""PatchApplier — merges an approved assistant patch into the document."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from timepilot.core.models import AiMode, AssistantResponse, Document
from timepilot.core.patch import Accepted, validate_patch
from timepilot.sync.orchestrator import SyncOrchestrator

log = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying one assistant response."""

    applied: bool
    message: str
    keys: list[str] = field(default_factory=list)
    persisted: bool = False


class PatchApplier:
    """Apply gateway responses through the orchestrator.

    Each present patch key replaces the document field wholesale and
    absent keys are left alone, so applying the same patch twice gives
    the same document as applying it once.
    """

    def __init__(self, orchestrator: SyncOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def apply(self, response: AssistantResponse) -> ApplyResult:
        if response.mode is not AiMode.PREVIEW_PATCH:
            return ApplyResult(applied=False, message=response.message)

        result = validate_patch(response.patch)
        if not isinstance(result, Accepted):
            log.info("Assistant response has no usable patch: %s", result.reason)
            return ApplyResult(applied=False, message=response.message)

        fields = result.fields
        if not fields:
            return ApplyResult(applied=False, message=response.message)

        def _merge(document: Document) -> None:
            # Stage on a copy so a failing key leaves the document untouched
            staged = document.copy()
            for key, value in fields.items():
                staged.set(key, copy.deepcopy(value))
            for key in fields:
                setattr(document, Document.FIELDS[key], staged.get(key))

        persisted = await self.orchestrator.mutate(_merge)
        keys = list(fields)
        log.info("Applied assistant patch (%s), persisted=%s", ",".join(keys), persisted)
        return ApplyResult(applied=True, message=response.message, keys=keys, persisted=persisted)


def preview_patch(document: Document, patch: dict) -> dict[str, tuple[object, object]]:
    """Return {key: (current, proposed)} for keys the patch would change."""
    result = validate_patch(patch)
    if not isinstance(result, Accepted):
        return {}
    changes = {}
    for key, value in result.fields.items():
        current = document.get(key)
        if current != value:
            changes[key] = (current, value)
    return changes
