"""Patch whitelist validation and assistant output sanitizing.

This module is the only place where model-produced JSON is narrowed to
something the document may accept. The gateway runs it on raw model
output and the patch applier runs it again on whatever reaches the client.
"""

from __future__ import annotations

from dataclasses import dataclass

from timepilot.core.models import AiMode, AssistantResponse

PATCH_KEYS: tuple[str, ...] = (
    "records",
    "todos",
    "questions",
    "dailyPlans",
    "currentTask",
    "currentTaskDescription",
    "currentPlanId",
    "currentTodoId",
    "startTime",
    "pausedTime",
    "isPaused",
)

ALLOWED_PATCH_KEYS = frozenset(PATCH_KEYS)

FALLBACK_MESSAGE = "AI 已完成处理。"


@dataclass(frozen=True)
class Accepted:
    """A patch narrowed to whitelisted keys. Values are passed through as-is."""

    fields: dict


@dataclass(frozen=True)
class Rejected:
    """A patch that cannot be used at all."""

    reason: str


PatchResult = Accepted | Rejected


def validate_patch(patch: object) -> PatchResult:
    """Filter a proposed patch against the whitelist.

    Unknown keys are dropped silently. Only a non-object patch is rejected.
    """
    if not isinstance(patch, dict):
        return Rejected(f"patch must be an object, got {type(patch).__name__}")
    return Accepted({k: v for k, v in patch.items() if k in ALLOWED_PATCH_KEYS})


def sanitize_response(parsed: object) -> AssistantResponse:
    """Turn parsed model output into a safe AssistantResponse.

    mode is readonly unless exactly "preview_patch"; a blank or non-string
    message becomes the fallback; a patch is only kept in preview_patch
    mode and only after whitelist filtering.
    """
    data = parsed if isinstance(parsed, dict) else {}

    mode = AiMode.PREVIEW_PATCH if data.get("mode") == "preview_patch" else AiMode.READONLY
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        message = FALLBACK_MESSAGE

    response = AssistantResponse(mode=mode, message=message)
    if mode is AiMode.PREVIEW_PATCH and "patch" in data:
        result = validate_patch(data["patch"])
        if isinstance(result, Accepted):
            response.patch = result.fields
    return response
