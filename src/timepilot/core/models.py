"""Core data models for timepilot."""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

log = logging.getLogger(__name__)


# --- Enums ---


class AiMode(str, Enum):
    READONLY = "readonly"
    PREVIEW_PATCH = "preview_patch"


class LoadState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


# --- Helpers ---


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return _now().isoformat()


# Entry fields that carry a date and are normalized before every write
ENTRY_DATE_FIELDS = frozenset({
    "startTime",
    "endTime",
    "pausedTime",
    "createdAt",
    "updatedAt",
    "completedAt",
    "date",
    "timestamp",
})

COLLECTION_KEYS = ("records", "dailyPlans", "todos", "questions")


def normalize_date(value):
    """Return an ISO-8601 string for date-like values.

    datetime and date objects are formatted with isoformat(); numbers are
    read as epoch milliseconds. Strings and None pass through unchanged, as
    do numbers outside the representable date range (or NaN).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            log.warning("Epoch value out of range, left as is: %r", value)
            return value
    return value


def _parse_iso(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no", ""):
            return False
    elif value is None or isinstance(value, (int, float)):
        return bool(value)
    log.warning("Unrecognized boolean %r, treated as false", value)
    return False


def new_entry(**fields) -> dict:
    """Create a collection entry with a generated id and creation timestamp."""
    entry = {"id": _uuid(), "createdAt": now_iso()}
    entry.update(fields)
    return entry


# --- Document ---


@dataclass
class Document:
    """The single persisted state document.

    Attribute names are snake_case; to_dict()/from_dict() use the
    camelCase keys of the stored JSON payload.
    """

    records: list[dict] = field(default_factory=list)
    daily_plans: list[dict] = field(default_factory=list)
    todos: list[dict] = field(default_factory=list)
    questions: list[dict] = field(default_factory=list)
    current_task: str = ""
    current_task_description: str = ""
    start_time: str | None = None
    paused_time: str | None = None
    is_paused: bool = False
    current_plan_id: str | None = None
    current_todo_id: str | None = None
    extra: dict = field(default_factory=dict)

    # camelCase key -> attribute name
    FIELDS = {
        "records": "records",
        "dailyPlans": "daily_plans",
        "todos": "todos",
        "questions": "questions",
        "currentTask": "current_task",
        "currentTaskDescription": "current_task_description",
        "startTime": "start_time",
        "pausedTime": "paused_time",
        "isPaused": "is_paused",
        "currentPlanId": "current_plan_id",
        "currentTodoId": "current_todo_id",
    }

    @classmethod
    def from_dict(cls, data: dict | None) -> Document:
        """Build a document from a stored payload, tolerating missing keys."""
        data = data if isinstance(data, dict) else {}
        doc = cls()
        for key, attr in cls.FIELDS.items():
            if key in data:
                doc.set(key, copy.deepcopy(data[key]))
        doc.extra = {
            k: copy.deepcopy(v) for k, v in data.items() if k not in cls.FIELDS
        }
        return doc

    def to_dict(self) -> dict:
        data = copy.deepcopy(self.extra)
        for key, attr in self.FIELDS.items():
            data[key] = copy.deepcopy(getattr(self, attr))
        return data

    def get(self, key: str):
        return getattr(self, self.FIELDS[key])

    def set(self, key: str, value) -> None:
        """Assign a field by wire key, coercing wrong types to defaults."""
        attr = self.FIELDS[key]
        if key in COLLECTION_KEYS:
            if not isinstance(value, list):
                log.warning("%s is not a list, reset to empty", key)
                value = []
            else:
                entries = [v for v in value if isinstance(v, dict)]
                if len(entries) != len(value):
                    log.warning(
                        "Dropped %d non-object entries from %s", len(value) - len(entries), key
                    )
                value = entries
        elif key == "isPaused":
            value = _coerce_bool(value)
        elif key in ("currentTask", "currentTaskDescription"):
            if not isinstance(value, str):
                log.warning("%s is not a string (%r), reset to empty", key, value)
                value = ""
        elif value is not None and not isinstance(value, str):
            if key in ("startTime", "pausedTime"):
                value = normalize_date(value)
                if not isinstance(value, str):
                    log.warning("%s is not a usable date, cleared", key)
                    value = None
            else:
                value = str(value)
        setattr(self, attr, value)

    def copy(self) -> Document:
        return Document.from_dict(self.to_dict())

    # --- Consistency ---

    def dangling_refs(self) -> list[str]:
        """Return the cross-reference keys that point at no existing entry."""
        dangling = []
        if self.current_plan_id is not None and not _has_id(self.daily_plans, self.current_plan_id):
            dangling.append("currentPlanId")
        if self.current_todo_id is not None and not _has_id(self.todos, self.current_todo_id):
            dangling.append("currentTodoId")
        return dangling

    def clear_dangling_refs(self) -> list[str]:
        dangling = self.dangling_refs()
        for key in dangling:
            self.set(key, None)
        return dangling

    def normalize_dates(self) -> None:
        """Convert every date-bearing field to an ISO-8601 string in place."""
        self.start_time = normalize_date(self.start_time)
        self.paused_time = normalize_date(self.paused_time)
        for key in COLLECTION_KEYS:
            for entry in self.get(key):
                for name in ENTRY_DATE_FIELDS & entry.keys():
                    entry[name] = normalize_date(entry[name])

    # --- Timer session ---

    @property
    def is_running(self) -> bool:
        return self.start_time is not None

    def start_timer(
        self,
        task: str,
        description: str = "",
        plan_id: str | None = None,
        todo_id: str | None = None,
        now: datetime | None = None,
    ) -> None:
        if self.is_running:
            raise ValueError(f"A timer session is already active: {self.current_task!r}")
        self.current_task = task
        self.current_task_description = description
        self.current_plan_id = plan_id
        self.current_todo_id = todo_id
        self.start_time = normalize_date(now or _now())
        self.paused_time = None
        self.is_paused = False

    def pause_timer(self, now: datetime | None = None) -> None:
        if not self.is_running or self.is_paused:
            raise ValueError("No running timer session to pause")
        self.paused_time = normalize_date(now or _now())
        self.is_paused = True

    def resume_timer(self, now: datetime | None = None) -> None:
        """Resume a paused session, shifting startTime by the paused span."""
        if not self.is_running or not self.is_paused:
            raise ValueError("No paused timer session to resume")
        now = now or _now()
        start = _parse_iso(self.start_time)
        paused = _parse_iso(self.paused_time)
        if start is not None and paused is not None:
            self.start_time = normalize_date(start + (now - paused))
        self.paused_time = None
        self.is_paused = False

    def stop_timer(self, now: datetime | None = None) -> dict:
        """End the active session and append it to records."""
        if not self.is_running:
            raise ValueError("No active timer session to stop")
        now = now or _now()
        start = _parse_iso(self.start_time)
        end = _parse_iso(self.paused_time) if self.is_paused else now
        duration = 0
        if start is not None and end is not None:
            duration = max(0, int((end - start).total_seconds()))

        record = new_entry(
            task=self.current_task,
            description=self.current_task_description,
            startTime=self.start_time,
            endTime=normalize_date(end or now),
            duration=duration,
            planId=self.current_plan_id,
            todoId=self.current_todo_id,
        )
        self.records.append(record)

        self.current_task = ""
        self.current_task_description = ""
        self.start_time = None
        self.paused_time = None
        self.is_paused = False
        self.current_plan_id = None
        self.current_todo_id = None
        return record


def _has_id(entries: list[dict], entry_id: str) -> bool:
    return any(e.get("id") == entry_id for e in entries)


# --- Assistant ---


@dataclass
class HistoryTurn:
    """One prior turn of the assistant conversation."""

    role: str  # "user" or "assistant"
    content: str


@dataclass
class AssistantResponse:
    """A sanitized gateway response."""

    mode: AiMode = AiMode.READONLY
    message: str = ""
    patch: dict | None = None

    def to_dict(self) -> dict:
        data: dict = {"mode": self.mode.value, "message": self.message}
        if self.patch is not None:
            data["patch"] = self.patch
        return data
