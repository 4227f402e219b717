from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

RELATION_TYPES = ("FS", "SS", "FF", "SF")
DEFAULT_RELATION = "FS"

STATUS_NOT_STARTED = "NOT_STARTED"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"
STATUSES = (STATUS_NOT_STARTED, STATUS_IN_PROGRESS, STATUS_COMPLETED)


def _to_number(value: object) -> Optional[float]:
    """Return a finite float for real numbers, None for anything else (strings included)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def coerce_duration(value: object) -> int:
    """Whole positive days; anything unusable becomes 1."""
    number = _to_number(value)
    if number is None or number <= 0:
        return 1
    return int(math.ceil(number))


def coerce_manual_start(value: object) -> Optional[int]:
    number = _to_number(value)
    if number is None or number < 1:
        return None
    return int(math.floor(number))


def coerce_status(value: object) -> str:
    if isinstance(value, str) and value in STATUSES:
        return value
    return STATUS_NOT_STARTED


@dataclass
class Dependency:
    """Represents a precedence relationship to a predecessor activity."""

    activity_id: str
    relation_type: str = DEFAULT_RELATION  # FS, SS, FF, SF
    lag_days: int = 0  # Can be positive or negative (lead)

    @property
    def key(self) -> tuple:
        return (self.activity_id, self.relation_type, self.lag_days)

    def to_record(self) -> Dict[str, Any]:
        return {
            "activityId": self.activity_id,
            "type": self.relation_type,
            "lagDays": self.lag_days,
        }

    def __str__(self) -> str:
        lag_str = f"+{self.lag_days}" if self.lag_days >= 0 else str(self.lag_days)
        return f"{self.activity_id}:{self.relation_type}:{lag_str}"


@dataclass
class Activity:
    """A unit of work with its dependency links and computed schedule."""

    id: str
    name: str
    duration: int
    dependencies: List[Dependency] = field(default_factory=list)
    predecessors: List[str] = field(default_factory=list)  # Legacy FS links
    manual_start: Optional[int] = None  # User-pinned earliest day (>= 1)
    status: str = STATUS_NOT_STARTED
    notes: Optional[str] = None

    # Forward pass results (1-based, inclusive)
    start_day: Optional[int] = None
    end_day: Optional[int] = None

    # Backward pass results
    late_start: Optional[int] = None
    late_finish: Optional[int] = None

    total_float: int = 0
    free_float: int = 0
    is_critical: bool = False

    def reset_calculations(self) -> None:
        """Reset all calculated values."""
        self.start_day = None
        self.end_day = None
        self.late_start = None
        self.late_finish = None
        self.total_float = 0
        self.free_float = 0
        self.is_critical = False

    def copy(self) -> "Activity":
        return replace(
            self,
            dependencies=[replace(dep) for dep in self.dependencies],
            predecessors=list(self.predecessors),
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any], index: int = 0) -> "Activity":
        """
        Build an activity from a plain record (camelCase keys).

        Malformed values are coerced; the dependency list is normalized and
        the legacy predecessor list is re-derived from it.
        """
        from .dependencies import derive_predecessors, normalize_dependencies

        raw_id = record.get("id")
        activity_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else f"A{index + 1}"
        raw_name = record.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else activity_id
        dependencies = normalize_dependencies(record)
        notes = record.get("notes")

        return cls(
            id=activity_id,
            name=name,
            duration=coerce_duration(record.get("duration")),
            dependencies=dependencies,
            predecessors=derive_predecessors(dependencies),
            manual_start=coerce_manual_start(record.get("manualStart")),
            status=coerce_status(record.get("status")),
            notes=notes if isinstance(notes, str) else None,
        )

    def to_record(self, include_late: bool = False) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "duration": self.duration,
            "predecessors": list(self.predecessors),
            "dependencies": [dep.to_record() for dep in self.dependencies],
            "status": self.status,
        }
        if self.manual_start is not None:
            record["manualStart"] = self.manual_start
        if self.notes is not None:
            record["notes"] = self.notes
        if self.start_day is not None:
            record.update(
                {
                    "startDay": self.start_day,
                    "endDay": self.end_day,
                    "isCritical": self.is_critical,
                    "totalFloat": self.total_float,
                    "freeFloat": self.free_float,
                }
            )
            if include_late:
                record["lateStart"] = self.late_start
                record["lateFinish"] = self.late_finish
        return record
