from __future__ import annotations

import math
from typing import Any, Iterable, List, Mapping, Optional, Union

from .models import DEFAULT_RELATION, RELATION_TYPES, Activity, Dependency, _to_number

ActivityLike = Union[Activity, Mapping[str, Any]]


def _coerce_relation(value: object) -> str:
    if isinstance(value, str) and value in RELATION_TYPES:
        return value
    return DEFAULT_RELATION


def _coerce_lag(value: object) -> int:
    number = _to_number(value)
    if number is None:
        return 0
    # Half-way values round up, as with Math.round
    return int(math.floor(number + 0.5))


def _raw_fields(activity: ActivityLike) -> tuple:
    if isinstance(activity, Activity):
        return activity.dependencies, activity.predecessors
    if isinstance(activity, Mapping):
        return activity.get("dependencies"), activity.get("predecessors")
    return None, None


def _parse_entry(entry: object) -> Optional[Dependency]:
    if isinstance(entry, Dependency):
        raw_id, raw_type, raw_lag = entry.activity_id, entry.relation_type, entry.lag_days
    elif isinstance(entry, Mapping):
        raw_id, raw_type, raw_lag = entry.get("activityId"), entry.get("type"), entry.get("lagDays")
    else:
        return None

    if not isinstance(raw_id, str) or not raw_id.strip():
        return None
    return Dependency(raw_id.strip(), _coerce_relation(raw_type), _coerce_lag(raw_lag))


def normalize_dependencies(activity: ActivityLike) -> List[Dependency]:
    """
    Merge typed dependencies and legacy predecessor ids into one list.

    Explicit dependencies come first, then each legacy id as an FS link with
    zero lag. A legacy id that an explicit dependency already links to is
    taken as covered by it, since the legacy list is derived from the typed
    one. Links are deduplicated on (activity id, type, lag), first one wins.
    Malformed entries are skipped.
    """
    raw_dependencies, raw_predecessors = _raw_fields(activity)
    seen: set[tuple] = set()
    normalized: List[Dependency] = []

    def append(dep: Dependency) -> None:
        if dep.key in seen:
            return
        seen.add(dep.key)
        normalized.append(dep)

    if isinstance(raw_dependencies, (list, tuple)):
        for entry in raw_dependencies:
            dep = _parse_entry(entry)
            if dep is not None:
                append(dep)

    covered = {dep.activity_id for dep in normalized}
    if isinstance(raw_predecessors, (list, tuple)):
        for pred_id in raw_predecessors:
            if not isinstance(pred_id, str) or not pred_id.strip():
                continue
            if pred_id.strip() in covered:
                continue
            append(Dependency(pred_id.strip(), DEFAULT_RELATION, 0))

    return normalized


def derive_predecessors(dependencies: Optional[Iterable[Dependency]]) -> List[str]:
    """Unique predecessor ids in first-seen order."""
    if dependencies is None:
        return []
    ids: List[str] = []
    for dep in dependencies:
        pred_id = dep.activity_id.strip() if isinstance(dep.activity_id, str) else ""
        if pred_id and pred_id not in ids:
            ids.append(pred_id)
    return ids

