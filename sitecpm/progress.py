from __future__ import annotations

from typing import Iterable

from .dependencies import normalize_dependencies
from .models import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_NOT_STARTED, Activity


def can_start(activity: Activity, scheduled: Iterable[Activity]) -> bool:
    """
    Whether a not-started activity may begin given its predecessors' status.

    FS and FF links wait for the predecessor to complete; SS and SF links only
    need it started. Predecessors missing from ``scheduled`` do not block.
    """
    if activity.status != STATUS_NOT_STARTED:
        return False

    by_id = {act.id: act for act in scheduled}
    for dep in normalize_dependencies(activity):
        predecessor = by_id.get(dep.activity_id)
        if predecessor is None:
            continue
        if dep.relation_type in ("FS", "FF"):
            if predecessor.status != STATUS_COMPLETED:
                return False
        elif predecessor.status not in (STATUS_IN_PROGRESS, STATUS_COMPLETED):
            return False
    return True
