from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .models import Activity

DEFAULT_DESCRIPTION = "Generated from BOQ schedule"
DEFAULT_STATUS = "Upcoming"


@dataclass
class TimelineItem:
    """A computed activity pinned to calendar dates."""

    activity_id: str
    title: str
    description: str
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    status: str = DEFAULT_STATUS


def resolve_start_date(project_start: object = None) -> pd.Timestamp:
    """Midnight of the given date; today when missing or unparseable."""
    if project_start is None or project_start == "":
        return pd.Timestamp.today().normalize()
    try:
        parsed = pd.Timestamp(project_start)
    except (TypeError, ValueError):
        return pd.Timestamp.today().normalize()
    if pd.isna(parsed):
        return pd.Timestamp.today().normalize()
    return parsed.normalize()


def _offset(day: Optional[int], default: int) -> int:
    return max((day if day is not None else default) - 1, 0)


def materialize_timeline(activities: Iterable[Activity], project_start: object = None) -> List[TimelineItem]:
    """Map 1-based start/end days onto calendar dates."""
    base = resolve_start_date(project_start)
    items: List[TimelineItem] = []
    for act in activities:
        start = base + pd.Timedelta(days=_offset(act.start_day, 1))
        end = base + pd.Timedelta(days=_offset(act.end_day, act.duration or 1))
        items.append(
            TimelineItem(
                activity_id=act.id,
                title=act.name,
                description=act.notes or DEFAULT_DESCRIPTION,
                start_date=start,
                end_date=end,
            )
        )
    return items


def project_window(
    activities: Iterable[Activity],
    project_start: object = None,
    minimum_days: int = 30,
) -> Tuple[pd.Timestamp, pd.Timestamp, int]:
    """Project start, end and length in days (never shorter than ``minimum_days``)."""
    base = resolve_start_date(project_start)
    finishes = [act.end_day or act.duration or 0 for act in activities]
    duration_days = max([minimum_days] + finishes)
    return base, base + pd.Timedelta(days=duration_days), duration_days


def timeline_dataframe(activities: Iterable[Activity], project_start: object = None) -> pd.DataFrame:
    rows = [
        {
            "ID": item.activity_id,
            "Title": item.title,
            "Start": item.start_date,
            "End": item.end_date,
            "Status": item.status,
            "Description": item.description,
        }
        for item in materialize_timeline(activities, project_start)
    ]
    return pd.DataFrame(rows, columns=["ID", "Title", "Start", "End", "Status", "Description"])
