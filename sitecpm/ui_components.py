import re
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .dependencies import derive_predecessors
from .generator import BOQItem
from .models import RELATION_TYPES, STATUS_NOT_STARTED, Activity, Dependency

EDITOR_COLUMNS = ["ID", "Name", "Duration", "Dependencies", "Manual Start", "Status", "Notes"]

SAMPLE_PROJECT = [
    {"id": "A1", "name": "Site Preparation", "duration": 5, "predecessors": [], "status": "COMPLETED"},
    {"id": "A2", "name": "Excavation", "duration": 8, "predecessors": ["A1"], "status": "COMPLETED"},
    {"id": "A3", "name": "Foundation Pouring", "duration": 10, "predecessors": ["A2"], "status": "IN_PROGRESS"},
    {"id": "A4", "name": "Curing Period", "duration": 14, "predecessors": ["A3"]},
    {"id": "A5", "name": "Structural Steel", "duration": 12, "predecessors": ["A4"]},
    {"id": "A6", "name": "Electrical Rough-In", "duration": 7, "predecessors": ["A5"]},
    {"id": "A7", "name": "Plumbing Rough-In", "duration": 7,
     "dependencies": [{"activityId": "A6", "type": "SS", "lagDays": 2}]},
    {"id": "A8", "name": "HVAC Installation", "duration": 10, "predecessors": ["A6", "A7"]},
    {"id": "A9", "name": "Drywall & Interior", "duration": 15, "predecessors": ["A8"]},
    {"id": "A10", "name": "Final Inspection", "duration": 3,
     "dependencies": [{"activityId": "A9", "type": "FF", "lagDays": 1}]},
]


def _is_missing(value: object) -> bool:
    try:
        return value is None or pd.isna(value)
    except (TypeError, ValueError):
        return False

def _safe_str(value: object) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()

def _safe_int(value: object, default: Optional[int] = 0) -> Optional[int]:
    if _is_missing(value):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def parse_dependency_string(text: str, activity_id: str = "") -> Tuple[List[Dependency], Optional[str]]:
    """
    Parse dependencies written as "A1:FS:0;A2:SS:2".

    A bare id means FS with no lag. Returns (dependencies, error message).
    """
    dependencies: List[Dependency] = []
    if not text or not text.strip():
        return dependencies, None

    for pred_def in re.split(r"[;,]", text):
        pred_def = pred_def.strip()
        if not pred_def or pred_def in {"-", "—"}:
            continue

        parts = [p.strip() for p in pred_def.split(":")]
        if len(parts) == 1:
            parts += ["FS", "0"]
        elif len(parts) == 2:
            parts.append("0")
        if len(parts) != 3 or not parts[0]:
            return [], f"Invalid dependency '{pred_def}'. Use 'ID:TYPE:LAG' (e.g. 'A1:FS:0')."

        pred_id, rel_type, lag_raw = parts[0], parts[1].upper(), parts[2]
        if rel_type not in RELATION_TYPES:
            return [], f"Invalid relationship type '{rel_type}'. Must be one of: FS, SS, FF, SF."
        try:
            lag = int(lag_raw)
        except ValueError:
            return [], f"Invalid lag value in '{pred_def}'. Lag must be an integer."
        if pred_id == activity_id:
            return [], "An activity cannot be its own predecessor."

        dependencies.append(Dependency(pred_id, rel_type, lag))

    return dependencies, None


def editor_dataframe(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Raw activity records as an editable table."""
    rows = []
    for idx, record in enumerate(records):
        act = Activity.from_record(record, idx)
        rows.append(
            {
                "ID": act.id,
                "Name": act.name,
                "Duration": act.duration,
                "Dependencies": ";".join(f"{d.activity_id}:{d.relation_type}:{d.lag_days}" for d in act.dependencies),
                "Manual Start": act.manual_start,
                "Status": act.status,
                "Notes": act.notes or "",
            }
        )
    return pd.DataFrame(rows, columns=EDITOR_COLUMNS)


def records_from_editor(df: pd.DataFrame) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Validate an edited table and turn it back into activity records.

    Returns (records, errors); rows with errors are left out.
    """
    records: List[Dict[str, Any]] = []
    errors: List[str] = []
    seen_ids = set()

    for row_no, (_, row) in enumerate(df.iterrows(), start=1):
        act_id = _safe_str(row.get("ID"))
        name = _safe_str(row.get("Name"))
        if not act_id and not name:
            continue
        if not act_id:
            errors.append(f"Row {row_no}: Activity ID is required.")
            continue
        if act_id in seen_ids:
            errors.append(f"Row {row_no}: Activity '{act_id}' already exists.")
            continue
        if not name:
            errors.append(f"Row {row_no}: Name is required for '{act_id}'.")
            continue

        duration = _safe_int(row.get("Duration"), default=None)
        if duration is None or duration < 1:
            errors.append(f"Row {row_no}: Duration of '{act_id}' must be at least 1 day.")
            continue

        manual_start = _safe_int(row.get("Manual Start"), default=None)
        if manual_start is not None and manual_start < 1:
            errors.append(f"Row {row_no}: Start day of '{act_id}' must be at least 1.")
            continue

        dependencies, parse_error = parse_dependency_string(_safe_str(row.get("Dependencies")), act_id)
        if parse_error:
            errors.append(f"Row {row_no}: {parse_error}")
            continue

        seen_ids.add(act_id)
        record: Dict[str, Any] = {
            "id": act_id,
            "name": name,
            "duration": duration,
            "dependencies": [dep.to_record() for dep in dependencies],
            "predecessors": derive_predecessors(dependencies),
            "status": _safe_str(row.get("Status")) or STATUS_NOT_STARTED,
        }
        if manual_start is not None:
            record["manualStart"] = manual_start
        notes = _safe_str(row.get("Notes"))
        if notes:
            record["notes"] = notes
        records.append(record)

    return records, errors


def apply_bar_edit(
    records: List[Dict[str, Any]],
    activity_id: str,
    manual_start: Optional[int] = None,
    duration: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Return new records with one activity moved or resized (days clamp at 1)."""
    updated = []
    for record in records:
        if record.get("id") != activity_id:
            updated.append(record)
            continue
        record = dict(record)
        if manual_start is not None:
            record["manualStart"] = max(1, int(manual_start))
        if duration is not None:
            record["duration"] = max(1, int(duration))
        updated.append(record)
    return updated


def clear_manual_start(records: List[Dict[str, Any]], activity_id: str) -> List[Dict[str, Any]]:
    return [
        {k: v for k, v in record.items() if k != "manualStart"} if record.get("id") == activity_id else record
        for record in records
    ]


def remove_activity(records: List[Dict[str, Any]], activity_id: str) -> List[Dict[str, Any]]:
    """Drop one activity; links pointing at it stay and are ignored when scheduling."""
    return [record for record in records if record.get("id") != activity_id]


def boq_items_from_dataframe(df: pd.DataFrame) -> List[BOQItem]:
    """Read BOQ lines from a table with description/quantity/unit[/section] columns."""
    columns = {str(c).strip().lower(): c for c in df.columns}
    items: List[BOQItem] = []
    for _, row in df.iterrows():
        description = _safe_str(row.get(columns.get("description")))
        quantity = pd.to_numeric(row.get(columns.get("quantity")), errors="coerce")
        if not description or _is_missing(quantity):
            continue
        section = _safe_str(row.get(columns.get("section"))) if "section" in columns else ""
        items.append(
            BOQItem(
                description=description,
                quantity=float(quantity),
                unit=_safe_str(row.get(columns.get("unit"))),
                section_name=section or None,
                work_type=section or None,
            )
        )
    return items
