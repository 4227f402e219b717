"""
BOQ-to-schedule generator.

Turns bill-of-quantities line items into a draft set of construction
activities: each line is classified into one of fifteen ordered work
categories, quantities are converted to the category's unit group, a
duration is estimated from productivity heuristics and the categories are
wired together from a fixed dependency rule table.

An optional refiner (any callable taking a prompt and returning text) may
rewrite the draft. Whatever comes back is sanitized; any failure, or no
refiner at all, yields the deterministic draft.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .dependencies import derive_predecessors, normalize_dependencies
from .models import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_NOT_STARTED, Activity, Dependency

logger = logging.getLogger(__name__)

Refiner = Callable[[str], str]


@dataclass
class BOQItem:
    """One bill-of-quantities line."""

    description: str
    quantity: float
    unit: str
    section_name: Optional[str] = None
    work_type: Optional[str] = None


@dataclass(frozen=True)
class CategoryDefinition:
    id: str
    name: str
    order: int
    unit_group: str  # area, volume, length, count, weight, lumpsum
    productivity_per_day: float
    min_duration_days: int
    keywords: tuple


@dataclass
class CategoryAggregate:
    category: CategoryDefinition
    quantity: float
    item_count: int
    sample_items: List[str] = field(default_factory=list)


CATEGORY_DEFINITIONS = [
    CategoryDefinition("site_preparation", "Site Preparation & Mobilization", 1, "count", 0.8, 2,
                       ("site clearing", "demolition", "mobilization", "layout", "barricad", "setting out", "survey")),
    CategoryDefinition("excavation", "Excavation", 2, "volume", 45, 2,
                       ("excavat", "earthwork", "trench", "pit", "cutting", "filling", "backfill")),
    CategoryDefinition("foundation", "Footing / Foundation", 3, "volume", 20, 3,
                       ("foundation", "footing", "raft", "pile cap", "plinth beam", "pcc", "rcc footing")),
    CategoryDefinition("rcc_columns", "RCC Columns & Vertical Members", 4, "volume", 14, 3,
                       ("column", "pedestal", "shear wall", "vertical member", "stair core")),
    CategoryDefinition("rcc_slab", "RCC Beams & Slabs", 5, "area", 75, 4,
                       ("slab", "beam", "lintel", "deck", "rcc roof", "sunken slab")),
    CategoryDefinition("masonry", "Masonry / Brickwork", 6, "area", 120, 4,
                       ("brickwork", "blockwork", "aac", "masonry", "partition wall")),
    CategoryDefinition("plumbing_rough_in", "Plumbing Rough-In", 7, "length", 140, 3,
                       ("plumbing", "cpvc", "upvc", "water supply", "drain", "sanitary line", "sewer")),
    CategoryDefinition("electrical_rough_in", "Electrical Rough-In", 8, "length", 180, 3,
                       ("electrical", "conduit", "wiring", "cable", "earthing", "switch box", "distribution board")),
    CategoryDefinition("plaster", "Plastering", 9, "area", 160, 4,
                       ("plaster", "render", "gypsum", "punning")),
    CategoryDefinition("waterproofing", "Waterproofing", 10, "area", 220, 2,
                       ("waterproof", "membrane", "damp proof", "chemical treatment")),
    CategoryDefinition("flooring", "Flooring & Tiling", 11, "area", 90, 3,
                       ("flooring", "tile", "vitrified", "granite", "marble", "screed", "paving tile")),
    CategoryDefinition("doors_windows", "Doors, Windows & Frames", 12, "count", 16, 2,
                       ("door", "window", "frame", "shutter", "aluminium", "upvc window", "glazing")),
    CategoryDefinition("painting", "Painting & Coatings", 13, "area", 260, 3,
                       ("paint", "primer", "putty", "distemper", "emulsion", "coating")),
    CategoryDefinition("finishing", "Final Finishing & Fixtures", 14, "count", 6, 3,
                       ("fixture", "sanitary fixture", "false ceiling", "joinery", "hardware", "handover", "snag")),
    CategoryDefinition("external", "External Development", 15, "area", 180, 2,
                       ("boundary", "landscape", "external drain", "road", "driveway", "compound", "storm water")),
]

CATEGORIES_BY_ID = {category.id: category for category in CATEGORY_DEFINITIONS}

# successor category -> [(predecessor category, type, lag)]
DEPENDENCY_RULES: Dict[str, List[tuple]] = {
    "excavation": [("site_preparation", "FS", 0)],
    "foundation": [("excavation", "FS", 0)],
    "rcc_columns": [("foundation", "SS", 2)],
    "rcc_slab": [("rcc_columns", "FS", 1)],
    "masonry": [("rcc_slab", "SS", 2)],
    "plumbing_rough_in": [("masonry", "SS", 2)],
    "electrical_rough_in": [("masonry", "SS", 2)],
    "plaster": [
        ("masonry", "FS", 1),
        ("plumbing_rough_in", "FS", 0),
        ("electrical_rough_in", "FS", 0),
    ],
    "waterproofing": [("plaster", "FS", 1)],
    "flooring": [("plaster", "FS", 2), ("waterproofing", "FS", 1)],
    "doors_windows": [("masonry", "SS", 2)],
    "painting": [
        ("plaster", "FS", 2),
        ("doors_windows", "FS", 0),
        ("electrical_rough_in", "FS", 0),
    ],
    "finishing": [
        ("flooring", "FS", 1),
        ("painting", "FS", 1),
        ("plumbing_rough_in", "FS", 0),
    ],
    "external": [("site_preparation", "SS", 5)],
}

AVAILABILITY_FACTOR = 0.85
DEFAULT_REFINED_DURATION = 3


def _normalize_text(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (value or "").lower()).strip()


def unit_group_from_unit(unit: str) -> str:
    u = _normalize_text(unit)
    if not u:
        return "count"
    if "m3" in u or "cum" in u or "cubic" in u or u in ("cft", "ft3"):
        return "volume"
    if "m2" in u or "sqm" in u or "sqft" in u or "ft2" in u or "square" in u:
        return "area"
    if "mtr" in u or u == "m" or "rm" in u or "rft" in u or "ft" in u:
        return "length"
    if "kg" in u or "ton" in u:
        return "weight"
    if "ls" in u or "lump" in u or "job" in u:
        return "lumpsum"
    return "count"


def convert_quantity(quantity: float, from_unit: str, to_group: str) -> float:
    """Convert a quantity into the unit group a category is measured in."""
    qty = quantity if math.isfinite(quantity) and quantity > 0 else 0
    if qty == 0:
        return 0
    unit = _normalize_text(from_unit)
    from_group = unit_group_from_unit(from_unit)

    if from_group == to_group:
        return qty

    if to_group == "area":
        if "sqft" in unit or "ft2" in unit:
            return qty * 0.092903
        if "m2" in unit or "sqm" in unit:
            return qty
        if from_group == "count":
            return qty * 3.5
        if from_group == "length":
            return qty * 0.3

    if to_group == "volume":
        if unit in ("cft", "ft3"):
            return qty * 0.0283168
        if "cum" in unit or "m3" in unit or "cubic" in unit:
            return qty
        if from_group == "area":
            return qty * 0.08
        if from_group == "count":
            return qty * 0.12

    if to_group == "length":
        if "rft" in unit or "ft" in unit:
            return qty * 0.3048
        if "mtr" in unit or unit == "m" or "rm" in unit:
            return qty
        if from_group == "count":
            return qty * 1.4

    if to_group == "weight":
        if "kg" in unit:
            return qty / 1000
        if "ton" in unit:
            return qty

    if to_group == "count":
        if from_group == "lumpsum":
            return 1
        if from_group == "area":
            return max(1, qty / 12)
        if from_group == "volume":
            return max(1, qty / 3)

    if to_group == "lumpsum":
        return 1

    return qty


def classify_item(item: BOQItem) -> Optional[CategoryDefinition]:
    haystack = f"{item.section_name or ''} {item.work_type or ''} {item.description or ''}".lower()
    for category in CATEGORY_DEFINITIONS:
        if any(keyword in haystack for keyword in category.keywords):
            return category
    return None


def estimate_duration_days(category: CategoryDefinition, quantity: float, item_count: int) -> int:
    safe_quantity = max(quantity, 1)
    crew_scale = min(2.3, 1 + math.log10(safe_quantity + 1) / 2.5)
    complexity_factor = min(1.4, 1 + item_count / 35)
    effective_productivity = (
        category.productivity_per_day * crew_scale * AVAILABILITY_FACTOR * complexity_factor
    )
    duration = math.ceil(safe_quantity / max(effective_productivity, 0.1))
    return max(category.min_duration_days, duration)


def filter_items(items: Optional[Sequence[Any]]) -> List[BOQItem]:
    """Drop lines without a description or a finite quantity."""
    safe: List[BOQItem] = []
    for item in items or []:
        if isinstance(item, Mapping):
            item = BOQItem(
                description=item.get("description"),
                quantity=item.get("quantity"),
                unit=item.get("unit") or "",
                section_name=item.get("sectionName"),
                work_type=item.get("workType"),
            )
        if not isinstance(item, BOQItem):
            continue
        if not isinstance(item.description, str) or not item.description.strip():
            continue
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, (int, float)):
            continue
        if not math.isfinite(item.quantity):
            continue
        safe.append(item)
    return safe


def build_deterministic_schedule(items: Sequence[BOQItem]) -> List[Activity]:
    aggregates: Dict[str, CategoryAggregate] = {}

    for item in items:
        category = classify_item(item)
        if category is None:
            continue
        qty = max(convert_quantity(item.quantity, item.unit, category.unit_group), 0)
        current = aggregates.get(category.id)
        if current is None:
            aggregates[category.id] = CategoryAggregate(
                category=category,
                quantity=qty,
                item_count=1,
                sample_items=[item.description] if item.description else [],
            )
            continue
        current.quantity += qty
        current.item_count += 1
        if len(current.sample_items) < 3 and item.description:
            current.sample_items.append(item.description)

    selected = sorted(aggregates.values(), key=lambda entry: entry.category.order)

    if not selected:
        return [
            Activity(
                id="A1",
                name="BOQ Scope Consolidation",
                duration=max(3, math.ceil(len(items) / 3)),
                notes="Unable to classify BOQ lines by work type; created a consolidated scope activity.",
            )
        ]

    selected_ids = {entry.category.id for entry in selected}
    if selected_ids & {"excavation", "foundation"} and "site_preparation" not in selected_ids:
        selected.insert(
            0,
            CategoryAggregate(
                category=CATEGORIES_BY_ID["site_preparation"],
                quantity=1,
                item_count=1,
                sample_items=["Auto-inserted mobilization before civil works"],
            ),
        )

    activity_id_by_category = {
        entry.category.id: f"A{idx + 1}" for idx, entry in enumerate(selected)
    }
    activities: List[Activity] = []
    for idx, entry in enumerate(selected):
        unit_label = "tasks" if entry.category.unit_group == "count" else entry.category.unit_group
        activities.append(
            Activity(
                id=f"A{idx + 1}",
                name=entry.category.name,
                duration=estimate_duration_days(entry.category, entry.quantity, entry.item_count),
                notes=(
                    f"Derived from {entry.item_count} BOQ line item(s), ~{entry.quantity:.2f} "
                    f"{unit_label}. Sample: {'; '.join(entry.sample_items)}"
                ),
            )
        )

    for idx, (activity, entry) in enumerate(zip(activities, selected)):
        dependencies = []
        for pred_category, rel_type, lag in DEPENDENCY_RULES.get(entry.category.id, []):
            pred_id = activity_id_by_category.get(pred_category)
            if pred_id is None or pred_id == activity.id:
                continue
            dependencies.append(Dependency(pred_id, rel_type, lag))

        if not dependencies and idx > 0:
            dependencies.append(Dependency(activities[idx - 1].id, "FS", 0))

        activity.dependencies = normalize_dependencies({"dependencies": dependencies})
        activity.predecessors = derive_predecessors(activity.dependencies)

    return activities


def strip_json_markdown(text: str) -> str:
    return re.sub(r"```json|```", "", text, flags=re.IGNORECASE).strip()


def parse_activities_from_text(text: str) -> Any:
    """Pull the JSON activity payload out of a model reply."""
    cleaned = strip_json_markdown(text)
    array_match = re.search(r"\[[\s\S]*\]", cleaned)
    object_match = re.search(r"\{[\s\S]*\}", cleaned)

    if array_match:
        return json.loads(array_match.group(0))
    if object_match:
        parsed = json.loads(object_match.group(0))
        if isinstance(parsed, dict) and isinstance(parsed.get("activities"), list):
            return parsed["activities"]
        return parsed

    raise ValueError("No valid JSON payload found in model response.")


def _positive_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def sanitize_activities(raw: Any, fallback: Sequence[Activity]) -> List[Activity]:
    """
    Coerce an untrusted activity list into schedulable activities.

    Missing ids, names and durations are filled from ``fallback`` by position;
    dependencies are normalized, and self references and links to unknown ids
    are dropped.
    """
    if isinstance(raw, Activity) or not isinstance(raw, (list, tuple)) or not raw:
        return [act.copy() for act in fallback]

    draft: List[Activity] = []
    for idx, entry in enumerate(raw):
        if isinstance(entry, Activity):
            entry = entry.to_record()
        record = entry if isinstance(entry, Mapping) else {}
        seed = fallback[idx] if idx < len(fallback) else None

        raw_id = record.get("id")
        act_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else f"A{idx + 1}"

        raw_duration = record.get("duration")
        if _positive_number(raw_duration):
            duration = math.ceil(raw_duration)
        else:
            duration = seed.duration if seed else DEFAULT_REFINED_DURATION

        raw_name = record.get("name")
        if isinstance(raw_name, str) and raw_name.strip():
            name = raw_name.strip()
        else:
            name = seed.name if seed else f"Activity {idx + 1}"

        status = record.get("status")
        if status not in (STATUS_IN_PROGRESS, STATUS_COMPLETED):
            status = STATUS_NOT_STARTED

        predecessors = record.get("predecessors")
        dependencies = [
            dep
            for dep in normalize_dependencies(
                {
                    "dependencies": record.get("dependencies"),
                    "predecessors": predecessors if isinstance(predecessors, list) else [],
                }
            )
            if dep.activity_id != act_id
        ]
        notes = record.get("notes")

        draft.append(
            Activity(
                id=act_id,
                name=name,
                duration=duration,
                dependencies=dependencies,
                predecessors=derive_predecessors(dependencies),
                status=status,
                notes=notes if isinstance(notes, str) else None,
            )
        )

    valid_ids = {act.id for act in draft}
    for act in draft:
        act.dependencies = [dep for dep in act.dependencies if dep.activity_id in valid_ids]
        act.predecessors = derive_predecessors(act.dependencies)

    return draft


def build_prompt(items: Sequence[BOQItem], seed_activities: Sequence[Activity], item_limit: int = 80) -> str:
    boq_context = "\n".join(
        f"- {item.description} | Qty: {item.quantity} {item.unit}"
        + (f" | Section: {item.section_name}" if item.section_name else "")
        for item in list(items)[:item_limit]
    )
    seed_context = "\n".join(
        f"- {act.id} {act.name} | duration={act.duration}d | "
        f"predecessors={','.join(act.predecessors) or 'none'}"
        for act in seed_activities
    )

    return f"""
You are a senior construction planner. Convert BOQ intelligence into an executable schedule.

Use these scheduling rules:
1. Activity sequence must follow practical construction logic.
2. Compute duration from quantity and realistic productivity assumptions (not fixed template durations).
3. Use dependency types: FS, SS, FF, SF with lagDays when useful.
4. Allow parallel work where practical (e.g., rough-ins in parallel after masonry starts).
5. Keep schedule practical for site execution and resource availability.
6. Return 6-20 activities.

BOQ line items:
{boq_context}

Draft schedule from deterministic engine:
{seed_context}

Return JSON only (array of activities):
[
  {{
    "id": "A1",
    "name": "Excavation",
    "duration": 5,
    "dependencies": [
      {{ "activityId": "A0", "type": "FS", "lagDays": 0 }}
    ],
    "status": "NOT_STARTED",
    "notes": "brief assumptions"
  }}
]
"""


class ScheduleGenerator:
    """
    Produces scheduler input from BOQ line items.

    ``refiner`` is optional; without one the generator always returns its
    deterministic draft.
    """

    def __init__(self, refiner: Optional[Refiner] = None, prompt_item_limit: int = 80):
        self.refiner = refiner
        self.prompt_item_limit = prompt_item_limit

    def draft(self, items: Sequence[Any]) -> List[Activity]:
        return build_deterministic_schedule(filter_items(items))

    def refine(self, items: Sequence[BOQItem], draft: List[Activity]) -> List[Activity]:
        if self.refiner is None:
            logger.debug("No schedule refiner configured; using deterministic draft.")
            return draft

        try:
            text = self.refiner(build_prompt(items, draft, self.prompt_item_limit))
            parsed = parse_activities_from_text(text or "")
            sanitized = sanitize_activities(parsed, draft)
        except Exception as exc:
            logger.warning("Schedule refinement failed, using deterministic draft: %s", exc)
            return draft

        return sanitized or draft

    def generate(self, items: Sequence[Any]) -> List[Activity]:
        safe_items = filter_items(items)
        draft = build_deterministic_schedule(safe_items)
        refined = self.refine(safe_items, draft)
        return sanitize_activities(refined, draft)
