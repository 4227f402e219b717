from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .dependencies import derive_predecessors, normalize_dependencies
from .graph import DependencyGraph
from .models import Activity, Dependency, coerce_duration, coerce_manual_start

logger = logging.getLogger(__name__)

CycleHook = Callable[[List[str]], None]


def earliest_start_from_dependency(
    dependency: Dependency,
    predecessor_start: int,
    predecessor_finish: int,
    current_duration: int,
) -> int:
    lag = dependency.lag_days
    if dependency.relation_type == "SS":
        return predecessor_start + lag
    if dependency.relation_type == "FF":
        return predecessor_finish + lag - current_duration + 1
    if dependency.relation_type == "SF":
        return predecessor_start + lag - current_duration + 1
    return predecessor_finish + 1 + lag


def latest_start_bound_from_successor(
    dependency: Dependency,
    predecessor_duration: int,
    successor_late_start: int,
    successor_late_finish: int,
) -> int:
    lag = dependency.lag_days
    if dependency.relation_type == "SS":
        return successor_late_start - lag
    if dependency.relation_type == "FF":
        return successor_late_finish - lag - predecessor_duration + 1
    if dependency.relation_type == "SF":
        return successor_late_finish - lag
    return successor_late_start - lag - predecessor_duration


def free_float_against_successor(
    dependency: Dependency,
    activity_start: int,
    activity_finish: int,
    successor_start: int,
    successor_finish: int,
) -> int:
    lag = dependency.lag_days
    if dependency.relation_type == "SS":
        return successor_start - (activity_start + lag)
    if dependency.relation_type == "FF":
        return successor_finish - (activity_finish + lag)
    if dependency.relation_type == "SF":
        return successor_finish - (activity_start + lag)
    return successor_start - (activity_finish + 1 + lag)


@dataclass
class ScheduleResult:
    """Annotated activities from one scheduling run."""

    activities: List[Activity]
    project_duration: int
    calculation_log: List[str] = field(default_factory=list)
    critical_paths: List[List[str]] = field(default_factory=list)

    is_fallback = False

    @property
    def critical_path(self) -> List[str]:
        return self.critical_paths[0] if self.critical_paths else []


@dataclass
class AcyclicSchedule(ScheduleResult):
    pass


@dataclass
class CyclicFallback(ScheduleResult):
    """Sequential schedule used when the dependency graph has a cycle."""

    cycle_ids: List[str] = field(default_factory=list)

    is_fallback = True


def _prepare(activity: Union[Activity, Mapping[str, Any]], index: int) -> Activity:
    if isinstance(activity, Activity):
        act = activity.copy()
        act.duration = coerce_duration(act.duration)
        act.manual_start = coerce_manual_start(act.manual_start)
        act.dependencies = normalize_dependencies(act)
    else:
        # from_record already normalizes
        act = Activity.from_record(activity, index)

    act.dependencies = [dep for dep in act.dependencies if dep.activity_id != act.id]
    act.predecessors = derive_predecessors(act.dependencies)
    act.reset_calculations()
    return act


class CPMScheduler:
    """
    Critical Path Method scheduler over FS/SS/FF/SF links with lag.

    Days are 1-based and inclusive: an activity starting on day 1 with a
    duration of 3 ends on day 3. A dependency cycle does not raise; the
    activities are chained one after another in input order instead and the
    anomaly is reported through ``on_cycle`` and the module logger.
    """

    def __init__(self, on_cycle: Optional[CycleHook] = None):
        self.on_cycle = on_cycle
        self.activities: Dict[str, Activity] = {}
        self.graph: Optional[DependencyGraph] = None
        self.calculation_log: List[str] = []
        self.project_duration: int = 0
        self.critical_path: List[str] = []
        self.critical_paths: List[List[str]] = []
        self.last_result: Optional[ScheduleResult] = None

    def clear(self) -> None:
        """Clear all activities and calculations."""
        self.activities = {}
        self.graph = None
        self.calculation_log.clear()
        self.project_duration = 0
        self.critical_path = []
        self.critical_paths = []
        self.last_result = None

    def calculate(self, activities: Iterable[Union[Activity, Mapping[str, Any]]]) -> ScheduleResult:
        """
        Perform full CPM calculation on a batch of activities.

        The input is left untouched; the result holds annotated copies sorted
        by start day.
        """
        self.clear()
        prepared = [_prepare(act, idx) for idx, act in enumerate(activities or [])]
        if not prepared:
            self.last_result = AcyclicSchedule(activities=[], project_duration=0)
            return self.last_result

        self._log("=" * 70)
        self._log("CPM CALCULATION")
        self._log("=" * 70)

        self.graph = DependencyGraph(prepared)
        self.activities = self.graph.nodes
        order = self.graph.topological_order()

        if not self.graph.is_acyclic(order):
            result = self._sequential_fallback(prepared, self.graph.unresolved(order))
        else:
            early_start, early_finish = self._forward_pass(order)
            self.project_duration = max([1] + list(early_finish.values()))
            late_start = self._backward_pass(order)
            self._calculate_floats(prepared, early_start, early_finish, late_start)
            self.critical_paths = self._build_critical_paths()
            self.critical_path = self.critical_paths[0] if self.critical_paths else []
            result = AcyclicSchedule(
                activities=sorted(prepared, key=lambda a: a.start_day),
                project_duration=self.project_duration,
                critical_paths=self.critical_paths,
            )

        self._log("")
        self._log("=" * 70)
        self._log("CALCULATION COMPLETE")
        self._log(f"Project Duration: {self.project_duration} days")
        self._log("=" * 70)

        result.calculation_log = list(self.calculation_log)
        self.last_result = result
        return result

    def _log(self, message: str) -> None:
        self.calculation_log.append(message)

    def _sequential_fallback(self, prepared: List[Activity], cycle_ids: List[str]) -> CyclicFallback:
        self._log(f"ERROR: Circular dependency detected among: {', '.join(cycle_ids)}")
        self._log("Falling back to a sequential schedule in input order.")
        logger.warning(
            "Cycle detected in activity dependency graph (%s). Falling back to sequential schedule.",
            ", ".join(cycle_ids),
        )
        if self.on_cycle is not None:
            self.on_cycle(list(cycle_ids))

        current_day = 1
        for act in prepared:
            act.start_day = max(current_day, act.manual_start or 1)
            act.end_day = act.start_day + act.duration - 1
            act.late_start = act.start_day
            act.late_finish = act.end_day
            act.total_float = 0
            act.free_float = 0
            act.is_critical = True
            current_day = act.end_day + 1
            self._log(f"  {act.id}: day {act.start_day} -> {act.end_day}")

        self.project_duration = current_day - 1
        return CyclicFallback(
            activities=list(prepared),
            project_duration=self.project_duration,
            cycle_ids=list(cycle_ids),
        )

    def _forward_pass(self, order: List[str]) -> tuple:
        """Earliest start and finish for every activity, in topological order."""
        self._log("FORWARD PASS (earliest start / finish)")
        self._log("-" * 50)

        early_start: Dict[str, int] = {}
        early_finish: Dict[str, int] = {}

        for act_id in order:
            act = self.activities[act_id]
            start = act.manual_start or 1
            floor_label = "manual start" if act.manual_start else "project start"
            self._log(f"\n{act_id}: floor = {floor_label} = {start}")

            for dep in act.dependencies:
                if dep.activity_id not in early_start:
                    continue
                candidate = earliest_start_from_dependency(
                    dep,
                    early_start[dep.activity_id],
                    early_finish[dep.activity_id],
                    act.duration,
                )
                self._log(f"  From {dep}: start >= {candidate}")
                start = max(start, candidate)

            early_start[act_id] = start
            early_finish[act_id] = start + act.duration - 1
            act.start_day = start
            act.end_day = early_finish[act_id]
            self._log(f"  -> Start = {start}, Finish = {start} + {act.duration} - 1 = {act.end_day}")

        return early_start, early_finish

    def _backward_pass(self, order: List[str]) -> Dict[str, int]:
        """Latest start and finish, in reverse topological order."""
        self._log("\n\nBACKWARD PASS (latest start / finish)")
        self._log("-" * 50)

        late_start: Dict[str, int] = {}
        late_finish: Dict[str, int] = {}

        for act_id in reversed(order):
            act = self.activities[act_id]
            latest = self.project_duration - act.duration + 1
            self._log(f"\n{act_id}: tail bound = {self.project_duration} - {act.duration} + 1 = {latest}")

            for succ_id, dep in self.graph.successors_of(act_id):
                if succ_id not in late_start:
                    continue
                bound = latest_start_bound_from_successor(
                    dep, act.duration, late_start[succ_id], late_finish[succ_id]
                )
                self._log(f"  To {succ_id} ({dep.relation_type}, lag={dep.lag_days}): start <= {bound}")
                latest = min(latest, bound)

            latest = max(1, latest)
            late_start[act_id] = latest
            late_finish[act_id] = latest + act.duration - 1
            act.late_start = latest
            act.late_finish = late_finish[act_id]
            self._log(f"  -> Late Start = {latest}, Late Finish = {act.late_finish}")

        return late_start

    def _calculate_floats(
        self,
        prepared: List[Activity],
        early_start: Dict[str, int],
        early_finish: Dict[str, int],
        late_start: Dict[str, int],
    ) -> None:
        self._log("\n\nFLOAT CALCULATIONS")
        self._log("-" * 50)

        for act in prepared:
            start = early_start.get(act.id, 1)
            finish = early_finish.get(act.id, act.duration)
            act.start_day = start
            act.end_day = finish
            act.total_float = late_start.get(act.id, start) - start

            free_float = act.total_float
            relations = self.graph.successors_of(act.id)
            if relations:
                candidates = []
                for succ_id, dep in relations:
                    if succ_id not in early_start:
                        candidates.append(math.inf)
                        continue
                    candidates.append(
                        free_float_against_successor(
                            dep, start, finish, early_start[succ_id], early_finish[succ_id]
                        )
                    )
                finite = [value for value in candidates if math.isfinite(value)]
                if finite:
                    free_float = min(finite)
            act.free_float = free_float
            act.is_critical = act.total_float == 0

            self._log(
                f"{act.id}: TF = {act.late_start} - {start} = {act.total_float}, "
                f"FF = {act.free_float} -> {'CRITICAL' if act.is_critical else 'Not critical'}"
            )

    def _build_critical_paths(self) -> List[List[str]]:
        """Chains of critical activities linked by driving relations."""
        critical_set = {act_id for act_id, act in self.activities.items() if act.is_critical}
        if not critical_set:
            return []

        successors: Dict[str, List[str]] = defaultdict(list)
        incoming: Dict[str, int] = defaultdict(int)

        for succ_id in critical_set:
            succ = self.activities[succ_id]
            candidates: Dict[str, int] = {}
            for dep in self.graph.predecessors_of(succ_id):
                if dep.activity_id not in critical_set:
                    continue
                pred = self.activities[dep.activity_id]
                driving = earliest_start_from_dependency(dep, pred.start_day, pred.end_day, succ.duration)
                candidates[dep.activity_id] = max(driving, candidates.get(dep.activity_id, driving))
            if not candidates:
                continue

            drivers = [pred_id for pred_id, value in candidates.items() if value == succ.start_day]
            # Start held at its floor (day 1 or manual start): the strongest links still chain it
            if not drivers and succ.start_day == (succ.manual_start or 1):
                strongest = max(candidates.values())
                drivers = [pred_id for pred_id, value in candidates.items() if value == strongest]

            for pred_id in drivers:
                successors[pred_id].append(succ_id)
                incoming[succ_id] += 1

        for pred_id in successors:
            successors[pred_id].sort(key=lambda x: (self.activities[x].start_day, x))

        start_nodes = sorted(
            (nid for nid in critical_set if incoming[nid] == 0),
            key=lambda x: (self.activities[x].start_day, x),
        )
        paths: List[List[str]] = []

        def dfs(node: str, path: List[str]) -> None:
            new_path = path + [node]
            if not successors.get(node):
                paths.append(new_path)
                return
            for succ in successors[node]:
                dfs(succ, new_path)

        for start in start_nodes:
            dfs(start, [])

        self._log(f"\nCritical Paths Found: {len(paths)}")
        for idx, path in enumerate(paths, start=1):
            self._log(f"  {idx}. {' -> '.join(path)}")
        return paths

    def results_dataframe(self) -> pd.DataFrame:
        """Results of the last calculation as a pandas DataFrame."""
        rows = []
        activities = self.last_result.activities if self.last_result else []
        for act in activities:
            rows.append(
                {
                    "ID": act.id,
                    "Name": act.name,
                    "Duration": act.duration,
                    "Start": act.start_day,
                    "End": act.end_day,
                    "LS": act.late_start,
                    "LF": act.late_finish,
                    "TF": act.total_float,
                    "FF": act.free_float,
                    "Critical": "Yes" if act.is_critical else "No",
                }
            )
        return pd.DataFrame(
            rows,
            columns=["ID", "Name", "Duration", "Start", "End", "LS", "LF", "TF", "FF", "Critical"],
        )

    def activities_dataframe(self) -> pd.DataFrame:
        """Normalized input view of the last calculation."""
        rows = []
        for act in self.activities.values():
            rows.append(
                {
                    "ID": act.id,
                    "Name": act.name,
                    "Duration": act.duration,
                    "Manual Start": act.manual_start if act.manual_start is not None else "-",
                    "Predecessors": ";".join(str(dep) for dep in act.dependencies),
                    "Status": act.status,
                }
            )
        return pd.DataFrame(rows)


def compute_schedule(
    activities: Iterable[Union[Activity, Mapping[str, Any]]],
    on_cycle: Optional[CycleHook] = None,
) -> List[Activity]:
    """Annotated copies of ``activities`` sorted by computed start day."""
    return CPMScheduler(on_cycle=on_cycle).calculate(activities).activities
