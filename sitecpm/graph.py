from __future__ import annotations

from collections import defaultdict, deque
from typing import Dict, Iterable, List, Tuple

import networkx as nx

from .models import Activity, Dependency

SuccessorRelation = Tuple[str, Dependency]


class DependencyGraph:
    """
    Activity-on-node dependency graph keyed by activity id.

    Holds the node table, the successor adjacency (predecessor id ->
    [(successor id, dependency)]) and the in-degree of every node. Links to
    ids that are not part of the graph are left out.
    """

    def __init__(self, activities: Iterable[Activity]):
        self.activities: List[Activity] = list(activities)
        self.nodes: Dict[str, Activity] = {}
        self.successors: Dict[str, List[SuccessorRelation]] = defaultdict(list)
        self.in_degree: Dict[str, int] = {}

        for act in self.activities:
            self.nodes[act.id] = act
            self.in_degree.setdefault(act.id, 0)

        for act in self.activities:
            for dep in act.dependencies:
                if dep.activity_id not in self.nodes:
                    continue
                self.successors[dep.activity_id].append((act.id, dep))
                self.in_degree[act.id] += 1

    def __len__(self) -> int:
        return len(self.activities)

    def predecessors_of(self, act_id: str) -> List[Dependency]:
        act = self.nodes.get(act_id)
        if act is None:
            return []
        return [dep for dep in act.dependencies if dep.activity_id in self.nodes]

    def successors_of(self, act_id: str) -> List[SuccessorRelation]:
        return self.successors.get(act_id, [])

    def topological_order(self) -> List[str]:
        """Kahn's algorithm; nodes on or behind a cycle are left out."""
        in_degree = dict(self.in_degree)
        queue = deque([act_id for act_id, degree in in_degree.items() if degree == 0])
        order: List[str] = []

        while queue:
            node = queue.popleft()
            order.append(node)
            for succ_id, _ in self.successors.get(node, []):
                in_degree[succ_id] -= 1
                if in_degree[succ_id] == 0:
                    queue.append(succ_id)

        return order

    def is_acyclic(self, order: List[str]) -> bool:
        return len(order) == len(self.activities)

    def unresolved(self, order: List[str]) -> List[str]:
        """Ids that never reached in-degree zero."""
        resolved = set(order)
        return [act_id for act_id in self.nodes if act_id not in resolved]

    def to_networkx(self) -> nx.DiGraph:
        """Directed graph for drawing; parallel links share one edge with joined labels."""
        G = nx.DiGraph()
        for act_id, act in self.nodes.items():
            G.add_node(act_id, activity=act)
        for pred_id, relations in self.successors.items():
            for succ_id, dep in relations:
                lag_str = f"+{dep.lag_days}" if dep.lag_days >= 0 else str(dep.lag_days)
                label = f"{dep.relation_type}({lag_str})"
                if G.has_edge(pred_id, succ_id):
                    data = G.edges[pred_id, succ_id]
                    data["label"] = f"{data['label']} / {label}"
                    data["relations"].append(dep)
                    continue
                G.add_edge(
                    pred_id,
                    succ_id,
                    label=label,
                    rel_type=dep.relation_type,
                    lag=dep.lag_days,
                    relations=[dep],
                )
        return G
