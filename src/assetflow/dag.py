# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, List, Mapping, Set, Tuple

from .errors import ConfigurationError
from .model import Composite, Task


def build_dag(
    tasks: Mapping[str, Task],
    composites: Mapping[str, Composite],
) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build the reference graph between tasks and composites.

    An edge `a -> b` means `a` has to finish before `b` can complete:
      - every composite member points at its composite
      - every entry of task.needs points at the task
    """
    clash = sorted(set(tasks) & set(composites))
    if clash:
        raise ConfigurationError(f"Names used for both a task and a composite: {clash}")

    known = set(tasks) | set(composites)
    adj: Dict[str, Set[str]] = {n: set() for n in known}
    indeg: Dict[str, int] = {n: 0 for n in known}

    def _edge(dep: str, owner: str, kind: str) -> None:
        if dep not in known:
            raise ConfigurationError(
                f"{kind} '{owner}' references unknown task '{dep}'. "
                f"Known names: {sorted(known)}"
            )
        if owner not in adj[dep]:
            adj[dep].add(owner)
            indeg[owner] += 1

    for comp in composites.values():
        if not comp.members:
            raise ConfigurationError(f"Composite '{comp.name}' has no members")
        for member in comp.members:
            _edge(member, comp.name, comp.mode.capitalize())

    for task in tasks.values():
        for need in task.needs:
            _edge(need, task.name, "Task")

    return adj, indeg


def topo_levels(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[List[str]]:
    """
    Convert the graph into topological levels.
    Raises ConfigurationError when a cycle leaves nodes unprocessed.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    q = deque(sorted(n for n, d in indeg.items() if d == 0))

    levels: List[List[str]] = []
    processed = 0

    while q:
        level: List[str] = []
        for _ in range(len(q)):
            node = q.popleft()
            level.append(node)
            processed += 1
            for child in sorted(adj.get(node, set())):
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)
        levels.append(level)

    if processed != len(indeg):
        remaining = sorted(n for n, d in indeg.items() if d > 0)
        raise ConfigurationError(f"Task graph has a cycle. Stuck names: {remaining}")

    return levels


def validate_graph(tasks: Mapping[str, Task], composites: Mapping[str, Composite]) -> List[List[str]]:
    adj, indeg = build_dag(tasks, composites)
    return topo_levels(adj, indeg)
