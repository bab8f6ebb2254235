# graph.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .model import GroupStep, Pipeline, Step, WaitStep

EXPLICIT = "explicit"
IMPLICIT_WAIT = "implicit-wait"

# layout grid (pixels) for visualisation consumers
LAYOUT_MARGIN = 100
NODE_SPACING = 150
LEVEL_HEIGHT = 120

# rough per-type durations (minutes) for the timeline estimate
BASE_DURATIONS = {
    "command": 5.0,
    "block": 1.0,
    "wait": 1.0,
    "input": 1.0,
    "trigger": 2.0,
    "group": 10.0,
}
DEFAULT_DURATION = 5.0


class GraphError(ValueError):
    """Raised when the graph cannot be ordered."""
    pass


@dataclass(frozen=True)
class LayoutEdge:
    source: str
    target: str
    kind: str = EXPLICIT


@dataclass(frozen=True)
class Cycle:
    """Node path of a dependency cycle; first and last entries are the same node."""
    path: Tuple[str, ...]

    @property
    def nodes(self) -> List[str]:
        return list(self.path[:-1])

    def __str__(self) -> str:
        return " → ".join(self.path)


@dataclass(frozen=True)
class LayoutNode:
    node_id: str
    step_id: str
    label: str
    type: str
    level: int
    position: int
    x: int
    y: int


@dataclass(frozen=True)
class Layout:
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[LayoutEdge] = field(default_factory=list)
    levels: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [
                {
                    "id": n.node_id,
                    "step_id": n.step_id,
                    "label": n.label,
                    "type": n.type,
                    "level": n.level,
                    "position": n.position,
                    "x": n.x,
                    "y": n.y,
                }
                for n in self.nodes
            ],
            "edges": [{"source": e.source, "target": e.target, "kind": e.kind} for e in self.edges],
            "levels": [list(level) for level in self.levels],
        }

    def to_dot(self) -> str:
        """Graphviz DOT text; implicit wait edges are dashed."""
        lines = ["digraph pipeline {", "  rankdir=TB;"]
        for n in self.nodes:
            shape = _DOT_SHAPES.get(n.type, "box")
            lines.append(f"  {_dot_id(n.node_id)} [label={_dot_id(n.label)}, shape={shape}];")
        for e in self.edges:
            style = " [style=dashed]" if e.kind == IMPLICIT_WAIT else ""
            lines.append(f"  {_dot_id(e.source)} -> {_dot_id(e.target)}{style};")
        lines.append("}")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class TimelineEntry:
    node_id: str
    step_id: str
    label: str
    level: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class Timeline:
    """Estimated start/end minutes per node; a level starts when the slowest step of the previous one ends."""
    entries: List[TimelineEntry] = field(default_factory=list)

    @property
    def total_minutes(self) -> float:
        return max((e.end for e in self.entries), default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_minutes": self.total_minutes,
            "entries": [
                {
                    "id": e.node_id,
                    "step_id": e.step_id,
                    "label": e.label,
                    "level": e.level,
                    "start": e.start,
                    "end": e.end,
                }
                for e in self.entries
            ],
        }


def estimate_duration(step: Step) -> float:
    """
    Minutes a step is expected to take, from its type.
    Parallel jobs halve it; a retry policy adds half again.
    """
    minutes = BASE_DURATIONS.get(step.type.value, DEFAULT_DURATION)
    parallelism = getattr(step, "parallelism", None)
    if isinstance(parallelism, int) and not isinstance(parallelism, bool) and parallelism > 1:
        minutes /= 2
    if getattr(step, "retry", None) is not None:
        minutes *= 1.5
    return minutes


_DOT_SHAPES = {
    "wait": "circle",
    "block": "octagon",
    "input": "parallelogram",
    "trigger": "cds",
    "group": "folder",
    "annotation": "note",
    "notify": "note",
}


def _dot_id(text: str) -> str:
    return '"' + str(text).replace("\\", "\\\\").replace('"', '\\"') + '"'


class DependencyGraph:
    """
    Steps as nodes, derived dependencies as edges.

    A node is named by the step's `key` when it has one (and the key is not
    already taken), otherwise by its `id`. Edges point from the dependency to
    the dependent step:

      - explicit:      dep_key -> step, one per resolvable depends_on entry
      - implicit-wait: every step of the segment before a wait -> the wait,
                       and the wait -> every step of the segment after it.
                       A wait only affects the sequence it lives in.
    """

    def __init__(self) -> None:
        self.order: List[str] = []
        self.steps: Dict[str, Step] = {}
        self.edges: List[LayoutEdge] = []
        self.deps: Dict[str, List[str]] = {}
        self.dependents: Dict[str, List[str]] = {}
        self._node_by_key: Dict[str, str] = {}
        self._unresolved: List[Tuple[Step, str]] = []
        self._edge_set: Set[Tuple[str, str]] = set()

    # -- construction --------------------------------------------------

    @classmethod
    def from_pipeline(cls, pipeline: Pipeline) -> DependencyGraph:
        graph = cls()
        sequences: List[List[Tuple[Step, str]]] = []
        graph._add_sequence(pipeline.steps, sequences)

        for target in graph.order:
            step = graph.steps[target]
            for dep in step.depends_on:
                source = graph._node_by_key.get(dep)
                if source is None:
                    graph._unresolved.append((step, dep))
                    continue
                graph._add_edge(source, target, EXPLICIT)

        for sequence in sequences:
            graph._add_wait_edges(sequence)
        return graph

    def _add_sequence(self, steps: Sequence[Step], out: List[List[Tuple[Step, str]]]) -> None:
        # nodes are created in walk order; every sequence keeps its own (step, node) pairs
        sequence: List[Tuple[Step, str]] = []
        out.append(sequence)
        for step in steps:
            sequence.append((step, self._add_node(step)))
            if isinstance(step, GroupStep):
                self._add_sequence(step.steps, out)

    def _add_node(self, step: Step) -> str:
        node = step.key if step.key and step.key not in self.steps else step.id
        if node in self.steps:
            node = f"{step.id}~{len(self.order)}"
        self.order.append(node)
        self.steps[node] = step
        self.deps[node] = []
        self.dependents[node] = []
        if step.key and step.key not in self._node_by_key:
            self._node_by_key[step.key] = node
        return node

    def _add_edge(self, source: str, target: str, kind: str) -> None:
        if (source, target) in self._edge_set:
            return
        self._edge_set.add((source, target))
        self.edges.append(LayoutEdge(source=source, target=target, kind=kind))
        self.deps[target].append(source)
        self.dependents[source].append(target)

    def _add_wait_edges(self, sequence: Sequence[Tuple[Step, str]]) -> None:
        segment: List[str] = []
        barrier: Optional[str] = None
        for step, node in sequence:
            if isinstance(step, WaitStep):
                for before in segment:
                    self._add_edge(before, node, IMPLICIT_WAIT)
                barrier = node
                segment = [node]
                continue
            if barrier is not None:
                self._add_edge(barrier, node, IMPLICIT_WAIT)
            segment.append(node)

    # -- lookups -------------------------------------------------------

    @property
    def nodes(self) -> List[str]:
        return list(self.order)

    def resolve(self, key: str) -> Optional[str]:
        return self._node_by_key.get(key)

    def unresolved(self) -> List[Tuple[Step, str]]:
        """(step, missing key) for every depends_on entry that names no step key."""
        return list(self._unresolved)

    def edges_of_kind(self, kind: str) -> List[LayoutEdge]:
        return [e for e in self.edges if e.kind == kind]

    # -- analysis ------------------------------------------------------

    def detect_cycles(self) -> List[Cycle]:
        """
        Depth-first search along dependency edges with a recursion stack.
        Each back edge found is one cycle. Every node is expanded once.
        """
        visited: Set[str] = set()
        on_stack: Set[str] = set()
        path: List[str] = []
        cycles: List[Cycle] = []

        def visit(node: str) -> None:
            visited.add(node)
            on_stack.add(node)
            path.append(node)
            for dep in self.deps[node]:
                if dep in on_stack:
                    start = path.index(dep)
                    cycles.append(Cycle(path=tuple(path[start:]) + (dep,)))
                elif dep not in visited:
                    visit(dep)
            path.pop()
            on_stack.discard(node)

        for node in self.order:
            if node not in visited:
                visit(node)
        return cycles

    def compute_levels(self) -> Dict[str, int]:
        """
        Level 0 for nodes without dependencies, otherwise 1 + max(level(dep)).

        Kahn's algorithm; nodes that never become ready (on or behind a
        cycle) stay at level 0. Cycle reporting is detect_cycles()' job.
        """
        indeg = {n: len(self.deps[n]) for n in self.order}
        level = {n: 0 for n in self.order}
        q = deque(n for n in self.order if indeg[n] == 0)
        done: Set[str] = set()

        while q:
            node = q.popleft()
            done.add(node)
            for child in self.dependents[node]:
                level[child] = max(level[child], level[node] + 1)
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

        for node in self.order:
            if node not in done:
                level[node] = 0
        return level

    def topological_order(self) -> List[List[str]]:
        """
        Group nodes into stages that can run together, in pipeline order.

        Raises:
            GraphError: when a cycle leaves nodes that can never run
        """
        indeg = {n: len(self.deps[n]) for n in self.order}
        position = {n: i for i, n in enumerate(self.order)}
        q = deque(n for n in self.order if indeg[n] == 0)

        levels: List[List[str]] = []
        processed = 0

        while q:
            level_size = len(q)
            level: List[str] = []
            ready: List[str] = []

            for _ in range(level_size):
                node = q.popleft()
                level.append(node)
                processed += 1

                for child in self.dependents[node]:
                    indeg[child] -= 1
                    if indeg[child] == 0:
                        ready.append(child)

            q.extend(sorted(ready, key=position.__getitem__))
            levels.append(level)

        if processed != len(indeg):
            remaining = [n for n in self.order if indeg[n] > 0]
            raise GraphError(f"Pipeline has a dependency cycle. Stuck steps: {remaining}")

        return levels

    def layout(self) -> Layout:
        """One bucket per level, pipeline order within a bucket."""
        levels = self.compute_levels()
        buckets: List[List[str]] = []
        for node in self.order:
            lvl = levels[node]
            while len(buckets) <= lvl:
                buckets.append([])
            buckets[lvl].append(node)

        nodes: List[LayoutNode] = []
        for lvl, bucket in enumerate(buckets):
            for pos, node in enumerate(bucket):
                step = self.steps[node]
                nodes.append(
                    LayoutNode(
                        node_id=node,
                        step_id=step.id,
                        label=step.display_name,
                        type=step.type.value,
                        level=lvl,
                        position=pos,
                        x=LAYOUT_MARGIN + pos * NODE_SPACING,
                        y=LAYOUT_MARGIN + lvl * LEVEL_HEIGHT,
                    )
                )
        return Layout(nodes=nodes, edges=list(self.edges), levels=buckets)

    def timeline(self) -> Timeline:
        """
        Estimated schedule over the dependency levels.

        Every node of a level starts together. Nodes on or behind a cycle
        sit at level 0, like in the layout.
        """
        levels = self.compute_levels()
        by_level: Dict[int, List[str]] = {}
        for node in self.order:
            by_level.setdefault(levels[node], []).append(node)

        entries: List[TimelineEntry] = []
        clock = 0.0
        for lvl in sorted(by_level):
            slowest = 0.0
            for node in by_level[lvl]:
                step = self.steps[node]
                minutes = estimate_duration(step)
                entries.append(
                    TimelineEntry(
                        node_id=node,
                        step_id=step.id,
                        label=step.label or step.type.value,
                        level=lvl,
                        start=clock,
                        end=clock + minutes,
                    )
                )
                slowest = max(slowest, minutes)
            clock += slowest
        return Timeline(entries=entries)


def build_graph(pipeline: Pipeline) -> DependencyGraph:
    return DependencyGraph.from_pipeline(pipeline)


def layout_pipeline(pipeline: Pipeline) -> Layout:
    return DependencyGraph.from_pipeline(pipeline).layout()
