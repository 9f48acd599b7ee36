"""
Dependency Graph

Directed graph of work items built from explicit `dependencies` links plus
keyword-inferred implicit links. Cycles are allowed in the data; they are
reported by queries rather than rejected on insert.

Edges point from prerequisite to dependent: `a -> b` means b depends on a.

Cycle policy for ordering queries:
    Kahn's algorithm picks the earliest-inserted ready node. When no node is
    ready, every remaining node sits on or behind a cycle. The engine then
    releases one node of a cycle that no other remaining node feeds into
    (the earliest-inserted such node). Items downstream of a cycle still wait
    for it. The released node's unsatisfied in-edges are cycle edges; they
    are treated as back-edges and ignored by the critical path.

Usage:
    graph = DependencyGraph()
    graph.add_tasks(items)
    graph.detect_implicit_dependencies(0.5)

    analysis = graph.analyze()
    print(analysis.execution_order, analysis.critical_path)
"""

import heapq
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from planalytics.analysis.keywords import check_keyword_dependency, extract_item_keywords
from planalytics.domain.work_items import DependencyEdge, GraphAnalysis, WorkItem
from planalytics.platform.logging import get_logger

logger = get_logger(__name__)


def points_to_complexity(points: Optional[float]) -> int:
    """Map story points onto the 1-10 complexity scale (5 when unknown)."""
    if points is None:
        return 5
    if points <= 1:
        return 2
    if points <= 2:
        return 3
    if points <= 3:
        return 4
    if points <= 5:
        return 5
    if points <= 8:
        return 7
    if points <= 13:
        return 9
    return 10


class DependencyGraph:
    """
    Adjacency-map graph of work items.

    Provides:
    - Explicit and implicit (keyword-inferred) edges
    - Cycle detection
    - Topological order and parallel waves
    - Critical path
    """

    # Upper bound on reported elementary cycles; enumeration is exponential
    # on dense cyclic graphs.
    MAX_REPORTED_CYCLES = 500

    def __init__(self):
        self._tasks: Dict[str, WorkItem] = {}
        self._index: Dict[str, int] = {}
        self._successors: Dict[str, List[str]] = {}
        self._predecessors: Dict[str, List[str]] = {}
        self._edges: Dict[Tuple[str, str], DependencyEdge] = {}
        self._pending: Dict[str, List[str]] = {}
        self._implicit: List[DependencyEdge] = []
        self._keywords: Dict[str, List[str]] = {}

    # =========================================================================
    # Construction
    # =========================================================================

    def add_task(self, item: WorkItem) -> None:
        """
        Insert a node and its explicit edges.

        Dependencies on ids that are not in the graph yet are kept pending
        and become edges once that id is added.
        """
        if item.id not in self._tasks:
            self._index[item.id] = len(self._index)
            self._successors[item.id] = []
            self._predecessors[item.id] = []
        self._tasks[item.id] = item
        self._keywords.pop(item.id, None)

        for dep_id in item.dependencies:
            if dep_id in self._tasks:
                self._add_edge(dep_id, item.id)
            else:
                waiting = self._pending.setdefault(dep_id, [])
                if item.id not in waiting:
                    waiting.append(item.id)

        for dependent_id in self._pending.pop(item.id, []):
            self._add_edge(item.id, dependent_id)

    def add_tasks(self, items: Iterable[WorkItem]) -> None:
        for item in items:
            self.add_task(item)

    def _add_edge(
        self,
        from_id: str,
        to_id: str,
        confidence: float = 1.0,
        reasoning: str = "Explicitly defined",
        is_implicit: bool = False,
    ) -> Optional[DependencyEdge]:
        key = (from_id, to_id)
        if key in self._edges:
            return None
        edge = DependencyEdge(
            from_id=from_id,
            to_id=to_id,
            confidence=confidence,
            reasoning=reasoning,
            is_implicit=is_implicit,
        )
        self._edges[key] = edge
        self._successors[from_id].append(to_id)
        self._predecessors[to_id].append(from_id)
        return edge

    def _item_keywords(self, task_id: str) -> List[str]:
        if task_id not in self._keywords:
            self._keywords[task_id] = extract_item_keywords(self._tasks[task_id])
        return self._keywords[task_id]

    def detect_implicit_dependencies(self, confidence_threshold: float = 0.5) -> List[DependencyEdge]:
        """
        Infer edges between every ordered pair of unlinked items.

        Pairs already linked in either direction are skipped, so inference
        never adds the reverse of an existing edge.

        Args:
            confidence_threshold: Minimum keyword confidence to add an edge

        Returns:
            Newly added implicit edges
        """
        detected: List[DependencyEdge] = []
        ids = list(self._tasks)
        for a in ids:
            for b in ids:
                if a == b or (a, b) in self._edges or (b, a) in self._edges:
                    continue
                result = check_keyword_dependency(self._item_keywords(a), self._item_keywords(b))
                if result.likely and result.confidence >= confidence_threshold:
                    edge = self._add_edge(
                        a, b,
                        confidence=result.confidence,
                        reasoning=result.reason,
                        is_implicit=True,
                    )
                    if edge is not None:
                        detected.append(edge)

        self._implicit.extend(detected)
        logger.debug(
            "Implicit dependencies detected",
            node_count=len(ids),
            detected=len(detected),
            threshold=confidence_threshold,
        )
        return detected

    # =========================================================================
    # Accessors
    # =========================================================================

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def task_ids(self) -> List[str]:
        return list(self._tasks)

    def get_task(self, task_id: str) -> Optional[WorkItem]:
        return self._tasks.get(task_id)

    def get_edges(self) -> List[DependencyEdge]:
        return list(self._edges.values())

    def has_edge(self, from_id: str, to_id: str) -> bool:
        return (from_id, to_id) in self._edges

    def get_implicit_dependencies(self) -> List[DependencyEdge]:
        return list(self._implicit)

    def get_external_dependencies(self) -> Dict[str, List[str]]:
        """Referenced ids that were never added, mapped to the items waiting on them."""
        return {dep: list(waiting) for dep, waiting in self._pending.items()}

    def get_predecessors(self, task_id: str) -> List[str]:
        return list(self._predecessors.get(task_id, []))

    def get_successors(self, task_id: str) -> List[str]:
        return list(self._successors.get(task_id, []))

    def get_transitive_dependencies(self, task_id: str) -> List[str]:
        """All direct and indirect prerequisites of a task, prerequisites first."""
        if task_id not in self._tasks:
            return []

        ordered: List[str] = []
        visited: Set[str] = {task_id}
        stack: List[Tuple[str, bool]] = [(p, False) for p in reversed(self._predecessors[task_id])]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                ordered.append(node)
                continue
            if node in visited:
                continue
            visited.add(node)
            stack.append((node, True))
            for pred in reversed(self._predecessors[node]):
                if pred not in visited:
                    stack.append((pred, False))
        return ordered

    def get_orphan_tasks(self) -> List[str]:
        """Tasks with no incoming edges."""
        return [t for t in self._tasks if not self._predecessors[t]]

    def get_leaf_tasks(self) -> List[str]:
        """Tasks with no outgoing edges."""
        return [t for t in self._tasks if not self._successors[t]]

    # =========================================================================
    # Queries
    # =========================================================================

    def _strongly_connected(self, nodes: Set[str]) -> List[List[str]]:
        """Strongly connected components of the subgraph induced by `nodes` (Kosaraju)."""
        finished: List[str] = []
        seen: Set[str] = set()
        for root in self._tasks:
            if root not in nodes or root in seen:
                continue
            seen.add(root)
            stack = [(root, iter(self._successors[root]))]
            while stack:
                node, children = stack[-1]
                nxt = next((c for c in children if c in nodes and c not in seen), None)
                if nxt is None:
                    stack.pop()
                    finished.append(node)
                else:
                    seen.add(nxt)
                    stack.append((nxt, iter(self._successors[nxt])))

        components: List[List[str]] = []
        assigned: Set[str] = set()
        for root in reversed(finished):
            if root in assigned:
                continue
            assigned.add(root)
            component = []
            pending = [root]
            while pending:
                node = pending.pop()
                component.append(node)
                for pred in self._predecessors[node]:
                    if pred in nodes and pred not in assigned:
                        assigned.add(pred)
                        pending.append(pred)
            components.append(component)
        return components

    def _cycle_breaker(self, done: Set[str]) -> str:
        """
        Node to release when no remaining node is ready.

        Picks among cycles that no other unprocessed node feeds into, so an
        item downstream of a cycle is never released ahead of it. Ties go to
        the earliest-inserted node.
        """
        remaining = {t for t in self._tasks if t not in done}
        components = self._strongly_connected(remaining)
        component_of = {node: n for n, comp in enumerate(components) for node in comp}

        fed: Set[int] = set()
        for node in remaining:
            for pred in self._predecessors[node]:
                if pred in remaining and component_of[pred] != component_of[node]:
                    fed.add(component_of[node])

        heads = [
            min(comp, key=self._index.__getitem__)
            for n, comp in enumerate(components)
            if n not in fed
        ]
        return min(heads, key=self._index.__getitem__)

    def get_execution_order(self) -> List[str]:
        """
        Topological order, ties broken by insertion order.

        Never raises on cyclic graphs; see the module docstring for how
        cycles are broken.
        """
        in_degree = {t: len(self._predecessors[t]) for t in self._tasks}
        ready = [(self._index[t], t) for t in self._tasks if in_degree[t] == 0]
        heapq.heapify(ready)

        order: List[str] = []
        done: Set[str] = set()
        while len(order) < len(self._tasks):
            if not ready:
                forced = self._cycle_breaker(done)
                logger.debug("Breaking cycle in execution order", task_id=forced)
                heapq.heappush(ready, (self._index[forced], forced))

            _, node = heapq.heappop(ready)
            if node in done:
                continue
            done.add(node)
            order.append(node)

            for succ in self._successors[node]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0 and succ not in done:
                    heapq.heappush(ready, (self._index[succ], succ))
        return order

    def get_parallel_groups(self) -> List[List[str]]:
        """
        Partition nodes into waves.

        Wave 0 holds every orphan; wave k holds nodes whose prerequisites all
        sit in earlier waves. A node released to break a cycle forms its own
        wave.
        """
        in_degree = {t: len(self._predecessors[t]) for t in self._tasks}
        current = [t for t in self._tasks if in_degree[t] == 0]

        groups: List[List[str]] = []
        done: Set[str] = set()
        while len(done) < len(self._tasks):
            if not current:
                current = [self._cycle_breaker(done)]
            groups.append(current)
            done.update(current)

            following: Set[str] = set()
            for node in current:
                for succ in self._successors[node]:
                    in_degree[succ] -= 1
                    if in_degree[succ] == 0 and succ not in done:
                        following.add(succ)
            current = sorted(following, key=self._index.__getitem__)
        return groups

    def get_critical_path(self) -> List[str]:
        """
        Longest dependency chain by edge count.

        Ties pick the smallest node id. Returns an empty list when the graph
        has no edges outside of cycles.
        """
        order = self.get_execution_order()
        position = {t: i for i, t in enumerate(order)}
        distance = {t: 0 for t in order}
        previous: Dict[str, Optional[str]] = {t: None for t in order}

        for node in order:
            for pred in self._predecessors[node]:
                # back-edge from cycle breaking
                if position[pred] >= position[node]:
                    continue
                candidate = distance[pred] + 1
                if candidate > distance[node] or (
                    candidate == distance[node] and previous[node] is not None and pred < previous[node]
                ):
                    distance[node] = candidate
                    previous[node] = pred

        longest = max(distance.values(), default=0)
        if longest == 0:
            return []

        end = min(t for t, d in distance.items() if d == longest)
        path = [end]
        while previous[path[-1]] is not None:
            path.append(previous[path[-1]])
        path.reverse()
        return path

    def detect_cycles(self) -> List[List[str]]:
        """
        Enumerate elementary cycles.

        Each cycle is reported once, starting at its earliest-inserted node.
        Self-loops are single-node cycles. Returns an empty list for a DAG.
        """
        cycles: List[List[str]] = []
        for start in self._tasks:
            start_index = self._index[start]
            path = [start]
            on_path = {start}
            stack = [iter(self._successors[start])]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                if nxt == start:
                    cycles.append(list(path))
                    if len(cycles) >= self.MAX_REPORTED_CYCLES:
                        logger.warning("Cycle enumeration truncated", limit=self.MAX_REPORTED_CYCLES)
                        return cycles
                elif nxt not in on_path and self._index[nxt] > start_index:
                    path.append(nxt)
                    on_path.add(nxt)
                    stack.append(iter(self._successors[nxt]))
        return cycles

    def analyze(self) -> GraphAnalysis:
        """Run every query and bundle the results."""
        cycles = self.detect_cycles()
        if cycles:
            logger.warning("Dependency cycles detected", cycle_count=len(cycles))

        return GraphAnalysis(
            execution_order=self.get_execution_order(),
            critical_path=self.get_critical_path(),
            parallel_groups=self.get_parallel_groups(),
            cycles=cycles,
            orphan_tasks=self.get_orphan_tasks(),
            leaf_tasks=self.get_leaf_tasks(),
        )

    def export_for_visualization(self) -> Dict[str, List[Dict[str, Any]]]:
        nodes = [
            {
                "id": item.id,
                "label": item.title or item.id,
                "complexity": points_to_complexity(item.points),
            }
            for item in self._tasks.values()
        ]
        edges = [
            {
                "from": edge.from_id,
                "to": edge.to_id,
                "type": edge.type,
                "confidence": edge.confidence,
                "is_implicit": edge.is_implicit,
            }
            for edge in self._edges.values()
        ]
        return {"nodes": nodes, "edges": edges}


def build_item_graph(
    items: Iterable[WorkItem],
    implicit_threshold: float = 0.5,
    detect_implicit: bool = True,
) -> DependencyGraph:
    """Build a graph over items, optionally with implicit edges."""
    graph = DependencyGraph()
    graph.add_tasks(items)
    if detect_implicit:
        graph.detect_implicit_dependencies(implicit_threshold)
    return graph


def detect_implicit_dependencies(
    items: Iterable[WorkItem],
    confidence_threshold: float = 0.5,
) -> List[DependencyEdge]:
    """Implicit edges a fresh graph over `items` would infer."""
    graph = DependencyGraph()
    graph.add_tasks(items)
    return graph.detect_implicit_dependencies(confidence_threshold)
