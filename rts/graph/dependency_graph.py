"""Class-level dependency graph and transitive closure computation.

Provides DependencyGraph (directed graph of fully-qualified class names,
possibly cyclic) and the closure algorithm used for test selection: strongly
connected components are found with an iterative Tarjan traversal and each
component's closure is computed once, after all components it can reach.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

# Sentinel node: "reaches classes that static analysis cannot determine"
STAR_NODE = "*"

DependencyEdge = tuple[str, str]


class DependencyGraph:
    """Directed graph of class dependencies.

    An edge ``(source, target)`` means *source* statically depends on
    *target*. Cycles are allowed.
    """

    def __init__(self) -> None:
        self._successors: dict[str, set[str]] = {}

    @classmethod
    def from_edges(cls, edges: Iterable[DependencyEdge]) -> DependencyGraph:
        """Construct a graph from an iterable of edges."""
        graph = cls()
        for source, target in edges:
            graph.add_edge(source, target)
        return graph

    def add_node(self, name: str) -> None:
        self._successors.setdefault(name, set())

    def add_edge(self, source: str, target: str) -> None:
        self._successors.setdefault(source, set()).add(target)
        self._successors.setdefault(target, set())

    def __contains__(self, name: object) -> bool:
        return name in self._successors

    def __len__(self) -> int:
        return len(self._successors)

    @property
    def nodes(self) -> set[str]:
        """All node names."""
        return set(self._successors)

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._successors.values())

    def edges(self) -> list[DependencyEdge]:
        """All edges, sorted for deterministic output."""
        return sorted(
            (source, target)
            for source, targets in self._successors.items()
            for target in targets
        )

    def get_dependencies(self, name: str) -> list[str]:
        """Get the direct dependencies of a node (sorted).

        Args:
            name: Node name.

        Returns:
            List of target node names, or empty list for unknown nodes.
        """
        return sorted(self._successors.get(name, ()))

    def has_dependencies(self, name: str) -> bool:
        return bool(self._successors.get(name))

    def targets(self) -> set[str]:
        """Every node that is the target of at least one edge."""
        result: set[str] = set()
        for targets in self._successors.values():
            result |= targets
        return result

    def unreached(self, classes: Iterable[str]) -> set[str]:
        """Classes that are never the target of any edge in the graph."""
        return set(classes) - self.targets()

    def to_lines(self) -> list[str]:
        """Serialize as ``source -> target`` lines, sorted."""
        return [f"{source} -> {target}" for source, target in self.edges()]

    def _tarjan(self, starts: Iterable[str]) -> Iterator[list[str]]:
        """Yield strongly connected components reachable from *starts*.

        Components are yielded in reverse topological order: every
        component reachable from a yielded component has been yielded
        before it. Iterative, so deep dependency chains do not hit the
        recursion limit.
        """
        index: dict[str, int] = {}
        low: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        counter = 0

        for start in starts:
            if start in index:
                continue

            index[start] = low[start] = counter
            counter += 1
            stack.append(start)
            on_stack.add(start)
            work = [(start, iter(self.get_dependencies(start)))]

            while work:
                node, successors = work[-1]
                descended = False
                for succ in successors:
                    if succ not in index:
                        index[succ] = low[succ] = counter
                        counter += 1
                        stack.append(succ)
                        on_stack.add(succ)
                        work.append((succ, iter(self.get_dependencies(succ))))
                        descended = True
                        break
                    if succ in on_stack:
                        low[node] = min(low[node], index[succ])
                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])

                if low[node] == index[node]:
                    members: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        members.append(member)
                        if member == node:
                            break
                    yield sorted(members)

    def strongly_connected_components(self) -> list[list[str]]:
        """All strongly connected components, sinks first."""
        return list(self._tarjan(sorted(self._successors)))

    def transitive_closures(
        self,
        roots: Iterable[str],
        is_unresolved: Callable[[str], bool] | None = None,
    ) -> dict[str, frozenset[str]]:
        """Compute the closure of every root.

        The closure of a node is the node itself plus every node reachable
        from it. Members of a cycle share one closure. A node for which
        *is_unresolved* returns True adds STAR_NODE to the closures of all
        of its ancestors.

        Args:
            roots: Classes to compute closures for. Roots absent from the
                graph get a closure containing only themselves.
            is_unresolved: Predicate marking nodes whose dependencies are
                unknown.

        Returns:
            Mapping of every root to its closure.
        """
        root_list = sorted(set(roots))
        component_of: dict[str, int] = {}
        component_closures: list[frozenset[str]] = []

        for root in root_list:
            self.add_node(root)

        for members in self._tarjan(root_list):
            component_id = len(component_closures)
            for member in members:
                component_of[member] = component_id

            closure: set[str] = set(members)
            for member in members:
                if is_unresolved is not None and is_unresolved(member):
                    closure.add(STAR_NODE)
                for succ in self._successors[member]:
                    succ_component = component_of[succ]
                    if succ_component != component_id:
                        closure |= component_closures[succ_component]
            component_closures.append(frozenset(closure))

        return {
            root: component_closures[component_of[root]] for root in root_list
        }
