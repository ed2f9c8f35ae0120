"""Dependency graph with deterministic topological ordering."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Generic, TypeVar

from hubpack.errors import PackagerError

TNode = TypeVar("TNode")


class DependencyGraph(Generic[TNode]):
    """Directed acyclic graph of nodes keyed by a string.

    Nodes are kept in insertion order; adding a key twice keeps the first node.
    Edges point from a node to the nodes it depends on. Edges to keys that are
    never added are ignored when ordering.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, TNode] = {}
        self._edges: dict[str, list[str]] = {}

    def add(self, key: str, node: TNode, dependencies: Iterable[str] = ()) -> bool:
        """Add a node.

        Args:
            key: Unique key of the node.
            node: Node value.
            dependencies: Keys of the nodes this node depends on.

        Returns:
            True if the node was added, False if the key was already present.
        """
        if key in self._nodes:
            return False
        self._nodes[key] = node
        self._edges[key] = list(dict.fromkeys(dependencies))
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, key: str) -> TNode:
        """Get a node by key."""
        return self._nodes[key]

    def dependencies(self, key: str) -> list[str]:
        """Keys of the known direct dependencies of a node."""
        return [dep for dep in self._edges[key] if dep in self._nodes]

    def topological_order(self) -> list[TNode]:
        """Order nodes so that every node follows all of its dependencies.

        Ties are broken by insertion order, so the result is deterministic.

        Returns:
            Nodes in dependency-first order.

        Raises:
            PackagerError: If the graph contains a cycle.
        """
        ordered: list[TNode] = []
        done: set[str] = set()
        visiting: list[str] = []

        def visit(key: str) -> None:
            if key in done:
                return
            if key in visiting:
                cycle = visiting[visiting.index(key) :] + [key]
                raise PackagerError.expectation_failed(
                    f"Cyclic dependency detected: {' -> '.join(cycle)}"
                )
            visiting.append(key)
            for dep in self.dependencies(key):
                visit(dep)
            visiting.pop()
            done.add(key)
            ordered.append(self._nodes[key])

        for key in self._nodes:
            visit(key)

        return ordered
