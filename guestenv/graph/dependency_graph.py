"""Generic dependency graph with deterministic wave-based build ordering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, TypeVar

NodeValueT = TypeVar("NodeValueT")


class DuplicateNodeNameError(ValueError):
    """Two graph values map to the same node name.

    Attributes:
        node_name: Duplicated name.
    """

    def __init__(self, node_name: str):
        super().__init__(f"duplicate node name: {node_name}")
        self.node_name = node_name


class CircularDependencyError(ValueError):
    """Build order cannot make progress because of a cycle or a dangling dependency.

    Attributes:
        stuck_node_names: Sorted names of the nodes that could not be ordered.
    """

    def __init__(self, stuck_node_names: Iterable[str]):
        self.stuck_node_names = tuple(sorted(stuck_node_names))
        super().__init__(
            "circular or unresolvable dependencies detected for: " + ", ".join(self.stuck_node_names)
        )


@dataclass
class DependencyNode(Generic[NodeValueT]):
    """One named graph node.

    Attributes:
        name: Unique node name.
        value: Node value; None for placeholders.
        dependencies: Nodes this node depends on.
        declared: Whether the node was declared with a value, `None` included.
    """

    name: str
    value: NodeValueT | None = None
    dependencies: list["DependencyNode[NodeValueT]"] = field(default_factory=list)
    declared: bool = False

    def node_is_placeholder(self) -> bool:
        """Return whether this node was referenced but never declared.

        Returns:
            bool: True when no value was supplied for the node.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return not self.declared


class DependencyGraph(Generic[NodeValueT]):
    """Named node graph supporting deterministic topological ordering."""

    def __init__(self, nodes: dict[str, DependencyNode[NodeValueT]]):
        """Initialize graph from already-linked nodes.

        Args:
            nodes: Name to node mapping.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when nodes is None.
        """

        if nodes is None:
            raise ValueError("nodes must not be None")
        self._nodes = nodes

    @property
    def nodes(self) -> dict[str, DependencyNode[NodeValueT]]:
        return dict(self._nodes)

    def graph_build_waves(self) -> list[list[NodeValueT]]:
        """Group node values into waves that can be built concurrently.

        Each wave holds every remaining declared node whose dependencies were
        emitted by earlier waves, ordered by ascending name.

        Returns:
            list[list[NodeValueT]]: Ordered build waves.

        Raises:
            CircularDependencyError: Raised when unprocessed nodes remain.
        """

        unprocessed = dict(self._nodes)
        waves: list[list[NodeValueT]] = []

        while True:
            selectable = sorted(
                (
                    node
                    for node in unprocessed.values()
                    if not node.node_is_placeholder()
                    and not any(dependency.name in unprocessed for dependency in node.dependencies)
                ),
                key=lambda node: node.name,
            )
            if not selectable:
                break

            waves.append([node.value for node in selectable])
            for node in selectable:
                del unprocessed[node.name]

        if unprocessed:
            raise CircularDependencyError(unprocessed.keys())
        return waves

    def graph_build_order(self) -> list[NodeValueT]:
        """Return every declared value so dependencies precede dependents.

        Returns:
            list[NodeValueT]: Flattened build waves.

        Raises:
            CircularDependencyError: Raised when a cycle or dangling dependency exists.
        """

        return [value for wave in self.graph_build_waves() for value in wave]


def graph_build(
    values: Iterable[NodeValueT],
    name_of: Callable[[NodeValueT], str],
    dependencies_of: Callable[[NodeValueT], Iterable[str]],
) -> DependencyGraph[NodeValueT]:
    """Build a dependency graph from values and name extraction functions.

    Cycles are not detected here; they surface from build ordering.

    Args:
        values: Node values.
        name_of: Extracts the unique node name of one value.
        dependencies_of: Extracts the dependency names of one value.

    Returns:
        DependencyGraph[NodeValueT]: Linked graph including placeholder nodes.

    Raises:
        DuplicateNodeNameError: Raised when two values share a name.
    """

    nodes: dict[str, DependencyNode[NodeValueT]] = {}

    for value in values:
        name = name_of(value)
        dependency_names = list(dependencies_of(value))

        for dependency_name in dependency_names:
            nodes.setdefault(dependency_name, DependencyNode(name=dependency_name))

        node = nodes.setdefault(name, DependencyNode(name=name))
        if not node.node_is_placeholder():
            raise DuplicateNodeNameError(name)

        node.value = value
        node.declared = True
        node.dependencies = [nodes[dependency_name] for dependency_name in dependency_names]

    return DependencyGraph(nodes)
