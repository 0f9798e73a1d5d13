import logging
from typing import Dict, Iterator, List

from formsapi.engine.errors import CircularDependencyError, UnknownNodeError

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed graph over field ids. An edge `a -> b` means `a` depends on `b`.

    Traversals use an explicit stack so long dependency chains do not hit the
    interpreter recursion limit. Roots are visited in node insertion order,
    which makes both the reported cycle and the topological order
    deterministic for a given field list.
    """

    def __init__(self):
        self._adjacency: Dict[str, List[str]] = {}

    def add_node(self, node: str) -> None:
        self._adjacency.setdefault(node, [])

    def add_edge(self, source: str, destination: str) -> None:
        if source not in self._adjacency:
            raise UnknownNodeError(source)
        if destination not in self._adjacency:
            raise UnknownNodeError(destination)
        self._adjacency[source].append(destination)

    @property
    def nodes(self) -> List[str]:
        return list(self._adjacency)

    def neighbors(self, node: str) -> List[str]:
        if node not in self._adjacency:
            raise UnknownNodeError(node)
        return list(self._adjacency[node])

    def __contains__(self, node: str) -> bool:
        return node in self._adjacency

    def __len__(self) -> int:
        return len(self._adjacency)

    def find_cycle(self) -> List[str]:
        """Return the first cycle found as `[start, ..., start]`, or `[]`."""
        visited = set()
        for root in self._adjacency:
            if root in visited:
                continue
            path: List[str] = [root]
            on_path = {root}
            visited.add(root)
            pending: List[Iterator[str]] = [iter(self._adjacency[root])]

            while pending:
                node = next(pending[-1], None)
                if node is None:
                    pending.pop()
                    on_path.discard(path.pop())
                    continue
                if node in on_path:
                    cycle = path[path.index(node):] + [node]
                    logger.debug(f"Cycle detected: {cycle}")
                    return cycle
                if node in visited:
                    continue
                visited.add(node)
                path.append(node)
                on_path.add(node)
                pending.append(iter(self._adjacency[node]))
        return []

    def topological_order(self) -> List[str]:
        """Order nodes so that every node comes after the nodes it depends on.

        Nodes with no edges between them keep their insertion order.
        """
        order: List[str] = []
        done = set()
        for root in self._adjacency:
            if root in done:
                continue
            path: List[str] = [root]
            on_path = {root}
            pending: List[Iterator[str]] = [iter(self._adjacency[root])]

            while pending:
                node = next(pending[-1], None)
                if node is None:
                    pending.pop()
                    finished = path.pop()
                    on_path.discard(finished)
                    done.add(finished)
                    order.append(finished)
                    continue
                if node in on_path:
                    cycle = path[path.index(node):] + [node]
                    raise CircularDependencyError(node, cycle)
                if node in done:
                    continue
                path.append(node)
                on_path.add(node)
                pending.append(iter(self._adjacency[node]))
        return order
