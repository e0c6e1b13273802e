from collections import deque
from typing import List, Optional

from wikiwalk.graph import GraphStore


class DistanceOracle:
    """
    Seed-relative depths by breadth-first search over the adjacency index.

    Depths are recomputed from scratch on every refresh rather than patched
    incrementally. Walk graphs stay small enough for that to be cheap, and a
    full recompute cannot drift out of sync with the adjacency.
    """

    def __init__(self, store: GraphStore):
        self.store = store
        self.seed_id: Optional[str] = None
        self.max_finite_depth = 0

    def refresh_depths(self) -> None:
        if self.seed_id is None or self.seed_id not in self.store:
            return

        depths = {self.seed_id: 0}
        queue = deque([self.seed_id])
        while queue:
            current = queue.popleft()
            for neighbor in self.store.neighbors(current):
                if neighbor not in depths:
                    depths[neighbor] = depths[current] + 1
                    queue.append(neighbor)

        max_finite_depth = 0
        for node in self.store.nodes():
            node.depth = depths.get(node.id)
            if node.depth is not None and node.depth > max_finite_depth:
                max_finite_depth = node.depth
        self.max_finite_depth = max_finite_depth

    def find_path(self, node_id: str) -> Optional[List[str]]:
        """
        Shortest path from node_id to the seed as [node_id, ..., seed], or None if
        the node is not connected to the seed. Not limited to the walk stack.
        """
        if node_id not in self.store:
            return None
        if self.seed_id is None or node_id == self.seed_id:
            return [node_id]

        parents = {node_id: None}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            if current == self.seed_id:
                path = []
                step = current
                while step is not None:
                    path.append(step)
                    step = parents[step]
                path.reverse()
                return path
            for neighbor in self.store.neighbors(current):
                if neighbor not in parents:
                    parents[neighbor] = current
                    queue.append(neighbor)
        return None
