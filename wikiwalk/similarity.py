"""
Similarity Linker: connects a newly created node to the existing nodes whose tag
sets overlap most with its own.

Every new tagged node is scored against every other tagged node, so the cost per
node grows linearly with the graph. That is fine for the hundreds to low
thousands of articles a walk reaches and is a known limit beyond that.
"""
import logging
from typing import AbstractSet, List, Tuple

from wikiwalk import config
from wikiwalk.graph import Edge, GraphStore, Node

logger = logging.getLogger(__name__)


def jaccard(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    """|A ∩ B| / |A ∪ B|, 0.0 when both sets are empty."""
    smaller, larger = (a, b) if len(a) < len(b) else (b, a)
    intersection = sum(1 for item in smaller if item in larger)
    union = len(a) + len(b) - intersection
    if not union:
        return 0.0
    return intersection / union


class SimilarityLinker:
    def __init__(self, store: GraphStore, neighbors: int = config.SIMILARITY_NEIGHBORS):
        self.store = store
        self.neighbors = neighbors

    def rank(self, node: Node) -> List[Tuple[Node, float]]:
        """
        Top candidates by descending score; ties keep creation order. Only nodes
        created before this one are scored, so a node registered in the same
        branch batch is linked from the later node, never the earlier one.
        """
        if not node.tags:
            return []
        scored = []
        for other in self.store.nodes():
            if other.order >= node.order or not other.tags:
                continue
            score = jaccard(node.tags, other.tags)
            if score > 0:
                scored.append((other, score))
        # sort is stable, so equal scores stay in creation order
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[: self.neighbors]

    def link(self, node: Node) -> List[Edge]:
        edges = []
        for other, score in self.rank(node):
            edge = self.store.upsert_similarity_edge(node.id, other.id, score)
            if edge is not None:
                edges.append(edge)
        if edges:
            logger.debug(f"Linked {node.id!r} to {len(edges)} similar nodes")
        return edges
