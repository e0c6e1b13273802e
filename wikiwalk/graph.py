"""
Graph Store: the authoritative node/edge registry and the adjacency index.

Nodes are created lazily from the Link Source and never removed. Edges are keyed
by (unordered pair, kind) so that a walk edge and a similarity edge between the
same two articles are separate records. Adjacency is derived from both kinds.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol, Set, Tuple
from urllib.parse import quote

from wikiwalk import config
from wikiwalk.errors import FetchError
from wikiwalk.titles import canon, pretty
from wikiwalk.wikipedia import Summary

logger = logging.getLogger(__name__)


class LinkSource(Protocol):
    def resolve_tags(self, title: str) -> Set[str]: ...

    def resolve_links(self, title: str) -> Set[str]: ...

    def resolve_summary(self, title: str) -> Optional[Summary]: ...


class EdgeKind(str, Enum):
    WALK = "walk"
    SIMILARITY = "similarity"


@dataclass
class Node:
    id: str
    title: str
    tags: frozenset
    url: str
    summary: str
    order: int
    visit_count: int = 0
    last_visited: Optional[datetime] = None
    depth: Optional[int] = None  # None means unreachable from the seed

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "tags": sorted(self.tags),
            "url": self.url,
            "summary": self.summary,
            "order": self.order,
            "visit_count": self.visit_count,
            "last_visited": self.last_visited.isoformat() if self.last_visited else None,
            "depth": self.depth,
        }


@dataclass
class Edge:
    source: str
    target: str
    kind: EdgeKind
    weight: float = 1

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target, "kind": self.kind.value, "weight": self.weight}


def edge_key(a: str, b: str, kind: EdgeKind) -> Tuple[str, str, EdgeKind]:
    return (a, b, kind) if a < b else (b, a, kind)


@dataclass
class _Fetched:
    tags: Set[str]
    summary: Optional[Summary]


class GraphStore:
    def __init__(self, source: LinkSource, max_workers: int = config.FETCH_WORKERS):
        self.source = source
        self.max_workers = max_workers
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[Tuple[str, str, EdgeKind], Edge] = {}
        self._adjacency: Dict[str, Set[str]] = {}
        self._similarity_listeners: List[Callable[[Edge], None]] = []

    # -----------------------------
    # Reads
    # -----------------------------
    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[Node]:
        """Nodes in creation order."""
        return list(self._nodes.values())

    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def edge(self, a: str, b: str, kind: EdgeKind) -> Optional[Edge]:
        return self._edges.get(edge_key(a, b, kind))

    def neighbors(self, node_id: str) -> FrozenSet[str]:
        return frozenset(self._adjacency.get(node_id, ()))

    def edge_counts(self) -> Dict[EdgeKind, int]:
        counts = {kind: 0 for kind in EdgeKind}
        for e in self._edges.values():
            counts[e.kind] += 1
        return counts

    def links_for(self, node_id: str) -> Set[str]:
        return self.source.resolve_links(node_id)

    # -----------------------------
    # Nodes
    # -----------------------------
    def ensure_node(self, title: str) -> Tuple[Node, bool]:
        node_id = canon(title)
        existing = self._nodes.get(node_id)
        if existing is not None:
            return existing, False

        with ThreadPoolExecutor(max_workers=2) as pool:
            tags_future = pool.submit(self.source.resolve_tags, node_id)
            summary_future = pool.submit(self._safe_summary, node_id)
            fetched = _Fetched(tags_future.result(), summary_future.result())

        return self._register(node_id, fetched), True

    def ensure_nodes(self, titles: Iterable[str]) -> List[Tuple[Node, bool]]:
        """
        Batch form of ensure_node. Tags and summaries of every missing node are
        fetched concurrently and joined before anything is registered, so a
        FetchError on any title leaves the store untouched.
        """
        ids = list(dict.fromkeys(canon(t) for t in titles))
        missing = [i for i in ids if i not in self._nodes]

        fetched: Dict[str, _Fetched] = {}
        if missing:
            workers = max(1, min(self.max_workers, 2 * len(missing)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    i: (pool.submit(self.source.resolve_tags, i), pool.submit(self._safe_summary, i))
                    for i in missing
                }
                for i, (tags_future, summary_future) in futures.items():
                    fetched[i] = _Fetched(tags_future.result(), summary_future.result())

        results = []
        for i in ids:
            if i in fetched:
                results.append((self._register(i, fetched[i]), True))
            else:
                results.append((self._nodes[i], False))
        return results

    def _safe_summary(self, node_id: str) -> Optional[Summary]:
        try:
            return self.source.resolve_summary(node_id)
        except FetchError as e:
            logger.warning(f"No summary for {node_id!r}: {e}")
            return None

    def _register(self, node_id: str, fetched: _Fetched) -> Node:
        summary = fetched.summary
        node = Node(
            id=node_id,
            title=pretty(node_id),
            tags=frozenset(fetched.tags),
            url=(summary.canonical_url if summary and summary.canonical_url
                 else config.WIKI_PAGE_BASE + quote(node_id, safe="")),
            summary=(summary.text if summary and summary.text else config.PLACEHOLDER_SUMMARY),
            order=len(self._nodes),
        )
        self._nodes[node_id] = node
        self._adjacency.setdefault(node_id, set())
        logger.debug(f"Registered node {node_id!r} with {len(node.tags)} tags")
        return node

    # -----------------------------
    # Edges
    # -----------------------------
    def upsert_walk_edge(self, a: str, b: str) -> Optional[Edge]:
        if a == b:
            return None
        key = edge_key(a, b, EdgeKind.WALK)
        edge = self._edges.get(key)
        if edge is None:
            edge = Edge(a, b, EdgeKind.WALK, 1)
            self._edges[key] = edge
        else:
            edge.weight += 1
        self._link(a, b)
        return edge

    def upsert_similarity_edge(self, a: str, b: str, score: float) -> Optional[Edge]:
        if a == b:
            return None
        clamped = min(max(float(score), 0.0), 1.0)
        key = edge_key(a, b, EdgeKind.SIMILARITY)
        edge = self._edges.get(key)
        created = edge is None
        if created:
            edge = Edge(a, b, EdgeKind.SIMILARITY, clamped)
            self._edges[key] = edge
        else:
            edge.weight = max(edge.weight, clamped)
        self._link(a, b)
        if created:
            for listener in self._similarity_listeners:
                listener(edge)
        return edge

    def on_similarity_created(self, listener: Callable[[Edge], None]) -> None:
        self._similarity_listeners.append(listener)

    def _link(self, a: str, b: str) -> None:
        self._adjacency.setdefault(a, set()).add(b)
        self._adjacency.setdefault(b, set()).add(a)
