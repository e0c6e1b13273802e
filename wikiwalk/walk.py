"""
Walk Engine: the random-walk state machine.

    IDLE --start--> RUNNING <--pause/resume--> PAUSED
                       |
                       +--(backtracking exhausted)--> STUCK

One engine instance holds all the state of one run. Resetting a run means
throwing the engine away and building a new one.
"""
import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from wikiwalk import config
from wikiwalk.distance import DistanceOracle
from wikiwalk.errors import NoLinksAvailable, NoSeedError, WikiWalkError
from wikiwalk.graph import EdgeKind, GraphStore, LinkSource, Node
from wikiwalk.similarity import SimilarityLinker
from wikiwalk.titles import canon, pretty

logger = logging.getLogger(__name__)


class WalkState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STUCK = "stuck"


@dataclass
class StepResult:
    step: int
    origin: str  # node the step moved away from, after any backtracking
    targets: List[str]
    current: str
    backtracked: bool = False
    backtracked_from: Optional[str] = None
    avoid: FrozenSet[str] = field(default_factory=frozenset)
    new_nodes: List[str] = field(default_factory=list)


def pick_link(links: Sequence[str], avoid_id: Optional[str], rng: random.Random) -> Optional[str]:
    """
    Uniform choice among links. If the draw lands on avoid_id (the node we just
    came from) and anything else is available, draw again among the others.
    """
    if not links:
        return None
    if len(links) == 1:
        return links[0]

    candidate = rng.choice(links)
    if avoid_id is not None and candidate == avoid_id:
        others = [link for link in links if link != avoid_id]
        if others:
            candidate = rng.choice(others)
    return candidate


class WalkEngine:
    def __init__(self, source: LinkSource,
                 branch_factor: int = config.BRANCHING,
                 avoid_visited: bool = config.AVOID_VISITED,
                 rng: Optional[random.Random] = None,
                 similarity_neighbors: int = config.SIMILARITY_NEIGHBORS,
                 max_log_items: int = config.MAX_LOG_ITEMS,
                 max_workers: int = config.FETCH_WORKERS):
        self.store = GraphStore(source, max_workers=max_workers)
        self.similarity = SimilarityLinker(self.store, neighbors=similarity_neighbors)
        self.distances = DistanceOracle(self.store)
        self.branch_factor = branch_factor
        self.avoid_visited = avoid_visited
        self.rng = rng or random.Random()
        self.max_log_items = max_log_items

        self.state = WalkState.IDLE
        self.stack: List[str] = []
        self.seed_id: Optional[str] = None
        self.current_id: Optional[str] = None
        self.previous_id: Optional[str] = None
        self.step_count = 0
        self.last_avoid: FrozenSet[str] = frozenset()
        self.visit_history: List[Dict[str, Any]] = []

        # Single-flight guard: a step that finds it held is dropped, never queued.
        self._in_flight = threading.Lock()
        # Keeps snapshots from observing a half-applied mutation.
        self.lock = threading.RLock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def start(self, seed_title: str) -> Node:
        seed_id = canon(seed_title)
        if not seed_id:
            raise NoSeedError("Enter a starting page title to begin.")
        if self.state is not WalkState.IDLE:
            raise WikiWalkError("Walk already started. Reset before starting again.")

        with self._in_flight:
            node, is_new = self.store.ensure_node(seed_id)
            with self.lock:
                self.seed_id = node.id
                self.distances.seed_id = node.id
                self._visit(node, is_new, prior=None, step=0)
                self.stack.append(node.id)
                self.current_id = node.id
                self.previous_id = None
                self.distances.refresh_depths()
                self.state = WalkState.RUNNING

        logger.info(f"Walk started from {node.id!r}")
        return node

    def pause(self) -> bool:
        if self.state is not WalkState.RUNNING:
            return False
        self.state = WalkState.PAUSED
        return True

    def resume(self) -> bool:
        if self.current_id is None:
            raise NoSeedError("Nothing to resume. Start a walk first.")
        if self.state is not WalkState.PAUSED:
            return False
        self.state = WalkState.RUNNING
        return True

    # -----------------------------
    # Stepping
    # -----------------------------
    def step(self) -> Optional[StepResult]:
        """
        Advance the walk by one step, or by one branch batch when branch_factor > 1.
        Returns None when another step is already in flight.
        """
        if not self._in_flight.acquire(blocking=False):
            return None
        try:
            if self.current_id is None:
                raise NoSeedError("No active page. Start a walk first.")

            original = self.current_id
            candidates, backtracked = self._ensure_links_available()
            if self.branch_factor > 1:
                result = self._branch(candidates)
            else:
                result = self._advance(candidates)
            result.backtracked = backtracked
            result.backtracked_from = original if backtracked else None
            result.avoid = self.last_avoid
            return result
        except NoLinksAvailable:
            raise
        except WikiWalkError:
            if self.state is WalkState.RUNNING:
                self.state = WalkState.PAUSED
            raise
        finally:
            self._in_flight.release()

    def _candidates(self, node_id: str, avoid: set) -> List[str]:
        links = self.store.links_for(node_id)
        candidates = [link for link in links if link not in avoid and link != node_id]
        if self.avoid_visited:
            candidates = [link for link in candidates if link not in self.store]
        # sets have no stable order; sort so a seeded rng replays the same walk
        return sorted(candidates)

    def _ensure_links_available(self) -> Tuple[List[str], bool]:
        """
        Find candidates from the current node, retreating along the walk stack
        while the exposed node has none. Every node given up on goes into the
        avoid-set so it is not offered again during this step.
        """
        avoid = set()
        backtracked = False

        while self.current_id is not None:
            candidates = self._candidates(self.current_id, avoid)
            if candidates:
                self.last_avoid = frozenset(avoid)
                return candidates, backtracked

            avoid.add(self.current_id)
            with self.lock:
                if len(self.stack) <= 1:
                    self.stack.clear()
                    self.current_id = None
                    self.previous_id = None
                    self.state = WalkState.STUCK
                    self.last_avoid = frozenset(avoid)
                    logger.info(f"Walk stuck after {self.step_count} steps")
                    raise NoLinksAvailable("No further links available after backtracking. Walk stopped.")

                discarded = self.stack.pop()
                avoid.add(discarded)
                self.current_id = self.stack[-1]
                self.previous_id = self.stack[-2] if len(self.stack) > 1 else None
            backtracked = True
            logger.debug(f"Backtracked from {discarded!r} to {self.current_id!r}")

        raise NoSeedError("No active page. Start a walk first.")

    def _advance(self, candidates: List[str]) -> StepResult:
        origin = self.current_id
        next_id = pick_link(candidates, self.previous_id, self.rng)
        node, is_new = self.store.ensure_node(next_id)

        with self.lock:
            self.step_count += 1
            self._visit(node, is_new, prior=origin, step=self.step_count)
            self.previous_id = origin
            self.current_id = node.id
            self.stack.append(node.id)
            self.distances.refresh_depths()

        logger.debug(f"Step {self.step_count}: {origin!r} -> {node.id!r}")
        return StepResult(
            step=self.step_count,
            origin=origin,
            targets=[node.id],
            current=node.id,
            new_nodes=[node.id] if is_new else [],
        )

    def _branch(self, candidates: List[str]) -> StepResult:
        """
        Visit min(branch_factor, available) distinct candidates at once. All
        fetches are joined before the graph is touched; one failure aborts the
        whole batch. One branch is nominated as the new current node and only
        that one goes on the walk stack.
        """
        origin = self.current_id
        count = min(self.branch_factor, len(candidates))
        selected = self.rng.sample(candidates, count)
        ensured = self.store.ensure_nodes(selected)

        with self.lock:
            for node, is_new in ensured:
                self.step_count += 1
                self._visit(node, is_new, prior=origin, step=self.step_count)
            nominated = self.rng.choice(selected)
            self.previous_id = origin
            self.current_id = nominated
            self.stack.append(nominated)
            self.distances.refresh_depths()

        logger.debug(f"Branched {count} ways from {origin!r}, continuing at {nominated!r}")
        return StepResult(
            step=self.step_count,
            origin=origin,
            targets=selected,
            current=nominated,
            new_nodes=[node.id for node, is_new in ensured if is_new],
        )

    def _visit(self, node: Node, is_new: bool, prior: Optional[str], step: int) -> None:
        node.visit_count += 1
        node.last_visited = datetime.now()
        if prior is not None:
            self.store.upsert_walk_edge(prior, node.id)
        if is_new:
            self.similarity.link(node)
        self._record_visit(node, step)

    def _record_visit(self, node: Node, step: int) -> None:
        self.visit_history.insert(0, {
            "id": node.id,
            "title": node.title,
            "url": node.url,
            "summary": node.summary,
            "visits": node.visit_count,
            "step": step,
        })
        del self.visit_history[self.max_log_items:]

    # -----------------------------
    # Views
    # -----------------------------
    def stats(self) -> Dict[str, Any]:
        with self.lock:
            counts = self.store.edge_counts()
            current = self.store.get(self.current_id) if self.current_id else None
            return {
                "state": self.state.value,
                "steps": self.step_count,
                "unique_nodes": len(self.store),
                "walk_edges": counts[EdgeKind.WALK],
                "similarity_edges": counts[EdgeKind.SIMILARITY],
                "max_distance": self.distances.max_finite_depth,
                "current_page": current.title if current else None,
            }

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "seed": self.seed_id,
                "seed_title": pretty(self.seed_id) if self.seed_id else None,
                "current": self.current_id,
                "previous": self.previous_id,
                "stack": list(self.stack),
                "nodes": [n.to_dict() for n in self.store.nodes()],
                "edges": [e.to_dict() for e in self.store.edges()],
                "visit_history": [dict(entry) for entry in self.visit_history],
                "stats": self.stats(),
            }
