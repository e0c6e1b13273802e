"""
Run Controller: owns the walk engine of the current run and drives it.

Commands (start, step, pause, resume, reset, select a node) are the only way in.
Consumers read state through snapshot(), which copies everything it returns.
Every outcome, good or bad, ends up in ``feedback``.
"""
import logging
import random
import threading
import time
from typing import Any, Dict, List, Optional

from wikiwalk import config
from wikiwalk.errors import Feedback, WikiWalkError
from wikiwalk.graph import LinkSource
from wikiwalk.titles import pretty
from wikiwalk.walk import StepResult, WalkEngine, WalkState
from wikiwalk.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

# Back-off used by the loop when its step was dropped by the single-flight guard.
DROPPED_STEP_WAIT_S = 0.01


def clamp_branch_factor(value: int) -> int:
    return max(1, min(config.MAX_BRANCHING, int(value)))


class RunController:
    def __init__(self, source: Optional[LinkSource] = None,
                 branch_factor: int = config.BRANCHING,
                 avoid_visited: bool = config.AVOID_VISITED,
                 rng: Optional[random.Random] = None,
                 autorun: bool = True):
        self.source = source or WikipediaClient()
        self.branch_factor = clamp_branch_factor(branch_factor)
        self.avoid_visited = avoid_visited
        self.rng = rng
        self.autorun = autorun

        self.generation = 0
        self.engine = self._new_engine()
        self.feedback: Optional[Feedback] = None
        self.selected_node: Optional[str] = None
        self.path_to_seed: List[str] = []

        self._lock = threading.Lock()
        self._loop: Optional[threading.Thread] = None

    def _new_engine(self) -> WalkEngine:
        return WalkEngine(
            self.source,
            branch_factor=self.branch_factor,
            avoid_visited=self.avoid_visited,
            rng=self.rng,
        )

    # -----------------------------
    # Commands
    # -----------------------------
    def start(self, seed_title: str) -> WalkEngine:
        self._discard_run()
        engine, generation = self.engine, self.generation
        self._report(Feedback("Preparing random walk..."))
        try:
            node = engine.start(seed_title)
        except WikiWalkError as e:
            if generation == self.generation:
                self._fail(e)
            raise

        if generation != self.generation:
            return engine
        self._report(Feedback(f"Walking from {node.title}."))
        if self.autorun:
            self._ensure_loop()
        return engine

    def step(self) -> Optional[StepResult]:
        """Single manual step. Dropped (None) if a step is already in flight."""
        engine, generation = self.engine, self.generation
        try:
            result = engine.step()
        except WikiWalkError as e:
            if generation == self.generation:
                self._fail(e)
            raise
        if result is None or generation != self.generation:
            return None
        self._report_step(result, manual=True)
        return result

    def pause(self) -> bool:
        paused = self.engine.pause()
        if paused:
            self._report(Feedback("Walk paused."))
        return paused

    def resume(self) -> bool:
        try:
            resumed = self.engine.resume()
        except WikiWalkError as e:
            self._fail(e)
            raise
        if resumed:
            self._report(Feedback("Walk resumed."))
        if self.autorun:
            self._ensure_loop()
        return resumed

    def reset(self) -> None:
        self._discard_run()
        self._report(Feedback("Walk reset."))

    def set_branch_factor(self, value: int) -> int:
        self.branch_factor = clamp_branch_factor(value)
        self.engine.branch_factor = self.branch_factor
        if self.branch_factor > config.EXPERIMENTAL_BRANCHING:
            self._report(Feedback(
                f"Branching x{self.branch_factor} is experimental and fetches many pages per step.",
                "warning",
            ))
        return self.branch_factor

    def select_node(self, node_id: Optional[str]) -> Optional[List[str]]:
        """
        Toggle the path-to-seed highlight for a node. Selecting the selected node
        again (or None) clears the highlight.
        """
        if node_id is None or node_id == self.selected_node:
            self.selected_node = None
            self.path_to_seed = []
            self._report(Feedback("Selection cleared."))
            return None

        node = self.engine.store.get(node_id)
        if node is None:
            self._report(Feedback(f"Unknown node {node_id!r}.", "warning"))
            return None

        self.selected_node = node_id
        path = self.find_path_to_seed(node_id)
        if path:
            self.path_to_seed = path
            self._report(Feedback(f"Showing path from {node.title} to seed ({len(path)} nodes)."))
        else:
            self.path_to_seed = []
            self._report(Feedback(f"No path found from {node.title} to seed.", "warning"))
        return path

    def find_path_to_seed(self, node_id: str) -> Optional[List[str]]:
        engine = self.engine
        with engine.lock:
            return engine.distances.find_path(node_id)

    # -----------------------------
    # Views
    # -----------------------------
    @property
    def state(self) -> WalkState:
        return self.engine.state

    def stats(self) -> Dict[str, Any]:
        return self.engine.stats()

    def snapshot(self) -> Dict[str, Any]:
        data = self.engine.snapshot()
        data.update({
            "generation": self.generation,
            "branch_factor": self.branch_factor,
            "running": self.engine.state is WalkState.RUNNING,
            "selected_node": self.selected_node,
            "path_to_seed": list(self.path_to_seed),
            "max_finite_depth": self.engine.distances.max_finite_depth,
            "feedback": (
                {"message": self.feedback.message, "severity": self.feedback.severity}
                if self.feedback else None
            ),
        })
        return data

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the background loop exits. True if it is no longer running."""
        loop = self._loop
        if loop is None:
            return True
        loop.join(timeout)
        return not loop.is_alive()

    # -----------------------------
    # Run loop
    # -----------------------------
    def _discard_run(self) -> None:
        with self._lock:
            self.engine.pause()
            self.generation += 1
            self.engine = self._new_engine()
            # A loop still finishing a step for the old run notices the new
            # generation and exits on its own.
            self._loop = None
            self.selected_node = None
            self.path_to_seed = []

    def _ensure_loop(self) -> None:
        with self._lock:
            if self._loop is not None or self.engine.state is not WalkState.RUNNING:
                return
            self._loop = threading.Thread(
                target=self._run_loop,
                args=(self.engine, self.generation),
                name=f"wikiwalk-loop-{self.generation}",
                daemon=True,
            )
            self._loop.start()

    def _run_loop(self, engine: WalkEngine, generation: int) -> None:
        while True:
            with self._lock:
                if generation != self.generation or engine.state is not WalkState.RUNNING:
                    if self._loop is threading.current_thread():
                        self._loop = None
                    return

            try:
                result = engine.step()
            except WikiWalkError as e:
                if generation == self.generation:
                    self._fail(e)
                continue
            except Exception as e:
                logger.exception("Walk loop crashed")
                engine.pause()
                if generation == self.generation:
                    self._report(Feedback(f"Step failed: {e}", "error"))
                continue

            if result is None:
                time.sleep(DROPPED_STEP_WAIT_S)
                continue
            if generation == self.generation:
                self._report_step(result)

    # -----------------------------
    # Feedback
    # -----------------------------
    def _report(self, feedback: Feedback) -> None:
        self.feedback = feedback
        if feedback.severity == "error":
            logger.error(feedback.message)
        elif feedback.severity == "warning":
            logger.warning(feedback.message)
        else:
            logger.info(feedback.message)

    def _fail(self, error: WikiWalkError) -> None:
        self._report(Feedback.from_error(error))

    def _report_step(self, result: StepResult, manual: bool = False) -> None:
        if result.backtracked:
            self._report(Feedback(f"Backtracked to {pretty(result.origin)}; continuing walk."))
        elif manual:
            self._report(Feedback(f"Stepped to {pretty(result.current)}."))
