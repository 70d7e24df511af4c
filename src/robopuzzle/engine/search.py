"""Search driver: generate, mutate, de-duplicate, retry.

``PuzzleGenerator`` owns one search run.  Each ``step()`` produces one
candidate (a repair of the last failure, or a fresh program), simulates
it and either packages the winner or records the failure for the next
repair.  Three front-ends share that step:

* ``generate()``: blocking, bounded by a deadline and an attempt budget.
* ``iterate()``: a generator yielding a ``SearchProgress`` per attempt.
* ``run_async()``: cooperative; yields to the event loop between
  attempts and honours ``stop()``.

Randomness, time and progress reporting are injected so a run can be
replayed from its recorded seed.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Literal

from robopuzzle.config.simulation import SimulationConfig
from robopuzzle.engine.evaluator import Attempt, simulate
from robopuzzle.engine.interpreter import DEFAULT_RECENT_FORWARDS
from robopuzzle.engine.mutations import MutationPolicy, mutate, random_program
from robopuzzle.engine.model import Program
from robopuzzle.engine.packager import GeneratedPuzzle, package
from robopuzzle.engine.trace import ErrorKind, empty_error_counts

logger = logging.getLogger(__name__)

Outcome = Literal["success", "timeout", "exhausted", "stopped"]

DEFAULT_MAX_MUTATION_ATTEMPTS = 100
DEFAULT_PROGRESS_INTERVAL = 10.0


@dataclass(frozen=True)
class SearchProgress:
    """Snapshot handed to progress callbacks after every attempt."""

    attempts: int
    elapsed: float
    last_error: ErrorKind | None
    error_counts: dict[ErrorKind, int]
    restarts: int


@dataclass
class GenerationResult:
    success: bool
    outcome: Outcome
    attempts: int
    error_counts: dict[ErrorKind, int]
    error_type: str | None = None
    puzzle: GeneratedPuzzle | None = None
    solution: Program | None = None
    seed: int | None = None
    elapsed: float = 0.0
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome,
            "attempts": self.attempts,
            "errorType": self.error_type,
            "errorCounts": dict(self.error_counts),
            "seed": self.seed,
            "elapsed": round(self.elapsed, 3),
            "puzzle": self.puzzle.to_record() if self.puzzle else None,
            "solution": self.solution.to_record() if self.solution else None,
            "diagnostics": self.diagnostics,
        }


class PuzzleGenerator:
    """One search run over a fixed ``SimulationConfig``.

    Parameters
    ----------
    config:
        Thresholds shared read-only by every attempt.
    rng:
        Random source.  When omitted a ``random.Random`` is seeded from
        *seed* (or a fresh seed, recorded on the result).
    clock:
        Monotonic seconds; used for the deadline and progress logging.
    on_progress:
        Called with a ``SearchProgress`` after every attempt.
    policy:
        Repair odds; defaults to ``MutationPolicy()``.
    max_mutation_attempts:
        Tries at producing an unseen signature before a lineage (or the
        whole search) is given up.
    """

    def __init__(
        self,
        config: SimulationConfig,
        *,
        rng: random.Random | None = None,
        seed: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Callable[[SearchProgress], None] | None = None,
        policy: MutationPolicy | None = None,
        max_mutation_attempts: int = DEFAULT_MAX_MUTATION_ATTEMPTS,
        recent_forward_window: int = DEFAULT_RECENT_FORWARDS,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        self.config = config
        if rng is None:
            self.seed: int | None = seed if seed is not None else random.randrange(2**31)
            self.rng = random.Random(self.seed)
        else:
            self.seed = seed
            self.rng = rng
        self.clock = clock
        self.on_progress = on_progress
        self.policy = policy or MutationPolicy()
        self.max_mutation_attempts = max_mutation_attempts
        self.recent_forward_window = recent_forward_window
        self.progress_interval = progress_interval

        self.attempts = 0
        self.restarts = 0
        self.error_counts = empty_error_counts()
        self.last_error: ErrorKind | None = None
        self.result: GenerationResult | None = None

        self._seen: set[str] = set()
        self._parent: Attempt | None = None
        self._stop_requested = False
        self._started_at = 0.0
        self._last_report = 0.0
        self._deadline: float | None = None
        self._max_attempts: int | None = None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, timeout_s: float | None = None, max_attempts: int | None = None) -> None:
        """Reset counters and arm the deadline / attempt budget."""
        self._started_at = self._last_report = self.clock()
        self._deadline = None if timeout_s is None else self._started_at + timeout_s
        self._max_attempts = max_attempts
        self._stop_requested = False
        self._seen.clear()
        self._parent = None
        self.attempts = 0
        self.restarts = 0
        self.error_counts = empty_error_counts()
        self.last_error = None
        self.result = None
        logger.info(
            "Search started: %d slots, timeout=%s, max_attempts=%s, seed=%s",
            self.config.total_slots,
            timeout_s,
            max_attempts,
            self.seed,
        )

    def stop(self) -> None:
        """Request a cooperative stop; the next ``step()`` finishes the run."""
        self._stop_requested = True

    @property
    def elapsed(self) -> float:
        return self.clock() - self._started_at

    @property
    def finished(self) -> bool:
        return self.result is not None

    # ------------------------------------------------------------------
    # Front-ends
    # ------------------------------------------------------------------

    def generate(self, timeout_s: float = 30.0, max_attempts: int | None = None) -> GenerationResult:
        """Search until success, deadline or budget; never raises for a failed search."""
        self.start(timeout_s, max_attempts)
        while True:
            result = self.step()
            if result is not None:
                return result

    def iterate(
        self, timeout_s: float | None = None, max_attempts: int | None = None,
    ) -> Iterator[SearchProgress]:
        """Yield progress after each attempt; ``self.result`` is set when exhausted."""
        self.start(timeout_s, max_attempts)
        while self.step() is None:
            yield self.progress()

    async def run_async(
        self, timeout_s: float | None = None, max_attempts: int | None = None,
    ) -> GenerationResult:
        """Cooperative variant of ``generate`` that yields between attempts."""
        self.start(timeout_s, max_attempts)
        while True:
            result = self.step()
            if result is not None:
                return result
            await asyncio.sleep(0)

    def progress(self) -> SearchProgress:
        return SearchProgress(
            attempts=self.attempts,
            elapsed=self.elapsed,
            last_error=self.last_error,
            error_counts=dict(self.error_counts),
            restarts=self.restarts,
        )

    # ------------------------------------------------------------------
    # One attempt
    # ------------------------------------------------------------------

    def step(self) -> GenerationResult | None:
        """Run one attempt; return the final result once the run is over."""
        if self.result is not None:
            return self.result
        if self._stop_requested:
            return self._finish("stopped")
        if self._deadline is not None and self.clock() >= self._deadline:
            return self._finish("timeout")
        if self._max_attempts is not None and self.attempts >= self._max_attempts:
            return self._finish("exhausted")

        self.attempts += 1
        if self.attempts % self.config.auto_restart_after == 0:
            self._seen.clear()
            self._parent = None
            self.restarts += 1
            logger.info("Auto-restart after %d attempts", self.attempts)

        candidate = self._next_candidate()
        if candidate is None:
            logger.info("No unseen candidate after %d tries", self.max_mutation_attempts)
            return self._finish("exhausted")

        try:
            attempt = simulate(
                candidate,
                self.config,
                self.rng,
                recent_forward_window=self.recent_forward_window,
            )
        except Exception as exc:
            logger.debug("Attempt %d faulted: %s", self.attempts, exc, exc_info=True)
            self._record_failure("other")
            self._parent = None
            self._report()
            return None

        if attempt.verdict.success:
            return self._finish("success", attempt)

        assert attempt.verdict.error is not None
        self._record_failure(attempt.verdict.error)
        self._parent = attempt
        self._report()
        return None

    def _next_candidate(self) -> Program | None:
        if self._parent is not None:
            parent = self._parent
            for _ in range(self.max_mutation_attempts):
                candidate = mutate(
                    parent.program,
                    parent.trace,
                    parent.verdict.error,
                    self.config,
                    self.rng,
                    self.policy,
                )
                if self._claim(candidate):
                    return candidate
            logger.debug("Lineage stalled at attempt %d; starting fresh", self.attempts)
            self._parent = None

        for _ in range(self.max_mutation_attempts):
            candidate = random_program(self.config, self.rng)
            if self._claim(candidate):
                return candidate
        return None

    def _claim(self, program: Program) -> bool:
        signature = program.signature()
        if signature in self._seen:
            return False
        self._seen.add(signature)
        return True

    def _record_failure(self, kind: ErrorKind) -> None:
        self.error_counts[kind] += 1
        self.last_error = kind

    def _report(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.progress())
        now = self.clock()
        if now - self._last_report >= self.progress_interval:
            self._last_report = now
            top = sorted(
                ((n, k) for k, n in self.error_counts.items() if n), reverse=True,
            )[:3]
            logger.info(
                "Attempt %d (%.1fs): top failures %s",
                self.attempts,
                now - self._started_at,
                ", ".join(f"{k}={n}" for n, k in top) or "none",
            )

    def _finish(self, outcome: Outcome, attempt: Attempt | None = None) -> GenerationResult:
        puzzle: GeneratedPuzzle | None = None
        solution: Program | None = None
        diagnostics: dict[str, Any] = {"restarts": self.restarts}
        if attempt is not None:
            puzzle, solution = package(attempt, self.config)
            diagnostics.update(attempt.trace.summary())

        self.result = GenerationResult(
            success=outcome == "success",
            outcome=outcome,
            attempts=self.attempts,
            error_counts=dict(self.error_counts),
            error_type=None if outcome == "success" else (self.last_error or outcome),
            puzzle=puzzle,
            solution=solution,
            seed=self.seed,
            elapsed=self.elapsed,
            diagnostics=diagnostics,
        )
        logger.info(
            "Search %s after %d attempts in %.2fs",
            outcome,
            self.attempts,
            self.result.elapsed,
        )
        return self.result


def generate(
    config: SimulationConfig,
    *,
    timeout_s: float = 30.0,
    max_attempts: int | None = None,
    seed: int | None = None,
    **kwargs: Any,
) -> GenerationResult:
    """Convenience wrapper around ``PuzzleGenerator(...).generate(...)``."""
    return PuzzleGenerator(config, seed=seed, **kwargs).generate(timeout_s, max_attempts)
