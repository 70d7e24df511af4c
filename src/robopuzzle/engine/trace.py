"""Execution traces, failure kinds and verdicts.

Failure kinds are plain strings and act as control data: the search
driver tallies them and dispatches repair mutations on them.  Every
terminal path builds its outcome through ``Verdict.fail`` so the set of
kinds cannot drift between call sites.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from robopuzzle.engine.model import (
    Color,
    FunctionName,
    Grid,
    Pose,
    Position,
    Slot,
    clone_grid,
)

ErrorKind = Literal[
    "boundary",
    "coverage",
    "loop",
    "minTiles",
    "minBoundingBox",
    "minTurns",
    "density",
    "minStackDepth",
    "minSelfCalls",
    "pathTraceRatio",
    "minPathLength",
    "minConditionals",
    "minPaintRevisits",
    "unnecessaryPaint",
    "other",
]

ERROR_KINDS: tuple[ErrorKind, ...] = (
    "boundary",
    "coverage",
    "loop",
    "minTiles",
    "minBoundingBox",
    "minTurns",
    "density",
    "minStackDepth",
    "minSelfCalls",
    "pathTraceRatio",
    "minPathLength",
    "minConditionals",
    "minPaintRevisits",
    "unnecessaryPaint",
    "other",
)

Terminal = Literal["completed", "early_exit", "boundary", "loop"]
"""How an executor run stopped.  ``completed`` = step budget or safety cap."""


def empty_error_counts() -> dict[ErrorKind, int]:
    return {kind: 0 for kind in ERROR_KINDS}


@dataclass
class ExecutionTrace:
    """Everything one executor run observed."""

    grid: Grid
    original_colors: dict[Position, Color | None]
    """Colour of every tile before any paint was applied."""
    start: Pose
    final: Pose
    terminal: Terminal = "completed"
    path: list[Position] = field(default_factory=list)
    turn_positions: list[Position] = field(default_factory=list)
    executed_slots: dict[Slot, int] = field(default_factory=dict)
    """Slot → execution count, in first-execution order."""
    conditional_slots: dict[Slot, None] = field(default_factory=dict)
    self_call_slots: dict[Slot, None] = field(default_factory=dict)
    called_functions: set[FunctionName] = field(default_factory=lambda: {"f1"})
    visited_colors: list[Color] = field(default_factory=list)
    painted: dict[Position, Color] = field(default_factory=dict)
    paint_revisits: int = 0
    step_count: int = 0
    max_stack_depth: int = 1
    boundary_slot: Slot | None = None
    recent_forwards: list[Slot] = field(default_factory=list)

    @property
    def path_length(self) -> int:
        return max(len(self.path) - 1, 0)

    @property
    def tiles_were_painted(self) -> bool:
        return bool(self.painted)

    def original_grid(self) -> Grid:
        """Copy of the grid with every tile restored to its pre-paint colour."""
        grid = clone_grid(self.grid)
        for (x, y), color in self.original_colors.items():
            tile = grid[y][x]
            if tile is not None:
                tile.color = color
        return grid

    def coverage_percent(self, total_slots: int) -> float:
        if total_slots <= 0:
            return 100.0
        return len(self.executed_slots) / total_slots * 100

    def summary(self) -> dict[str, Any]:
        """JSON-friendly diagnostics."""
        return {
            "terminal": self.terminal,
            "stepCount": self.step_count,
            "pathLength": self.path_length,
            "path": [{"x": x, "y": y} for x, y in self.path],
            "turnPositions": [{"x": x, "y": y} for x, y in self.turn_positions],
            "executedSlots": [str(slot) for slot in self.executed_slots],
            "executedConditionals": len(self.conditional_slots),
            "selfCalls": len(self.self_call_slots),
            "maxStackDepth": self.max_stack_depth,
            "paintRevisits": self.paint_revisits,
        }


@dataclass(frozen=True)
class Verdict:
    """Outcome of classifying a trace.  ``error is None`` means success."""

    error: ErrorKind | None = None
    measured: float = 0.0
    required: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def fail(cls, kind: ErrorKind, measured: float = 0.0, required: float = 0.0) -> Verdict:
        return cls(error=kind, measured=float(measured), required=float(required))


PASSED = Verdict()
