"""Result packaging: turn a winning attempt into a playable puzzle.

The emitted puzzle is built on the *pre-paint* grid, with stars on every
turn position and on the final position.  The solution is the candidate
program pruned to the slots that actually executed.  Both serialize to
plain JSON-friendly records and parse back with ``puzzle_from_record`` /
``program_from_record``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, cast

from robopuzzle.config.simulation import SimulationConfig
from robopuzzle.engine.evaluator import Attempt, simulate
from robopuzzle.engine.model import (
    COLORS,
    DIRECTIONS,
    FUNCTIONS,
    INSTRUCTION_TYPES,
    PAINTS,
    Color,
    Direction,
    FunctionName,
    Grid,
    Instruction,
    InstructionType,
    Pose,
    Position,
    Program,
    Tile,
    grid_size,
    grid_to_records,
)
from robopuzzle.engine.trace import ExecutionTrace

logger = logging.getLogger(__name__)


class PuzzleFormatError(ValueError):
    """A stored puzzle or program record is malformed."""


@dataclass
class GeneratedPuzzle:
    """A playable puzzle: grid with stars, start pose and palette."""

    grid: Grid
    robot_start: Pose
    function_lengths: dict[str, int]
    allowed_instructions: list[InstructionType]
    step_count: int = 0
    quality_score: int = 0
    solution_instruction_count: int = 0
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def stars(self) -> list[Position]:
        return [
            (x, y)
            for y, row in enumerate(self.grid)
            for x, tile in enumerate(row)
            if tile is not None and tile.has_star
        ]

    def to_record(self) -> dict[str, Any]:
        return {
            "grid": grid_to_records(self.grid),
            "robotStart": self.robot_start.to_record(),
            "functionLengths": dict(self.function_lengths),
            "allowedInstructions": list(self.allowed_instructions),
            "stepCount": self.step_count,
            "qualityScore": self.quality_score,
            "solutionInstructionCount": self.solution_instruction_count,
        }


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------


def allowed_instructions(config: SimulationConfig) -> list[InstructionType]:
    """Movement and paint instructions plus a call for every non-empty function."""
    lengths = config.function_lengths()
    calls = [fn for fn in FUNCTIONS if lengths[fn] > 0]
    return ["forward", "left", "right", *calls, *PAINTS]


def quality_score(trace: ExecutionTrace, config: SimulationConfig) -> int:
    """Rough 50-100 rating favouring coverage, turns and long paths."""
    coverage = trace.coverage_percent(config.total_slots) / 100
    turns = len(trace.turn_positions)
    return round(50 + coverage * 20 + min(turns * 2, 15) + min(len(trace.path) / 5, 15))


def place_stars(grid: Grid, positions: list[Position]) -> None:
    for x, y in positions:
        tile = grid[y][x]
        if tile is not None:
            tile.has_star = True


def package(attempt: Attempt, config: SimulationConfig) -> tuple[GeneratedPuzzle, Program]:
    """Build the puzzle and pruned solution for a successful *attempt*."""
    trace = attempt.trace
    grid = trace.original_grid()
    place_stars(grid, [*trace.turn_positions, trace.final.position])

    solution = attempt.program.pruned(trace.executed_slots)
    puzzle = GeneratedPuzzle(
        grid=grid,
        robot_start=trace.start,
        function_lengths=config.function_lengths(),
        allowed_instructions=allowed_instructions(config),
        step_count=trace.step_count,
        quality_score=quality_score(trace, config),
        solution_instruction_count=solution.instruction_count(),
        diagnostics=trace.summary(),
    )
    logger.info(
        "Packaged puzzle: %d stars, %d steps, quality %d",
        len(puzzle.stars),
        puzzle.step_count,
        puzzle.quality_score,
    )
    return puzzle, solution


def verify_solution(
    puzzle: GeneratedPuzzle,
    solution: Program,
    config: SimulationConfig,
    rng: random.Random | None = None,
) -> Attempt:
    """Re-run *solution* on the emitted puzzle and classify the run."""
    return simulate(
        solution,
        config,
        rng or random.Random(0),
        grid=puzzle.grid,
        start=puzzle.robot_start,
    )


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def _parse_color(value: Any) -> Color | None:
    if value is None:
        return None
    if value not in COLORS:
        raise PuzzleFormatError(f"Unknown colour: {value!r}")
    return cast(Color, value)


def grid_from_records(rows: Any) -> Grid:
    if not isinstance(rows, list) or not rows:
        raise PuzzleFormatError("Grid must be a non-empty list of rows")
    width = len(rows[0])
    grid: Grid = []
    for row in rows:
        if not isinstance(row, list) or len(row) != width:
            raise PuzzleFormatError("Grid rows must all have the same length")
        cells: list[Tile | None] = []
        for cell in row:
            if cell is None:
                cells.append(None)
            elif isinstance(cell, dict):
                cells.append(Tile(
                    color=_parse_color(cell.get("color")),
                    has_star=bool(cell.get("hasStar", False)),
                ))
            else:
                raise PuzzleFormatError(f"Invalid grid cell: {cell!r}")
        grid.append(cells)
    return grid


def pose_from_record(record: Any) -> Pose:
    try:
        position = record["position"]
        x, y = int(position["x"]), int(position["y"])
        direction = record["direction"]
    except (KeyError, TypeError, ValueError) as exc:
        raise PuzzleFormatError(f"Invalid robot pose: {record!r}") from exc
    if direction not in DIRECTIONS:
        raise PuzzleFormatError(f"Unknown direction: {direction!r}")
    return Pose((x, y), cast(Direction, direction))


def program_from_record(record: Any) -> Program:
    """Parse ``{"f1": [{"type", "condition"} | null, ...], ...}``."""
    if not isinstance(record, dict):
        raise PuzzleFormatError("Program record must be an object")
    functions: dict[FunctionName, list[Instruction | None]] = {}
    for fn in FUNCTIONS:
        slots: list[Instruction | None] = []
        for entry in record.get(fn, []):
            if entry is None:
                slots.append(None)
                continue
            kind = entry.get("type") if isinstance(entry, dict) else None
            if kind not in INSTRUCTION_TYPES:
                raise PuzzleFormatError(f"Unknown instruction type in {fn}: {kind!r}")
            slots.append(Instruction(
                cast(InstructionType, kind), _parse_color(entry.get("condition")),
            ))
        functions[fn] = slots
    return Program(functions)


def puzzle_from_record(record: Any) -> GeneratedPuzzle:
    """Parse a record written by ``GeneratedPuzzle.to_record``."""
    if not isinstance(record, dict):
        raise PuzzleFormatError("Puzzle record must be an object")
    grid = grid_from_records(record.get("grid"))
    start = pose_from_record(record.get("robotStart"))
    width, height = grid_size(grid)
    x, y = start.position
    if not (0 <= x < width and 0 <= y < height) or grid[y][x] is None:
        raise PuzzleFormatError(f"Robot start {start.position} is not on a tile")

    lengths = record.get("functionLengths") or {}
    allowed = record.get("allowedInstructions") or []
    unknown = [kind for kind in allowed if kind not in INSTRUCTION_TYPES]
    if unknown:
        raise PuzzleFormatError(f"Unknown allowed instructions: {unknown}")

    return GeneratedPuzzle(
        grid=grid,
        robot_start=start,
        function_lengths={fn: int(lengths.get(fn, 0)) for fn in FUNCTIONS},
        allowed_instructions=list(allowed),
        step_count=int(record.get("stepCount", 0)),
        quality_score=int(record.get("qualityScore", 0)),
        solution_instruction_count=int(record.get("solutionInstructionCount", 0)),
    )
