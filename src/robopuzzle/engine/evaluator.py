"""Constraint evaluator.

Classifies an ``ExecutionTrace`` against a ``SimulationConfig``.  Checks
run in a fixed order and the first failure wins; its kind is what the
search driver tallies and repairs against.

The last check is counterfactual: every executed paint is suppressed in
turn and the program is re-run on the pre-paint grid.  Paints whose
removal still yields a passing run are unnecessary.  The re-entrant
evaluation disables this check, so recursion is one level deep.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Collection
from dataclasses import dataclass

from robopuzzle.config.simulation import SimulationConfig
from robopuzzle.engine.interpreter import DEFAULT_RECENT_FORWARDS, execute
from robopuzzle.engine.model import (
    Direction,
    Grid,
    Pose,
    Position,
    Program,
    Slot,
    bounding_box,
    count_dense_tiles,
    count_tiles,
    direction_between,
    paint_color,
    turn_distance,
)
from robopuzzle.engine.trace import PASSED, ExecutionTrace, Verdict

logger = logging.getLogger(__name__)


def path_trace_instructions(path: list[Position], start_direction: Direction) -> int:
    """Instructions needed to retrace *path* naively: turns plus forwards."""
    if len(path) < 2:
        return 0
    total = 0
    facing = start_direction
    for prev, curr in zip(path, path[1:]):
        heading = direction_between(prev, curr)
        total += turn_distance(facing, heading) + 1
        facing = heading
    return total


def executed_paint_slots(program: Program, trace: ExecutionTrace) -> list[Slot]:
    slots: list[Slot] = []
    for slot in trace.executed_slots:
        instr = program.get(slot)
        if instr is not None and paint_color(instr.type) is not None:
            slots.append(slot)
    return slots


def evaluate(
    trace: ExecutionTrace,
    program: Program,
    config: SimulationConfig,
    rng: random.Random,
    *,
    check_paint_necessity: bool = True,
    recent_forward_window: int = DEFAULT_RECENT_FORWARDS,
) -> Verdict:
    """Return the first failed check for *trace*, or ``PASSED``."""
    if trace.terminal == "boundary":
        return Verdict.fail("boundary", trace.step_count)
    if trace.terminal == "loop":
        return Verdict.fail("loop", trace.step_count)

    total_slots = config.total_slots
    coverage = trace.coverage_percent(total_slots)
    if coverage < config.min_coverage_percent:
        return Verdict.fail("coverage", coverage, config.min_coverage_percent)

    tiles = count_tiles(trace.grid)
    if tiles < config.min_tiles:
        return Verdict.fail("minTiles", tiles, config.min_tiles)

    box = max(bounding_box(trace.grid))
    if box < config.min_bounding_box:
        return Verdict.fail("minBoundingBox", box, config.min_bounding_box)

    turns = len(trace.turn_positions)
    if turns < config.min_turns:
        return Verdict.fail("minTurns", turns, config.min_turns)

    dense = count_dense_tiles(trace.grid)
    if dense > config.max_dense_tiles:
        return Verdict.fail("density", dense, config.max_dense_tiles)

    if trace.max_stack_depth < config.min_stack_depth:
        return Verdict.fail("minStackDepth", trace.max_stack_depth, config.min_stack_depth)

    self_calls = len(trace.self_call_slots)
    if self_calls < config.min_self_calls:
        return Verdict.fail("minSelfCalls", self_calls, config.min_self_calls)

    if trace.path_length < config.min_path_length:
        return Verdict.fail("minPathLength", trace.path_length, config.min_path_length)

    traced = path_trace_instructions(trace.path, trace.start.direction)
    required = config.min_path_trace_ratio * total_slots
    if traced < required:
        return Verdict.fail("pathTraceRatio", traced, required)

    conditionals = len(trace.conditional_slots)
    if conditionals < config.min_conditionals:
        return Verdict.fail("minConditionals", conditionals, config.min_conditionals)

    if config.min_paint_revisits > 0 and (
        not trace.tiles_were_painted or trace.paint_revisits < config.min_paint_revisits
    ):
        return Verdict.fail("minPaintRevisits", trace.paint_revisits, config.min_paint_revisits)

    if check_paint_necessity and config.max_unnecessary_paints >= 0 and trace.tiles_were_painted:
        unnecessary = count_unnecessary_paints(
            program,
            config,
            rng,
            grid=trace.original_grid(),
            start=trace.start,
            paint_slots=executed_paint_slots(program, trace),
            recent_forward_window=recent_forward_window,
        )
        if unnecessary > config.max_unnecessary_paints:
            return Verdict.fail("unnecessaryPaint", unnecessary, config.max_unnecessary_paints)

    return PASSED


def count_unnecessary_paints(
    program: Program,
    config: SimulationConfig,
    rng: random.Random,
    *,
    grid: Grid,
    start: Pose,
    paint_slots: Collection[Slot],
    recent_forward_window: int = DEFAULT_RECENT_FORWARDS,
) -> int:
    """Count paints whose suppression still leaves a passing run.

    Stops counting once the budget in ``max_unnecessary_paints`` is
    exceeded; the exact count beyond that point is irrelevant.
    """
    unnecessary = 0
    for slot in paint_slots:
        rerun = execute(
            program,
            config,
            rng,
            grid=grid,
            start=start,
            skip_paint_slots={slot},
            recent_forward_window=recent_forward_window,
        )
        verdict = evaluate(rerun, program, config, rng, check_paint_necessity=False)
        if verdict.success:
            logger.debug("Paint at %s is unnecessary", slot)
            unnecessary += 1
            if unnecessary > config.max_unnecessary_paints:
                break
    return unnecessary


@dataclass
class Attempt:
    """One candidate program together with its trace and verdict."""

    program: Program
    trace: ExecutionTrace
    verdict: Verdict


def simulate(
    program: Program,
    config: SimulationConfig,
    rng: random.Random,
    *,
    grid: Grid | None = None,
    start: Pose | None = None,
    recent_forward_window: int = DEFAULT_RECENT_FORWARDS,
) -> Attempt:
    """Execute *program* and classify the run."""
    trace = execute(
        program,
        config,
        rng,
        grid=grid,
        start=start,
        recent_forward_window=recent_forward_window,
    )
    verdict = evaluate(
        trace, program, config, rng, recent_forward_window=recent_forward_window,
    )
    return Attempt(program=program, trace=trace, verdict=verdict)
