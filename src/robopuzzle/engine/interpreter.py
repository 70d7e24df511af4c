"""Program executor.

Runs one program against one world: either a fresh empty grid that grows
tile by tile as the robot walks, or a caller-supplied fixed grid. It
returns an ``ExecutionTrace``.  Boundary and loop terminals stop the run
immediately; everything else runs until the step budget, the iteration
safety cap, or the early-exit condition.

The executor never raises for program behaviour; only a malformed world
(robot starting on void) is an error.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Collection

from robopuzzle.config.simulation import ColorRatios, SimulationConfig
from robopuzzle.engine.model import (
    DIRECTIONS,
    CallFrame,
    Color,
    Grid,
    Pose,
    Program,
    Slot,
    Tile,
    clone_grid,
    empty_grid,
    fetch_slot,
    in_bounds,
    is_call,
    is_quarter_turn,
    paint_color,
    step_position,
    tile_at,
    turn,
)
from robopuzzle.engine.trace import ExecutionTrace

logger = logging.getLogger(__name__)

ITERATION_CAP_FACTOR = 100
"""Fetches allowed per step of budget; bounds runs that only skip."""

DEFAULT_RECENT_FORWARDS = 5


def weighted_color(ratios: ColorRatios, rng: random.Random) -> Color:
    """Pick a tile colour proportionally to *ratios*."""
    total = ratios.red + ratios.green + ratios.blue
    roll = rng.random() * total
    if roll < ratios.red:
        return "red"
    if roll < ratios.red + ratios.green:
        return "green"
    return "blue"


def fresh_world(config: SimulationConfig, rng: random.Random) -> tuple[Grid, Pose]:
    """Empty grid with a single start tile in the centre, random facing."""
    grid = empty_grid(config.grid_size)
    center = config.grid_size // 2
    grid[center][center] = Tile(color=weighted_color(config.color_ratios, rng))
    return grid, Pose((center, center), rng.choice(DIRECTIONS))


def execute(
    program: Program,
    config: SimulationConfig,
    rng: random.Random,
    *,
    grid: Grid | None = None,
    start: Pose | None = None,
    skip_paint_slots: Collection[Slot] = (),
    recent_forward_window: int = DEFAULT_RECENT_FORWARDS,
) -> ExecutionTrace:
    """Execute *program* and return the resulting trace.

    Parameters
    ----------
    grid:
        Fixed world to run on (copied, never mutated).  ``None`` generates
        a fresh world from *config*.
    start:
        Start pose; on a fixed grid it defaults to the centre facing a random
        direction.
    skip_paint_slots:
        Paint instructions at these slots execute as no-ops (used by the
        counterfactual necessity check).
    recent_forward_window:
        How many of the most recent forward slots a boundary trace keeps.
    """
    if grid is None:
        world, fresh_start = fresh_world(config, rng)
        pose = start or fresh_start
    else:
        world = clone_grid(grid)
        center = config.grid_size // 2
        pose = start or Pose((center, center), rng.choice(DIRECTIONS))

    start_tile = tile_at(world, pose.position)
    if start_tile is None:
        raise ValueError(f"Robot cannot start on void at {pose.position}")
    trace = ExecutionTrace(
        grid=world,
        original_colors={
            (x, y): tile.color
            for y, row in enumerate(world)
            for x, tile in enumerate(row)
            if tile is not None
        },
        start=pose,
        final=pose,
        path=[pose.position],
    )
    if start_tile.color is not None:
        trace.visited_colors.append(start_tile.color)

    total_slots = config.total_slots
    position, direction = pose.position, pose.direction
    entry_direction = None
    left_painted: set[tuple[int, int]] = set()
    stack = [CallFrame("f1")]
    iterations = 0
    max_iterations = config.max_steps * ITERATION_CAP_FACTOR

    def returned_to_start() -> bool:
        return (
            not config.disable_loop_check
            and trace.step_count > 1
            and position == pose.position
            and direction == pose.direction
        )

    while trace.step_count < config.max_steps and iterations < max_iterations:
        iterations += 1
        slot = fetch_slot(stack, program)
        if slot is None:
            continue
        instruction = program.get(slot)
        if instruction is None:
            continue
        tile = tile_at(world, position)
        if not instruction.matches(tile):
            continue

        trace.executed_slots[slot] = trace.executed_slots.get(slot, 0) + 1
        trace.step_count += 1

        if instruction.condition is not None:
            trace.conditional_slots[slot] = None
            if position in left_painted and trace.painted.get(position) == instruction.condition:
                trace.paint_revisits += 1

        executed = len(trace.executed_slots)
        coverage = executed / total_slots * 100 if total_slots > 0 else 100.0
        if (
            coverage >= config.min_coverage_percent
            and trace.step_count / executed >= config.max_avg_executions_per_slot
        ):
            trace.terminal = "early_exit"
            break

        kind = instruction.type
        if kind == "forward":
            trace.recent_forwards.append(slot)
            if len(trace.recent_forwards) > recent_forward_window:
                del trace.recent_forwards[0]
            if position in trace.painted:
                left_painted.add(position)

            target = step_position(position, direction)
            if not in_bounds(world, target):
                trace.terminal = "boundary"
                trace.boundary_slot = slot
                break

            x, y = target
            if world[y][x] is None:
                color = weighted_color(config.color_ratios, rng)
                world[y][x] = Tile(color=color)
                trace.original_colors[target] = color

            if entry_direction is not None and is_quarter_turn(entry_direction, direction):
                trace.turn_positions.append(position)

            position = target
            entry_direction = direction
            trace.path.append(position)
            arrived = world[y][x]
            if arrived is not None and arrived.color is not None:
                trace.visited_colors.append(arrived.color)
            if returned_to_start():
                trace.terminal = "loop"
                break

        elif kind in ("left", "right"):
            direction = turn(direction, kind)
            if returned_to_start():
                trace.terminal = "loop"
                break

        elif is_call(kind):
            trace.called_functions.add(kind)  # type: ignore[arg-type]
            if slot.function == kind:
                trace.self_call_slots[slot] = None
            stack.append(CallFrame(kind))  # type: ignore[arg-type]
            trace.max_stack_depth = max(trace.max_stack_depth, len(stack))

        else:
            color = paint_color(kind)
            if color is not None and tile is not None and slot not in skip_paint_slots:
                if tile.color != color:
                    tile.color = color
                    trace.visited_colors.append(color)
                    trace.painted[position] = color

    trace.final = Pose(position, direction)
    return trace
