"""Shared test fixtures for robopuzzle.

Provides a seeded random source, a permissive configuration factory and
small builders for hand-made grids and programs so individual test
modules stay focused.
"""

from __future__ import annotations

import random
from typing import Any, Callable

import pytest

from robopuzzle.config.simulation import (
    ColorRatios,
    InstructionWeights,
    SimulationConfig,
    SlotsPerFunction,
)
from robopuzzle.engine.model import FUNCTIONS, Grid, Instruction, Program, Tile

# ---------------------------------------------------------------------------
# Randomness
# ---------------------------------------------------------------------------


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

PERMISSIVE: dict[str, Any] = {
    "max_steps": 50,
    "grid_size": 16,
    "min_coverage_percent": 0,
    "conditional_percent": 0,
    "min_tiles": 0,
    "min_bounding_box": 0,
    "min_turns": 0,
    "max_dense_tiles": 1000,
    "max_avg_executions_per_slot": 1000,
    "min_stack_depth": 0,
    "min_self_calls": 0,
    "min_path_trace_ratio": 0,
    "min_path_length": 0,
    "min_conditionals": 0,
    "min_paint_revisits": 0,
    "max_unnecessary_paints": -1,
}


def build_config(slots: dict[str, int] | None = None, **overrides: Any) -> SimulationConfig:
    """Every threshold off unless overridden; ``slots`` defaults to ``f1=5``."""
    lengths = {fn: 0 for fn in FUNCTIONS}
    lengths.update(slots or {"f1": 5})
    return SimulationConfig(
        slots_per_function=SlotsPerFunction(**lengths),
        **{**PERMISSIVE, **overrides},
    )


@pytest.fixture()
def make_config() -> Callable[..., SimulationConfig]:
    return build_config


@pytest.fixture()
def generous_config() -> SimulationConfig:
    """A small f1-only search that succeeds within a handful of attempts."""
    return build_config(
        {"f1": 5},
        max_steps=500,
        grid_size=16,
        color_ratios=ColorRatios(red=1, green=1, blue=0),
        conditional_percent=30,
        instruction_weights=InstructionWeights(forward=4, turn=3, function_call=0, paint=0),
        min_coverage_percent=20,
        min_tiles=2,
        min_path_length=1,
        max_avg_executions_per_slot=5,
        auto_restart_after=500,
    )


# ---------------------------------------------------------------------------
# Grids and programs
# ---------------------------------------------------------------------------

_CELL_COLORS = {"r": "red", "g": "green", "b": "blue"}


def build_grid(rows: list[str]) -> Grid:
    """``r``/``g``/``b`` tiles, ``.`` void; upper case places a star."""
    grid: Grid = []
    for row in rows:
        cells: list[Tile | None] = []
        for char in row:
            if char == ".":
                cells.append(None)
            else:
                cells.append(Tile(color=_CELL_COLORS[char.lower()], has_star=char.isupper()))
        grid.append(cells)
    return grid


def build_program(functions: dict[str, list[Any]]) -> Program:
    """Slots are ``None``, a type name, or a ``(type, condition)`` pair."""
    program: dict[str, list[Instruction | None]] = {fn: [] for fn in FUNCTIONS}
    for fn, slots in functions.items():
        for entry in slots:
            if entry is None:
                program[fn].append(None)
            elif isinstance(entry, str):
                program[fn].append(Instruction(entry))  # type: ignore[arg-type]
            else:
                program[fn].append(Instruction(*entry))
    return Program(program)  # type: ignore[arg-type]


@pytest.fixture()
def make_grid() -> Callable[[list[str]], Grid]:
    return build_grid


@pytest.fixture()
def make_program() -> Callable[[dict[str, list[Any]]], Program]:
    return build_program
