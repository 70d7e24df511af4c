"""Difficulty configuration for puzzle synthesis.

A ``SimulationConfig`` holds every threshold the executor, the evaluator
and the search driver consult.  It is frozen: one instance is shared,
read-only, by every attempt of a search run.

Field names are snake_case; the camelCase aliases accept the JSON records
stored alongside generated puzzles (``model_dump(by_alias=True)`` writes
them back).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
)


class SlotsPerFunction(BaseModel):
    model_config = _MODEL_CONFIG

    f1: int = Field(default=10, ge=0, le=20)
    f2: int = Field(default=10, ge=0, le=20)
    f3: int = Field(default=10, ge=0, le=20)
    f4: int = Field(default=10, ge=0, le=20)
    f5: int = Field(default=10, ge=0, le=20)

    def as_dict(self) -> dict[str, int]:
        return {"f1": self.f1, "f2": self.f2, "f3": self.f3, "f4": self.f4, "f5": self.f5}

    @property
    def total(self) -> int:
        return sum(self.as_dict().values())


class ColorRatios(BaseModel):
    """Relative weights for the colour of lazily placed tiles."""

    model_config = _MODEL_CONFIG

    red: float = Field(default=1.0, ge=0.0)
    green: float = Field(default=1.0, ge=0.0)
    blue: float = Field(default=1.0, ge=0.0)


class InstructionWeights(BaseModel):
    """Relative weights for instruction types in fresh programs."""

    model_config = _MODEL_CONFIG

    forward: float = Field(default=3.0, ge=0.0)
    turn: float = Field(default=2.0, ge=0.0)
    """Shared by ``left`` and ``right``."""
    function_call: float = Field(default=3.0, ge=0.0)
    paint: float = Field(default=2.0, ge=0.0)


class SimulationConfig(BaseModel):
    """All tunable thresholds of one generation run."""

    model_config = _MODEL_CONFIG

    slots_per_function: SlotsPerFunction = Field(default_factory=SlotsPerFunction)
    max_steps: int = Field(default=1000, ge=1)
    grid_size: int = Field(default=16, ge=1, le=256)
    color_ratios: ColorRatios = Field(default_factory=ColorRatios)
    min_coverage_percent: float = Field(default=80.0, ge=0.0, le=100.0)
    conditional_percent: float = Field(default=70.0, ge=0.0, le=100.0)
    instruction_weights: InstructionWeights = Field(default_factory=InstructionWeights)
    min_tiles: int = Field(default=12, ge=0)
    min_bounding_box: int = Field(default=3, ge=0)
    min_turns: int = Field(default=2, ge=0)
    max_dense_tiles: int = Field(default=3, ge=0)
    """Tiles with 3+ placed orthogonal neighbours allowed."""
    max_avg_executions_per_slot: float = Field(default=1.0, ge=0.0)
    """Early-exit threshold on steps / executed slots."""
    min_stack_depth: int = Field(default=1, ge=0)
    min_self_calls: int = Field(default=0, ge=0)
    auto_restart_after: int = Field(default=1000, ge=1)
    min_path_trace_ratio: float = Field(default=1.0, ge=0.0)
    disable_loop_check: bool = False
    min_path_length: int = Field(default=0, ge=0)
    min_conditionals: int = Field(default=0, ge=0)
    min_paint_revisits: int = Field(default=0, ge=0)
    max_unnecessary_paints: int = Field(default=-1, ge=-1)
    """-1 disables the counterfactual paint check; 0 requires every paint."""

    @property
    def total_slots(self) -> int:
        return self.slots_per_function.total

    def function_lengths(self) -> dict[str, int]:
        return self.slots_per_function.as_dict()

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

PRESETS: dict[str, SimulationConfig] = {
    "default": SimulationConfig(),
    "easy": SimulationConfig(
        slots_per_function=SlotsPerFunction(f1=5, f2=0, f3=0, f4=0, f5=0),
        max_steps=500,
        grid_size=16,
        color_ratios=ColorRatios(red=1, green=1, blue=0),
        min_coverage_percent=80,
        conditional_percent=30,
        instruction_weights=InstructionWeights(forward=4, turn=3, function_call=0, paint=0),
        min_tiles=8,
        min_bounding_box=3,
        min_turns=2,
        max_dense_tiles=3,
        max_avg_executions_per_slot=5,
        min_stack_depth=1,
        min_self_calls=0,
        auto_restart_after=500,
        min_path_trace_ratio=1.0,
        min_path_length=10,
    ),
    "challenge": SimulationConfig(
        slots_per_function=SlotsPerFunction(f1=5, f2=3, f3=0, f4=0, f5=0),
        max_steps=1000,
        grid_size=16,
        color_ratios=ColorRatios(red=1, green=1, blue=1),
        min_coverage_percent=80,
        conditional_percent=50,
        instruction_weights=InstructionWeights(forward=3, turn=2, function_call=3, paint=0),
        min_tiles=12,
        min_bounding_box=4,
        min_turns=3,
        max_dense_tiles=4,
        max_avg_executions_per_slot=8,
        min_stack_depth=2,
        min_self_calls=1,
        auto_restart_after=1000,
        min_path_trace_ratio=1.2,
        min_path_length=20,
        min_conditionals=2,
    ),
}


def load_config(path: Path | None = None, preset: str = "default") -> SimulationConfig:
    """Load a config from a JSON file, or return a named preset.

    The file may hold either a bare config record or an object with a
    ``"config"`` key (the shape of stored generation profiles).
    """
    if path is None:
        if preset not in PRESETS:
            raise KeyError(f"Unknown preset {preset!r}; choose from {sorted(PRESETS)}")
        return PRESETS[preset]

    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and isinstance(raw.get("config"), dict):
        raw = raw["config"]
    config = SimulationConfig.model_validate(raw)
    logger.info("Loaded simulation config from %s (%d slots)", path, config.total_slots)
    return config
