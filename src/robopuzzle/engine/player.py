"""Single-step replay interpreter for human play.

``GamePlayer`` runs a user program against a finished puzzle one executed
instruction at a time.  Fetching goes through the same call-stack
primitive as the executor (auto-loop of ``f1``, exhausted frames popped,
empty and mismatched slots skipped), so a solution that passes the search
plays out identically here.  Unlike the executor nothing is placed
lazily: stepping onto void or off the grid loses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from robopuzzle.engine.model import (
    CallFrame,
    Direction,
    FunctionName,
    Grid,
    Instruction,
    Position,
    Program,
    Slot,
    clone_grid,
    fetch_slot,
    in_bounds,
    is_call,
    paint_color,
    step_position,
    tile_at,
    turn,
)
from robopuzzle.engine.packager import GeneratedPuzzle

logger = logging.getLogger(__name__)

GameStatus = Literal["idle", "running", "paused", "won", "lost"]

DEFAULT_MAX_STEPS = 10_000
MAX_SKIPS_PER_STEP = 1_000
"""Fetches allowed while looking for the next executable slot."""


@dataclass
class PlayerState:
    """Everything that changes while a program plays."""

    grid: Grid
    position: Position
    direction: Direction
    stack: list[CallFrame] = field(default_factory=lambda: [CallFrame("f1")])
    status: GameStatus = "idle"
    steps: int = 0
    collected: set[Position] = field(default_factory=set)
    last_slot: Slot | None = None

    def copy(self) -> PlayerState:
        return PlayerState(
            grid=clone_grid(self.grid),
            position=self.position,
            direction=self.direction,
            stack=[CallFrame(f.function, f.pointer) for f in self.stack],
            status=self.status,
            steps=self.steps,
            collected=set(self.collected),
            last_slot=self.last_slot,
        )


class GamePlayer:
    """Step through a program on a generated puzzle."""

    def __init__(self, puzzle: GeneratedPuzzle, max_steps: int = DEFAULT_MAX_STEPS) -> None:
        self.puzzle = puzzle
        self.max_steps = max_steps
        self.program = Program.empty(puzzle.function_lengths)
        self._stars = set(puzzle.stars)
        self.state = self._initial_state()

    def _initial_state(self) -> PlayerState:
        start = self.puzzle.robot_start
        return PlayerState(
            grid=clone_grid(self.puzzle.grid),
            position=start.position,
            direction=start.direction,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, program: Program) -> None:
        self.program = program.clone()
        self.reset()

    def reset(self) -> None:
        self.state = self._initial_state()

    def start(self) -> None:
        if self.state.status in ("won", "lost"):
            self.reset()
        self.state.status = "running"
        if self.state.steps == 0:
            # a star under the start tile counts before anything runs
            self._collect_star()

    def pause(self) -> None:
        if self.state.status == "running":
            self.state.status = "paused"

    def resume(self) -> None:
        if self.state.status == "paused":
            self.state.status = "running"

    def snapshot(self) -> PlayerState:
        return self.state.copy()

    def restore(self, snapshot: PlayerState) -> None:
        self.state = snapshot.copy()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> GameStatus:
        return self.state.status

    @property
    def call_stack(self) -> list[FunctionName]:
        return [frame.function for frame in self.state.stack]

    @property
    def current_slot(self) -> Slot | None:
        """Slot the next fetch reads, if the top frame is not exhausted."""
        if not self.state.stack:
            return None
        frame = self.state.stack[-1]
        if frame.pointer >= len(self.program[frame.function]):
            return None
        return Slot(frame.function, frame.pointer)

    @property
    def stars_remaining(self) -> int:
        return len(self._stars - self.state.collected)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self) -> GameStatus:
        """Execute the next matching instruction and return the new status."""
        state = self.state
        if state.status == "idle":
            self.start()
        if state.status != "running":
            return state.status

        instruction, slot = self._fetch_executable()
        if instruction is None:
            logger.debug("No executable instruction found; program stalls")
            state.status = "lost"
            return state.status

        state.last_slot = slot
        self._execute(instruction)
        state.steps += 1

        if state.status == "running":
            self._collect_star()
        if state.status == "running":
            while state.stack and state.stack[-1].pointer >= len(self.program[state.stack[-1].function]):
                state.stack.pop()
            if not state.stack:
                state.stack.append(CallFrame("f1"))
            if state.steps >= self.max_steps:
                state.status = "lost"
        return state.status

    def run(self) -> GameStatus:
        """Step until won, lost or paused."""
        self.start()
        while self.state.status == "running":
            self.step()
        logger.info("Replay finished: %s after %d steps", self.state.status, self.state.steps)
        return self.state.status

    def _fetch_executable(self) -> tuple[Instruction | None, Slot | None]:
        state = self.state
        for _ in range(MAX_SKIPS_PER_STEP):
            slot = fetch_slot(state.stack, self.program)
            if slot is None:
                continue
            instruction = self.program.get(slot)
            if instruction is not None and instruction.matches(tile_at(state.grid, state.position)):
                return instruction, slot
        return None, None

    def _execute(self, instruction: Instruction) -> None:
        state = self.state
        kind = instruction.type
        if kind == "forward":
            target = step_position(state.position, state.direction)
            if not in_bounds(state.grid, target) or tile_at(state.grid, target) is None:
                state.status = "lost"
                return
            state.position = target
        elif kind in ("left", "right"):
            state.direction = turn(state.direction, kind)
        elif is_call(kind):
            state.stack.append(CallFrame(kind))  # type: ignore[arg-type]
        else:
            color = paint_color(kind)
            tile = tile_at(state.grid, state.position)
            if color is not None and tile is not None:
                tile.color = color

    def _collect_star(self) -> None:
        state = self.state
        if state.position in self._stars:
            state.collected.add(state.position)
        if self._stars and self._stars <= state.collected:
            state.status = "won"
