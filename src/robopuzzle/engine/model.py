"""Grid-world and program data model.

Defines the value types shared by the executor, the evaluator, the search
driver and the replay player: tile colours, directions, tiles and grids,
robot poses, instructions, program slots, and the call-stack primitives
that give both interpreters identical step semantics.

Grids are rectangular ``list[list[Tile | None]]`` (``None`` = void) indexed
``grid[y][x]``.  Numeric analysis of the placed-tile layout is done on a
boolean numpy occupancy mask.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, NamedTuple, cast

import numpy as np

logger = logging.getLogger(__name__)

Color = Literal["red", "green", "blue"]
Direction = Literal["up", "down", "left", "right"]
FunctionName = Literal["f1", "f2", "f3", "f4", "f5"]
InstructionType = Literal[
    "forward",
    "left",
    "right",
    "f1",
    "f2",
    "f3",
    "f4",
    "f5",
    "paint_red",
    "paint_green",
    "paint_blue",
    "noop",
]

Position = tuple[int, int]
"""(x, y) as column, row."""

COLORS: tuple[Color, ...] = ("red", "green", "blue")
DIRECTIONS: tuple[Direction, ...] = ("up", "down", "left", "right")
FUNCTIONS: tuple[FunctionName, ...] = ("f1", "f2", "f3", "f4", "f5")
PAINTS: tuple[InstructionType, ...] = ("paint_red", "paint_green", "paint_blue")
TURNS: tuple[InstructionType, ...] = ("left", "right")
INSTRUCTION_TYPES: tuple[InstructionType, ...] = (
    "forward", "left", "right", *FUNCTIONS, *PAINTS, "noop",
)

DIRECTION_DELTAS: dict[Direction, Position] = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}

TURN_LEFT: dict[Direction, Direction] = {
    "up": "left",
    "left": "down",
    "down": "right",
    "right": "up",
}

TURN_RIGHT: dict[Direction, Direction] = {
    "up": "right",
    "right": "down",
    "down": "left",
    "left": "up",
}

OPPOSITE: dict[Direction, Direction] = {
    "up": "down",
    "down": "up",
    "left": "right",
    "right": "left",
}

# Clockwise order used for turn distances.
_CLOCKWISE: tuple[Direction, ...] = ("up", "right", "down", "left")


# ---------------------------------------------------------------------------
# Direction helpers
# ---------------------------------------------------------------------------


def is_quarter_turn(entry: Direction, exit_: Direction) -> bool:
    """True when *exit_* is neither a straight continuation nor a reversal."""
    return exit_ != entry and exit_ != OPPOSITE[entry]


def turn_distance(a: Direction, b: Direction) -> int:
    """Minimal number of 90° turns between two facings (0, 1 or 2)."""
    diff = abs(_CLOCKWISE.index(a) - _CLOCKWISE.index(b))
    return min(diff, 4 - diff)


def direction_between(start: Position, end: Position) -> Direction:
    """Facing needed to step from *start* to the orthogonally adjacent *end*."""
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    if dx == 1:
        return "right"
    if dx == -1:
        return "left"
    if dy == 1:
        return "down"
    return "up"


def paint_color(instruction_type: str) -> Color | None:
    """Return the colour a ``paint_*`` instruction applies, else ``None``."""
    if instruction_type in PAINTS:
        return cast(Color, instruction_type.removeprefix("paint_"))
    return None


def is_call(instruction_type: str) -> bool:
    return instruction_type in FUNCTIONS


# ---------------------------------------------------------------------------
# Tiles and grids
# ---------------------------------------------------------------------------


@dataclass
class Tile:
    """A traversable cell.  ``color`` changes when the robot paints it."""

    color: Color | None
    has_star: bool = False

    def copy(self) -> Tile:
        return Tile(color=self.color, has_star=self.has_star)

    def to_record(self) -> dict[str, Any]:
        return {"color": self.color, "hasStar": self.has_star}


Grid = list[list[Tile | None]]


def empty_grid(width: int, height: int | None = None) -> Grid:
    """A grid of void cells."""
    rows = width if height is None else height
    return [[None for _ in range(width)] for _ in range(rows)]


def clone_grid(grid: Grid) -> Grid:
    return [[tile.copy() if tile else None for tile in row] for row in grid]


def grid_size(grid: Grid) -> tuple[int, int]:
    """(width, height) of a rectangular grid."""
    height = len(grid)
    width = len(grid[0]) if height else 0
    return width, height


def in_bounds(grid: Grid, pos: Position) -> bool:
    width, height = grid_size(grid)
    return 0 <= pos[0] < width and 0 <= pos[1] < height


def tile_at(grid: Grid, pos: Position) -> Tile | None:
    """Tile at *pos*, or ``None`` for void and off-grid positions."""
    if not in_bounds(grid, pos):
        return None
    return grid[pos[1]][pos[0]]


def occupancy(grid: Grid) -> np.ndarray:
    """Boolean mask (rows × cols) of placed tiles."""
    return np.array(
        [[tile is not None for tile in row] for row in grid], dtype=bool,
    ).reshape(len(grid), grid_size(grid)[0])


def count_tiles(grid: Grid) -> int:
    return int(occupancy(grid).sum())


def bounding_box(grid: Grid) -> tuple[int, int]:
    """(width, height) of the smallest rectangle holding every placed tile."""
    mask = occupancy(grid)
    if not mask.any():
        return (0, 0)
    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    return (int(cols[-1] - cols[0] + 1), int(rows[-1] - rows[0] + 1))


def count_dense_tiles(grid: Grid, min_neighbours: int = 3) -> int:
    """Placed tiles with at least *min_neighbours* orthogonal placed neighbours."""
    mask = occupancy(grid)
    if mask.size == 0:
        return 0
    padded = np.pad(mask, 1, mode="constant", constant_values=False).astype(int)
    neighbours = (
        padded[:-2, 1:-1] + padded[2:, 1:-1] + padded[1:-1, :-2] + padded[1:-1, 2:]
    )
    return int(np.count_nonzero(mask & (neighbours >= min_neighbours)))


def grid_to_records(grid: Grid) -> list[list[dict[str, Any] | None]]:
    return [[tile.to_record() if tile else None for tile in row] for row in grid]


# ---------------------------------------------------------------------------
# Robot pose
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pose:
    position: Position
    direction: Direction

    def to_record(self) -> dict[str, Any]:
        x, y = self.position
        return {"position": {"x": x, "y": y}, "direction": self.direction}


# ---------------------------------------------------------------------------
# Instructions and programs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instruction:
    """One filled slot.  ``condition=None`` means unconditional."""

    type: InstructionType
    condition: Color | None = None

    def matches(self, tile: Tile | None) -> bool:
        """Whether the instruction runs while standing on *tile*."""
        if self.condition is None:
            return True
        return tile is not None and tile.color == self.condition

    def to_record(self) -> dict[str, Any]:
        return {"type": self.type, "condition": self.condition}


class Slot(NamedTuple):
    """Address of one instruction slot, rendered ``"f1-0"``."""

    function: FunctionName
    index: int

    def __str__(self) -> str:
        return f"{self.function}-{self.index}"

    @classmethod
    def parse(cls, key: str) -> Slot:
        fn, _, idx = key.partition("-")
        if fn not in FUNCTIONS or not idx.isdigit():
            raise ValueError(f"Invalid slot key: {key!r}")
        return cls(cast(FunctionName, fn), int(idx))


@dataclass
class Program:
    """Fixed-length slot lists per function.

    Programs are treated as values: mutation code always works on a
    ``clone()``; slot list lengths never change after construction.
    """

    functions: dict[FunctionName, list[Instruction | None]] = field(
        default_factory=lambda: {fn: [] for fn in FUNCTIONS},
    )

    @classmethod
    def empty(cls, lengths: dict[str, int]) -> Program:
        return cls({fn: [None] * int(lengths.get(fn, 0)) for fn in FUNCTIONS})

    def __getitem__(self, fn: FunctionName) -> list[Instruction | None]:
        return self.functions[fn]

    def get(self, slot: Slot) -> Instruction | None:
        return self.functions[slot.function][slot.index]

    def set(self, slot: Slot, instruction: Instruction | None) -> None:
        slots = self.functions[slot.function]
        if not 0 <= slot.index < len(slots):
            raise IndexError(f"Slot {slot} outside function length {len(slots)}")
        slots[slot.index] = instruction

    def clone(self) -> Program:
        return Program({fn: list(slots) for fn, slots in self.functions.items()})

    def slots(self) -> Iterator[Slot]:
        """Every slot address in function order."""
        for fn in FUNCTIONS:
            for idx in range(len(self.functions[fn])):
                yield Slot(fn, idx)

    @property
    def total_slots(self) -> int:
        return sum(len(slots) for slots in self.functions.values())

    def instruction_count(self) -> int:
        """Filled, non-noop slots."""
        return sum(
            1
            for slots in self.functions.values()
            for instr in slots
            if instr is not None and instr.type != "noop"
        )

    def signature(self) -> str:
        """Canonical text form used for search de-duplication."""
        parts: list[str] = []
        for fn in FUNCTIONS:
            for instr in self.functions[fn]:
                if instr is None:
                    parts.append("empty")
                else:
                    parts.append(f"{instr.type}:{instr.condition or 'null'}")
            parts.append("|")
        return ",".join(parts)

    def pruned(self, keep: set[Slot] | dict[Slot, Any]) -> Program:
        """Copy with every slot outside *keep* emptied."""
        return Program({
            fn: [
                instr if Slot(fn, idx) in keep else None
                for idx, instr in enumerate(slots)
            ]
            for fn, slots in self.functions.items()
        })

    def to_record(self) -> dict[str, list[dict[str, Any] | None]]:
        return {
            fn: [instr.to_record() if instr else None for instr in self.functions[fn]]
            for fn in FUNCTIONS
        }


# ---------------------------------------------------------------------------
# Call stack primitives (shared by executor and replay player)
# ---------------------------------------------------------------------------


@dataclass
class CallFrame:
    function: FunctionName
    pointer: int = 0


def fetch_slot(stack: list[CallFrame], program: Program) -> Slot | None:
    """Advance the call stack by one fetch.

    An empty stack re-enters ``f1`` (the root function loops forever).  An
    exhausted top frame is popped and ``None`` is returned; otherwise the
    current slot is returned and the frame's pointer moves past it.
    """
    if not stack:
        stack.append(CallFrame("f1"))
    frame = stack[-1]
    if frame.pointer >= len(program[frame.function]):
        stack.pop()
        return None
    slot = Slot(frame.function, frame.pointer)
    frame.pointer += 1
    return slot


def turn(direction: Direction, instruction_type: str) -> Direction:
    if instruction_type == "left":
        return TURN_LEFT[direction]
    return TURN_RIGHT[direction]


def step_position(pos: Position, direction: Direction) -> Position:
    dx, dy = DIRECTION_DELTAS[direction]
    return (pos[0] + dx, pos[1] + dy)
