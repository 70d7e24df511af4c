"""Candidate program generation and failure-directed repair.

Two sources of candidates feed the search driver:

* ``random_program``: a fresh program drawn slot by slot from the
  configured instruction weights, with light anti-redundancy rules.
* ``mutate``: a repair of the last failing candidate.  The failure kind
  selects a family of targeted strategies (tried in order, each with its
  own odds); anything that does not apply falls through to a generic
  chain that works on unexecuted slots, blocked slots and uncalled
  functions.

All odds live in ``MutationPolicy`` so they can be tuned without touching
the category → strategy mapping.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

from robopuzzle.config.simulation import InstructionWeights, SimulationConfig
from robopuzzle.engine.model import (
    COLORS,
    FUNCTIONS,
    PAINTS,
    TURNS,
    Color,
    FunctionName,
    Instruction,
    InstructionType,
    Program,
    Slot,
    is_call,
    paint_color,
)
from robopuzzle.engine.trace import ErrorKind, ExecutionTrace

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY_GATES: dict[str, float] = {
    "minPaintRevisits": 0.8,
    "minConditionals": 0.8,
    "minTiles": 0.8,
    "pathTraceRatio": 0.7,
    "minPathLength": 0.7,
    "minBoundingBox": 0.7,
    "minTurns": 0.7,
    "minStackDepth": 0.7,
    "minSelfCalls": 0.7,
    "unnecessaryPaint": 0.7,
}

DEFAULT_ODDS: dict[str, float] = {
    "boundary.direct": 0.6,
    "boundary.to_turn": 0.35,
    "boundary.add_condition": 0.30,
    "boundary.recolor": 0.20,
    "boundary.earlier_forward": 0.3,
    "revisits.add_paint": 0.3,
    "revisits.conditional_move": 0.4,
    "revisits.turn_after_paint": 0.35,
    "revisits.self_call": 0.3,
    "revisits.condition_executed": 0.4,
    "conditionals.condition_executed": 0.6,
    "conditionals.recolor_unexecuted": 0.5,
    "tiles.to_forward": 0.4,
    "tiles.forward_to_turn": 0.35,
    "tiles.unconditional_forward": 0.25,
    "tiles.extend_call": 0.3,
    "tiles.forward_turn_pair": 0.4,
    "trace.to_forward": 0.5,
    "trace.to_turn": 0.5,
    "path.to_forward": 0.5,
    "path.unconditional_forward": 0.3,
    "turns.forward_to_turn": 0.5,
    "turns.adjacent_turn": 0.5,
    "turns.unconditional_turn": 0.3,
    "depth.add_call": 0.5,
    "depth.unconditional_call": 0.3,
    "self_calls.convert_executed": 0.5,
    "self_calls.fill_unexecuted": 0.5,
    "paints.replace_paint": 0.5,
    "paints.depend_on_paint": 0.5,
    "generic.unblock_call": 0.25,
    "generic.drop_condition": 0.35,
    "generic.call_uncalled": 0.4,
    "generic.recolor": 0.5,
    "generic.conditional_move_forward": 0.7,
}


@dataclass
class MutationPolicy:
    """Tunable probabilities for the repair dispatcher."""

    category_gates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_GATES))
    odds: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ODDS))

    def gate(self, kind: str) -> float:
        return self.category_gates.get(kind, 0.0)

    def chance(self, name: str) -> float:
        return self.odds.get(name, DEFAULT_ODDS.get(name, 0.0))


# ---------------------------------------------------------------------------
# Fresh generation
# ---------------------------------------------------------------------------


def random_condition(
    conditional_percent: float,
    rng: random.Random,
    exclude: Color | None = None,
) -> Color | None:
    """``None`` with probability ``1 - conditional_percent``, else a colour."""
    if rng.random() * 100 >= conditional_percent:
        return None
    return rng.choice([c for c in COLORS if c != exclude])


def random_instruction_type(
    weights: InstructionWeights,
    lengths: dict[str, int],
    rng: random.Random,
    repeat_turn: InstructionType | None = None,
) -> InstructionType:
    """Weighted draw among forward / turn / call / paint.

    With *repeat_turn* set (the previous slot was that unconditional turn)
    the turn share is halved and the opposite turn is never drawn.
    """
    callable_fns = [fn for fn in FUNCTIONS if lengths.get(fn, 0) > 0]
    call_weight = weights.function_call if callable_fns else 0.0
    turn_weight = weights.turn / 2 if repeat_turn is not None else weights.turn

    roll = rng.random() * (weights.forward + turn_weight + call_weight + weights.paint)
    cumulative = weights.forward
    if roll < cumulative:
        return "forward"
    cumulative += turn_weight
    if roll < cumulative:
        if repeat_turn is not None:
            return repeat_turn
        return "left" if rng.random() < 0.5 else "right"
    cumulative += call_weight
    if roll < cumulative and callable_fns:
        return rng.choice(callable_fns)
    return rng.choice(PAINTS)


def random_program(config: SimulationConfig, rng: random.Random) -> Program:
    """Draw a fresh candidate program."""
    lengths = config.function_lengths()
    program = Program.empty(lengths)

    for fn in FUNCTIONS:
        slots = program[fn]
        for idx in range(len(slots)):
            prev = slots[idx - 1] if idx > 0 else None
            repeat_turn: InstructionType | None = None
            exclude_color: Color | None = None
            if prev is not None:
                if prev.condition is None and prev.type in TURNS:
                    repeat_turn = prev.type
                exclude_color = prev.condition

            condition = random_condition(config.conditional_percent, rng, exclude_color)
            kind = random_instruction_type(
                config.instruction_weights,
                lengths,
                rng,
                repeat_turn if condition is None else None,
            )

            # An unconditional f1 call closing f1 recurses forever.
            if fn == "f1" and idx == len(slots) - 1 and kind == "f1" and condition is None:
                if rng.random() < 0.5:
                    condition = rng.choice(COLORS)
                else:
                    kind = rng.choice([
                        t for t in ("forward", "left", "right", "f2", "f3", "f4", "f5", *PAINTS)
                        if not is_call(t) or lengths.get(t, 0) > 0
                    ])

            slots[idx] = Instruction(kind, condition)

    return program


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def most_common_color(colors: list[Color]) -> Color:
    """Most frequent visited colour; ties resolve in ``COLORS`` order."""
    counts = Counter(colors)
    best: Color = "red"
    best_count = 0
    for color in COLORS:
        if counts[color] > best_count:
            best, best_count = color, counts[color]
    return best


def blocked_by_unconditional_call(program: Program) -> set[Slot]:
    """Slots that follow an unconditional call within the same function."""
    blocked: set[Slot] = set()
    for fn in FUNCTIONS:
        seen_call = False
        for idx, instr in enumerate(program[fn]):
            if seen_call:
                blocked.add(Slot(fn, idx))
            elif instr is not None and instr.condition is None and is_call(instr.type):
                seen_call = True
    return blocked


@dataclass
class RepairContext:
    """Working state for one repair: the failing run plus a mutable clone."""

    program: Program
    trace: ExecutionTrace
    error: ErrorKind | None
    config: SimulationConfig
    rng: random.Random
    policy: MutationPolicy
    mutant: Program = field(init=False)
    all_slots: list[Slot] = field(init=False)
    executed: list[Slot] = field(init=False)
    unexecuted: list[Slot] = field(init=False)
    common_color: Color = field(init=False)

    def __post_init__(self) -> None:
        self.mutant = self.program.clone()
        self.all_slots = list(self.program.slots())
        self.executed = list(self.trace.executed_slots)
        self.unexecuted = [s for s in self.all_slots if s not in self.trace.executed_slots]
        self.common_color = most_common_color(self.trace.visited_colors)

    # -- helpers ----------------------------------------------------------

    def roll(self, name: str) -> bool:
        return self.rng.random() < self.policy.chance(name)

    def random_turn(self) -> InstructionType:
        return "left" if self.rng.random() < 0.5 else "right"

    def functions_with_slots(self) -> list[FunctionName]:
        lengths = self.config.function_lengths()
        return [fn for fn in FUNCTIONS if lengths[fn] > 0]

    def executed_where(self, predicate: Callable[[Instruction], bool]) -> list[Slot]:
        return [
            s for s in self.executed
            if (instr := self.program.get(s)) is not None and predicate(instr)
        ]

    def unexecuted_where(self, predicate: Callable[[Instruction], bool]) -> list[Slot]:
        return [
            s for s in self.unexecuted
            if (instr := self.program.get(s)) is not None and predicate(instr)
        ]

    def retype(self, slot: Slot, kind: InstructionType) -> bool:
        """Swap the instruction type at *slot*, keeping its condition."""
        instr = self.mutant.get(slot)
        if instr is None:
            return False
        self.mutant.set(slot, Instruction(kind, instr.condition))
        return True

    def recondition(self, slot: Slot, condition: Color | None) -> bool:
        instr = self.mutant.get(slot)
        if instr is None:
            return False
        self.mutant.set(slot, Instruction(instr.type, condition))
        return True

    def place(self, slot: Slot, kind: InstructionType, condition: Color | None) -> bool:
        self.mutant.set(slot, Instruction(kind, condition))
        return True

    def scan_conditional(self, predicate: Callable[[Instruction], bool], odds: str) -> bool:
        """Walk slots in order; make the first matching conditional one unconditional on a roll."""
        for slot in self.all_slots:
            instr = self.program.get(slot)
            if instr is not None and instr.condition is not None and predicate(instr):
                if self.roll(odds):
                    return self.recondition(slot, None)
        return False


Strategy = Callable[[RepairContext], bool]


def _is_forward(instr: Instruction) -> bool:
    return instr.type == "forward"


def _is_turn(instr: Instruction) -> bool:
    return instr.type in TURNS


def _is_paint(instr: Instruction) -> bool:
    return paint_color(instr.type) is not None


def _is_unconditional(instr: Instruction) -> bool:
    return instr.condition is None


def _plain_non_forward(instr: Instruction) -> bool:
    return instr.type != "forward" and not is_call(instr.type)


# -- boundary -------------------------------------------------------------


def _boundary_offender(ctx: RepairContext) -> bool:
    slot = ctx.trace.boundary_slot
    if slot is None or ctx.mutant.get(slot) is None or not ctx.roll("boundary.direct"):
        return False
    instr = ctx.mutant.get(slot)
    assert instr is not None
    roll = ctx.rng.random()
    to_turn = ctx.policy.chance("boundary.to_turn")
    add_condition = to_turn + ctx.policy.chance("boundary.add_condition")
    recolor = add_condition + ctx.policy.chance("boundary.recolor")
    if roll < to_turn:
        return ctx.retype(slot, ctx.random_turn())
    if roll < add_condition:
        if instr.condition is None:
            return ctx.recondition(slot, ctx.common_color)
        return False
    if roll < recolor:
        return ctx.recondition(slot, ctx.rng.choice([c for c in COLORS if c != instr.condition]))
    return False


def _boundary_earlier_forward(ctx: RepairContext) -> bool:
    history = ctx.trace.recent_forwards
    if len(history) <= 1 or not ctx.roll("boundary.earlier_forward"):
        return False
    return ctx.retype(ctx.rng.choice(history[:-1]), ctx.random_turn())


# -- paint revisits -------------------------------------------------------


def _revisits_add_paint(ctx: RepairContext) -> bool:
    if not ctx.roll("revisits.add_paint"):
        return False
    candidates = ctx.executed_where(lambda i: not _is_paint(i))
    return bool(candidates) and ctx.retype(ctx.rng.choice(candidates), ctx.rng.choice(PAINTS))


def _revisits_conditional_move(ctx: RepairContext) -> bool:
    if not ctx.roll("revisits.conditional_move") or not ctx.unexecuted:
        return False
    kind = "forward" if ctx.roll("generic.conditional_move_forward") else ctx.random_turn()
    return ctx.place(ctx.rng.choice(ctx.unexecuted), kind, ctx.common_color)


def _revisits_turn_after_paint(ctx: RepairContext) -> bool:
    paints = ctx.executed_where(_is_paint)
    if not paints or not ctx.roll("revisits.turn_after_paint"):
        return False
    slot = ctx.rng.choice(paints)
    if slot.index + 1 >= len(ctx.program[slot.function]):
        return False
    return ctx.place(Slot(slot.function, slot.index + 1), ctx.random_turn(), None)


def _revisits_self_call(ctx: RepairContext) -> bool:
    if not ctx.roll("revisits.self_call") or not ctx.unexecuted:
        return False
    slot = ctx.rng.choice(ctx.unexecuted)
    return ctx.place(slot, slot.function, ctx.common_color)


def _revisits_condition_executed(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(_is_unconditional)
    if not candidates or not ctx.roll("revisits.condition_executed"):
        return False
    return ctx.recondition(ctx.rng.choice(candidates), ctx.common_color)


# -- conditionals ---------------------------------------------------------


def _conditionals_condition_executed(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(_is_unconditional)
    if not candidates or not ctx.roll("conditionals.condition_executed"):
        return False
    return ctx.recondition(ctx.rng.choice(candidates), ctx.common_color)


def _conditionals_recolor_unexecuted(ctx: RepairContext) -> bool:
    candidates = ctx.unexecuted_where(lambda i: i.condition is not None)
    if not candidates or not ctx.roll("conditionals.recolor_unexecuted"):
        return False
    return ctx.recondition(ctx.rng.choice(candidates), ctx.common_color)


def _conditionals_fill_unexecuted(ctx: RepairContext) -> bool:
    if not ctx.unexecuted:
        return False
    kind = random_instruction_type(
        ctx.config.instruction_weights, ctx.config.function_lengths(), ctx.rng,
    )
    return ctx.place(ctx.rng.choice(ctx.unexecuted), kind, ctx.common_color)


# -- tiles ----------------------------------------------------------------


def _tiles_to_forward(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(_plain_non_forward)
    if not candidates or not ctx.roll("tiles.to_forward"):
        return False
    return ctx.retype(ctx.rng.choice(candidates), "forward")


def _tiles_forward_to_turn(ctx: RepairContext) -> bool:
    forwards = ctx.executed_where(_is_forward)
    if len(forwards) <= 3 or not ctx.roll("tiles.forward_to_turn"):
        return False
    return ctx.retype(ctx.rng.choice(forwards), ctx.random_turn())


def _tiles_unconditional_forward(ctx: RepairContext) -> bool:
    return ctx.scan_conditional(_is_forward, "tiles.unconditional_forward")


def _tiles_extend_call(ctx: RepairContext) -> bool:
    if not ctx.roll("tiles.extend_call"):
        return False
    targets = ctx.functions_with_slots()
    if not targets or not ctx.unexecuted:
        return False
    return ctx.place(ctx.rng.choice(ctx.unexecuted), ctx.rng.choice(targets), None)


def _tiles_forward_turn_pair(ctx: RepairContext) -> bool:
    if len(ctx.unexecuted) < 2 or not ctx.roll("tiles.forward_turn_pair"):
        return False
    pending = set(ctx.unexecuted)
    for slot in ctx.all_slots:
        follower = Slot(slot.function, slot.index + 1)
        if slot in pending and follower in pending:
            ctx.place(slot, "forward", None)
            return ctx.place(follower, ctx.random_turn(), None)
    return False


def _fill_unconditional_forward(ctx: RepairContext) -> bool:
    if not ctx.unexecuted:
        return False
    return ctx.place(ctx.rng.choice(ctx.unexecuted), "forward", None)


# -- path trace ratio -----------------------------------------------------


def _trace_to_forward(ctx: RepairContext) -> bool:
    if not ctx.roll("trace.to_forward"):
        return False
    candidates = ctx.executed_where(lambda i: i.type != "forward" and not _is_turn(i) and not is_call(i.type))
    return bool(candidates) and ctx.retype(ctx.rng.choice(candidates), "forward")


def _trace_to_turn(ctx: RepairContext) -> bool:
    if not ctx.roll("trace.to_turn"):
        return False
    candidates = ctx.executed_where(lambda i: not _is_turn(i))
    return bool(candidates) and ctx.retype(ctx.rng.choice(candidates), ctx.random_turn())


def _trace_fill_unexecuted(ctx: RepairContext) -> bool:
    if not ctx.unexecuted:
        return False
    kind = "forward" if ctx.roll("generic.conditional_move_forward") else ctx.random_turn()
    return ctx.place(ctx.rng.choice(ctx.unexecuted), kind, None)


# -- path length / bounding box -------------------------------------------


def _path_to_forward(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(_plain_non_forward)
    if not candidates or not ctx.roll("path.to_forward"):
        return False
    return ctx.retype(ctx.rng.choice(candidates), "forward")


def _path_unconditional_forward(ctx: RepairContext) -> bool:
    return ctx.scan_conditional(_is_forward, "path.unconditional_forward")


# -- turns ----------------------------------------------------------------


def _turns_forward_to_turn(ctx: RepairContext) -> bool:
    forwards = ctx.executed_where(_is_forward)
    if not forwards or not ctx.roll("turns.forward_to_turn"):
        return False
    return ctx.retype(ctx.rng.choice(forwards), ctx.random_turn())


def _turns_adjacent_turn(ctx: RepairContext) -> bool:
    if not ctx.unexecuted or not ctx.roll("turns.adjacent_turn"):
        return False
    done = ctx.trace.executed_slots
    adjacent = [
        s for s in ctx.unexecuted
        if Slot(s.function, s.index - 1) in done or Slot(s.function, s.index + 1) in done
    ]
    if not adjacent:
        return False
    return ctx.place(ctx.rng.choice(adjacent), ctx.random_turn(), None)


def _turns_unconditional_turn(ctx: RepairContext) -> bool:
    return ctx.scan_conditional(_is_turn, "turns.unconditional_turn")


def _turns_replace_any(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(lambda i: not _is_turn(i))
    return bool(candidates) and ctx.retype(ctx.rng.choice(candidates), ctx.random_turn())


# -- stack depth ----------------------------------------------------------


def _depth_add_call(ctx: RepairContext) -> bool:
    targets = ctx.functions_with_slots()
    candidates = ctx.executed_where(lambda i: not is_call(i.type))
    if not targets or not candidates or not ctx.roll("depth.add_call"):
        return False
    return ctx.retype(ctx.rng.choice(candidates), ctx.rng.choice(targets))


def _depth_unconditional_call(ctx: RepairContext) -> bool:
    return ctx.scan_conditional(lambda i: is_call(i.type), "depth.unconditional_call")


def _depth_fill_unexecuted(ctx: RepairContext) -> bool:
    targets = ctx.functions_with_slots()
    if not targets or not ctx.unexecuted:
        return False
    return ctx.place(ctx.rng.choice(ctx.unexecuted), ctx.rng.choice(targets), None)


# -- self calls -----------------------------------------------------------


def _self_calls_convert_executed(ctx: RepairContext) -> bool:
    candidates = ctx.executed_where(lambda i: not is_call(i.type))
    if not candidates or not ctx.roll("self_calls.convert_executed"):
        return False
    slot = ctx.rng.choice(candidates)
    return ctx.place(slot, slot.function, ctx.common_color)


def _self_calls_fill_unexecuted(ctx: RepairContext) -> bool:
    if not ctx.unexecuted or not ctx.roll("self_calls.fill_unexecuted"):
        return False
    slot = ctx.rng.choice(ctx.unexecuted)
    return ctx.place(slot, slot.function, ctx.common_color)


def _self_calls_recolor(ctx: RepairContext) -> bool:
    candidates = [
        s for s in ctx.unexecuted
        if (instr := ctx.program.get(s)) is not None
        and instr.type == s.function
        and instr.condition not in (None, ctx.common_color)
    ]
    return bool(candidates) and ctx.recondition(ctx.rng.choice(candidates), ctx.common_color)


# -- unnecessary paints ---------------------------------------------------


def _paints_replace(ctx: RepairContext) -> bool:
    paints = ctx.executed_where(_is_paint)
    if not paints or not ctx.roll("paints.replace_paint"):
        return False
    kind = "forward" if ctx.rng.random() < 0.5 else ctx.random_turn()
    return ctx.retype(ctx.rng.choice(paints), kind)


def _paints_depend_on_paint(ctx: RepairContext) -> bool:
    painted = sorted(set(ctx.trace.painted.values()), key=COLORS.index)
    candidates = ctx.executed_where(lambda i: _is_unconditional(i) and not _is_paint(i))
    if not painted or not candidates or not ctx.roll("paints.depend_on_paint"):
        return False
    return ctx.recondition(ctx.rng.choice(candidates), ctx.rng.choice(painted))


def _paints_recolor(ctx: RepairContext) -> bool:
    paints = ctx.executed_where(_is_paint)
    if not paints:
        return False
    slot = ctx.rng.choice(paints)
    current = ctx.program.get(slot)
    assert current is not None
    return ctx.retype(slot, ctx.rng.choice([p for p in PAINTS if p != current.type]))


# -- generic chain --------------------------------------------------------


def _generic_unblock_call(ctx: RepairContext) -> bool:
    blocked = blocked_by_unconditional_call(ctx.program)
    candidates = [s for s in ctx.unexecuted if s in blocked]
    if not candidates or not ctx.roll("generic.unblock_call"):
        return False
    slot = ctx.rng.choice(candidates)
    for idx in range(slot.index - 1, -1, -1):
        caller = Slot(slot.function, idx)
        instr = ctx.mutant.get(caller)
        if instr is not None and instr.condition is None and is_call(instr.type):
            return ctx.recondition(caller, ctx.common_color)
    return False


def _generic_drop_condition(ctx: RepairContext) -> bool:
    if not ctx.unexecuted or not ctx.roll("generic.drop_condition"):
        return False
    slot = ctx.rng.choice(ctx.unexecuted)
    instr = ctx.mutant.get(slot)
    if instr is None or instr.condition is None:
        return False
    return ctx.recondition(slot, None)


def _generic_call_uncalled(ctx: RepairContext) -> bool:
    uncalled = [fn for fn in ctx.functions_with_slots() if fn not in ctx.trace.called_functions]
    if not uncalled or not ctx.roll("generic.call_uncalled"):
        return False
    target = ctx.rng.choice(uncalled)
    guarded = [
        s for s in ctx.all_slots
        if (instr := ctx.program.get(s)) is not None
        and instr.type == target
        and instr.condition is not None
    ]
    if guarded:
        return ctx.recondition(ctx.rng.choice(guarded), None)
    if ctx.executed:
        return ctx.place(ctx.rng.choice(ctx.executed), target, None)
    return False


def _generic_recolor(ctx: RepairContext) -> bool:
    if not ctx.unexecuted or not ctx.roll("generic.recolor"):
        return False
    slot = ctx.rng.choice(ctx.unexecuted)
    instr = ctx.mutant.get(slot)
    if instr is None or instr.condition == ctx.common_color:
        return False
    return ctx.recondition(slot, ctx.common_color)


def _random_fill(ctx: RepairContext, pool: list[Slot]) -> bool:
    if not pool:
        return False
    kind = random_instruction_type(
        ctx.config.instruction_weights, ctx.config.function_lengths(), ctx.rng,
    )
    condition = random_condition(ctx.config.conditional_percent, ctx.rng)
    return ctx.place(ctx.rng.choice(pool), kind, condition)


def _generic_random_unexecuted(ctx: RepairContext) -> bool:
    return _random_fill(ctx, ctx.unexecuted)


def _generic_random_any(ctx: RepairContext) -> bool:
    return _random_fill(ctx, ctx.all_slots)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_PATH_LENGTH: list[Strategy] = [
    _path_to_forward,
    _path_unconditional_forward,
    _fill_unconditional_forward,
]

CATEGORY_STRATEGIES: dict[str, list[Strategy]] = {
    "boundary": [_boundary_offender, _boundary_earlier_forward],
    "minPaintRevisits": [
        _revisits_add_paint,
        _revisits_conditional_move,
        _revisits_turn_after_paint,
        _revisits_self_call,
        _revisits_condition_executed,
    ],
    "minConditionals": [
        _conditionals_condition_executed,
        _conditionals_recolor_unexecuted,
        _conditionals_fill_unexecuted,
    ],
    "minTiles": [
        _tiles_to_forward,
        _tiles_forward_to_turn,
        _tiles_unconditional_forward,
        _tiles_extend_call,
        _tiles_forward_turn_pair,
        _fill_unconditional_forward,
    ],
    "pathTraceRatio": [_trace_to_forward, _trace_to_turn, _trace_fill_unexecuted],
    "minPathLength": _PATH_LENGTH,
    "minBoundingBox": _PATH_LENGTH,
    "minTurns": [
        _turns_forward_to_turn,
        _turns_adjacent_turn,
        _turns_unconditional_turn,
        _turns_replace_any,
    ],
    "minStackDepth": [_depth_add_call, _depth_unconditional_call, _depth_fill_unexecuted],
    "minSelfCalls": [
        _self_calls_convert_executed,
        _self_calls_fill_unexecuted,
        _self_calls_recolor,
    ],
    "unnecessaryPaint": [_paints_replace, _paints_depend_on_paint, _paints_recolor],
}

GENERIC_STRATEGIES: list[Strategy] = [
    _generic_unblock_call,
    _generic_drop_condition,
    _generic_call_uncalled,
    _generic_recolor,
    _generic_random_unexecuted,
    _generic_random_any,
]


def mutate(
    program: Program,
    trace: ExecutionTrace,
    error: ErrorKind | None,
    config: SimulationConfig,
    rng: random.Random,
    policy: MutationPolicy | None = None,
) -> Program:
    """Return a repaired copy of *program* aimed at the failure *error*.

    *program* itself is never modified.  Boundary repairs are always
    attempted first; other categories pass a gate roll before their
    family is tried.
    """
    ctx = RepairContext(program, trace, error, config, rng, policy or MutationPolicy())
    family = CATEGORY_STRATEGIES.get(error or "", [])
    if family and (error == "boundary" or rng.random() < ctx.policy.gate(error or "")):
        for strategy in family:
            if strategy(ctx):
                logger.debug("Repair %s applied for %s", strategy.__name__, error)
                return ctx.mutant
    for strategy in GENERIC_STRATEGIES:
        if strategy(ctx):
            return ctx.mutant
    return ctx.mutant
