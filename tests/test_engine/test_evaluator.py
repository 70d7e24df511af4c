"""Tests for the constraint evaluator and the counterfactual paint check."""

from __future__ import annotations

from robopuzzle.engine.evaluator import (
    evaluate,
    executed_paint_slots,
    path_trace_instructions,
    simulate,
)
from robopuzzle.engine.interpreter import execute
from robopuzzle.engine.model import Pose, Slot


class TestPathTrace:
    def test_straight_then_corner(self) -> None:
        assert path_trace_instructions([(0, 0), (1, 0), (1, 1)], "right") == 3

    def test_reversed_start_costs_two_turns(self) -> None:
        assert path_trace_instructions([(0, 0), (1, 0), (1, 1)], "left") == 5

    def test_single_position_is_free(self) -> None:
        assert path_trace_instructions([(3, 3)], "up") == 0


class TestChecks:
    def _line_run(self, make_config, make_grid, make_program, rng, **overrides):
        config = make_config({"f1": 4}, max_steps=3, **overrides)
        program = make_program({"f1": ["forward", None, None, None]})
        trace = execute(program, config, rng, grid=make_grid(["rrrr"]), start=Pose((0, 0), "right"))
        return trace, program, config

    def test_permissive_run_passes(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(make_config, make_grid, make_program, rng)
        assert evaluate(trace, program, config, rng).success

    def test_coverage_checked_first(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_coverage_percent=80, min_tiles=99,
        )
        verdict = evaluate(trace, program, config, rng)
        assert verdict.error == "coverage"
        assert verdict.measured == 25.0
        assert verdict.required == 80.0

    def test_min_tiles(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(make_config, make_grid, make_program, rng, min_tiles=5)
        assert evaluate(trace, program, config, rng).error == "minTiles"

    def test_bounding_box_uses_longer_side(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_bounding_box=4,
        )
        assert evaluate(trace, program, config, rng).success
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_bounding_box=5,
        )
        assert evaluate(trace, program, config, rng).error == "minBoundingBox"

    def test_min_turns(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(make_config, make_grid, make_program, rng, min_turns=1)
        assert evaluate(trace, program, config, rng).error == "minTurns"

    def test_density(self, make_config, make_grid, make_program, rng) -> None:
        config = make_config({"f1": 1}, max_steps=1, max_dense_tiles=4)
        program = make_program({"f1": ["right"]})
        trace = execute(program, config, rng, grid=make_grid(["rrr", "rrr", "rrr"]), start=Pose((1, 1), "up"))
        verdict = evaluate(trace, program, config, rng)
        assert verdict.error == "density"
        assert verdict.measured == 5

    def test_stack_depth_and_self_calls(self, make_config, make_program, rng) -> None:
        config = make_config({"f1": 2}, max_steps=4, min_stack_depth=2, min_self_calls=2)
        program = make_program({"f1": ["forward", "f1"]})
        trace = execute(program, config, rng)
        verdict = evaluate(trace, program, config, rng)
        assert verdict.error == "minSelfCalls"
        assert verdict.measured == 1

    def test_path_length_before_trace_ratio(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_path_length=4, min_path_trace_ratio=5,
        )
        assert evaluate(trace, program, config, rng).error == "minPathLength"

    def test_path_trace_ratio(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_path_trace_ratio=1,
        )
        verdict = evaluate(trace, program, config, rng)
        assert verdict.error == "pathTraceRatio"
        assert verdict.measured == 3
        assert verdict.required == 4

    def test_min_conditionals(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_conditionals=1,
        )
        assert evaluate(trace, program, config, rng).error == "minConditionals"

    def test_paint_revisits_require_paint(self, make_config, make_grid, make_program, rng) -> None:
        trace, program, config = self._line_run(
            make_config, make_grid, make_program, rng, min_paint_revisits=1,
        )
        verdict = evaluate(trace, program, config, rng)
        assert verdict.error == "minPaintRevisits"
        assert verdict.measured == 0

    def test_boundary_and_loop_become_verdicts(self, make_config, make_program, rng) -> None:
        config = make_config({"f1": 1}, grid_size=1)
        attempt = simulate(make_program({"f1": ["forward"]}), config, rng)
        assert attempt.verdict.error == "boundary"

        config = make_config({"f1": 1}, max_steps=20)
        attempt = simulate(make_program({"f1": ["left"]}), config, rng)
        assert attempt.verdict.error == "loop"


class TestPaintNecessity:
    def _paint_then_walk(self, make_config, make_grid, make_program, rng, max_unnecessary: int):
        config = make_config({"f1": 3}, max_steps=3, max_unnecessary_paints=max_unnecessary)
        program = make_program({"f1": ["paint_green", "forward", "forward"]})
        return simulate(
            program, config, rng, grid=make_grid(["rrr"]), start=Pose((0, 0), "right"),
        )

    def test_removable_paint_rejected_when_none_allowed(
        self, make_config, make_grid, make_program, rng,
    ) -> None:
        attempt = self._paint_then_walk(make_config, make_grid, make_program, rng, 0)
        assert attempt.verdict.error == "unnecessaryPaint"
        assert attempt.verdict.measured == 1

    def test_removable_paint_accepted_when_check_disabled(
        self, make_config, make_grid, make_program, rng,
    ) -> None:
        attempt = self._paint_then_walk(make_config, make_grid, make_program, rng, -1)
        assert attempt.verdict.success

    def test_required_paint_passes(self, make_config, make_grid, make_program, rng) -> None:
        # The conditional forward only fires once the start tile is green.
        config = make_config({"f1": 2}, max_steps=2, min_path_length=1, max_unnecessary_paints=0)
        program = make_program({"f1": ["paint_green", ("forward", "green")]})
        attempt = simulate(
            program, config, rng, grid=make_grid(["rr"]), start=Pose((0, 0), "right"),
        )
        assert executed_paint_slots(program, attempt.trace) == [Slot("f1", 0)]
        assert attempt.verdict.success
