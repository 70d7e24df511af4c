"""Tests for the single-step replay player."""

from __future__ import annotations

from robopuzzle.engine.evaluator import simulate
from robopuzzle.engine.model import FUNCTIONS, Pose, Slot
from robopuzzle.engine.packager import GeneratedPuzzle, package
from robopuzzle.engine.player import GamePlayer


def _puzzle(grid, start: Pose, lengths: dict[str, int]) -> GeneratedPuzzle:
    return GeneratedPuzzle(
        grid=grid,
        robot_start=start,
        function_lengths={fn: lengths.get(fn, 0) for fn in FUNCTIONS},
        allowed_instructions=["forward", "left", "right", "f1"],
    )


class TestOutcomes:
    def test_walks_onto_star_and_wins(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rrR"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        assert player.run() == "won"
        assert player.state.steps == 2
        assert player.stars_remaining == 0

    def test_off_grid_loses(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rrR"]), Pose((0, 0), "right"), {"f1": 2}))
        player.load(make_program({"f1": ["left", "forward"]}))
        assert player.run() == "lost"
        assert player.state.position == (0, 0)

    def test_void_loses(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["r.R"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        assert player.run() == "lost"

    def test_step_budget_loses(self, make_grid, make_program) -> None:
        puzzle = _puzzle(make_grid(["rR"]), Pose((0, 0), "right"), {"f1": 1})
        player = GamePlayer(puzzle, max_steps=10)
        player.load(make_program({"f1": ["left"]}))
        assert player.run() == "lost"
        assert player.state.steps == 10

    def test_program_that_never_matches_loses(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rR"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": [("forward", "blue")]}))
        assert player.run() == "lost"
        assert player.state.steps == 0

    def test_paint_enables_conditional(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rR"]), Pose((0, 0), "right"), {"f1": 2}))
        player.load(make_program({"f1": ["paint_green", ("forward", "green")]}))
        assert player.run() == "won"
        assert player.state.grid[0][0].color == "green"
        assert player.puzzle.grid[0][0].color == "red"


class TestStepping:
    def test_call_stack_and_current_slot(self, make_grid, make_program) -> None:
        puzzle = _puzzle(make_grid(["rrR"]), Pose((0, 0), "right"), {"f1": 1, "f2": 2})
        player = GamePlayer(puzzle)
        player.load(make_program({"f1": ["f2"], "f2": ["forward", "forward"]}))
        assert player.current_slot == Slot("f1", 0)

        assert player.step() == "running"
        assert player.call_stack == ["f1", "f2"]
        assert player.current_slot == Slot("f2", 0)

        player.step()
        assert player.state.position == (1, 0)
        assert player.step() == "won"

    def test_exhausted_frames_popped_after_step(self, make_grid, make_program) -> None:
        puzzle = _puzzle(make_grid(["rrrR"]), Pose((0, 0), "right"), {"f1": 1})
        player = GamePlayer(puzzle)
        player.load(make_program({"f1": ["forward"]}))
        player.step()
        assert player.call_stack == ["f1"]
        assert player.current_slot == Slot("f1", 0)

    def test_pause_blocks_stepping(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rrR"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        player.start()
        player.pause()
        assert player.step() == "paused"
        assert player.state.steps == 0
        player.resume()
        assert player.step() == "running"

    def test_snapshot_and_restore(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rrrR"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        player.step()
        saved = player.snapshot()
        player.step()
        assert player.state.position == (2, 0)
        player.restore(saved)
        assert player.state.position == (1, 0)
        assert player.state.steps == 1

    def test_reset_after_finish(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["rR"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        assert player.run() == "won"
        player.start()
        assert player.status == "running"
        assert player.state.position == (0, 0)


class TestStartTile:
    def test_star_under_start_wins_without_stepping(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["R"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        assert player.run() == "won"
        assert player.state.steps == 0

    def test_first_step_collects_start_star(self, make_grid, make_program) -> None:
        player = GamePlayer(_puzzle(make_grid(["R"]), Pose((0, 0), "right"), {"f1": 1}))
        player.load(make_program({"f1": ["forward"]}))
        assert player.step() == "won"
        assert player.state.position == (0, 0)

    def test_early_exit_on_first_instruction_replays_as_win(self, make_config, make_program, rng) -> None:
        config = make_config({"f1": 1}, min_coverage_percent=100, max_avg_executions_per_slot=1)
        attempt = simulate(make_program({"f1": ["forward"]}), config, rng)
        assert attempt.verdict.success
        assert attempt.trace.terminal == "early_exit"

        puzzle, solution = package(attempt, config)
        assert puzzle.stars == [puzzle.robot_start.position]
        player = GamePlayer(puzzle)
        player.load(solution)
        assert player.run() == "won"
