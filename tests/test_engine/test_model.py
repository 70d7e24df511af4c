"""Tests for the grid-world and program data model."""

from __future__ import annotations

import pytest

from robopuzzle.engine.model import (
    CallFrame,
    Instruction,
    Program,
    Slot,
    Tile,
    bounding_box,
    count_dense_tiles,
    count_tiles,
    direction_between,
    empty_grid,
    fetch_slot,
    is_quarter_turn,
    paint_color,
    tile_at,
    turn,
    turn_distance,
)


class TestDirections:
    def test_turns_are_inverse(self) -> None:
        for direction in ("up", "down", "left", "right"):
            assert turn(turn(direction, "left"), "right") == direction

    def test_four_right_turns_return_home(self) -> None:
        facing = "up"
        for _ in range(4):
            facing = turn(facing, "right")
        assert facing == "up"

    def test_turn_distance(self) -> None:
        assert turn_distance("up", "up") == 0
        assert turn_distance("up", "right") == 1
        assert turn_distance("left", "up") == 1
        assert turn_distance("up", "down") == 2

    def test_quarter_turn_excludes_straight_and_reversal(self) -> None:
        assert is_quarter_turn("up", "left")
        assert not is_quarter_turn("up", "up")
        assert not is_quarter_turn("up", "down")

    def test_direction_between(self) -> None:
        assert direction_between((1, 1), (2, 1)) == "right"
        assert direction_between((1, 1), (1, 0)) == "up"
        assert direction_between((1, 1), (1, 2)) == "down"


class TestGridAnalysis:
    def test_empty_grid_has_no_tiles(self) -> None:
        grid = empty_grid(4)
        assert count_tiles(grid) == 0
        assert bounding_box(grid) == (0, 0)

    def test_bounding_box(self, make_grid) -> None:
        grid = make_grid(["....", ".r..", ".rr.", "...."])
        assert count_tiles(grid) == 3
        assert bounding_box(grid) == (2, 2)

    def test_dense_tiles_in_full_block(self, make_grid) -> None:
        grid = make_grid(["rrr", "rrr", "rrr"])
        # Centre has four neighbours, edge midpoints three, corners two.
        assert count_dense_tiles(grid) == 5

    def test_line_has_no_dense_tiles(self, make_grid) -> None:
        assert count_dense_tiles(make_grid(["rrrrr"])) == 0

    def test_tile_at_off_grid_is_void(self, make_grid) -> None:
        grid = make_grid(["r"])
        assert tile_at(grid, (0, 0)) == Tile("red")
        assert tile_at(grid, (1, 0)) is None
        assert tile_at(grid, (0, -1)) is None


class TestInstruction:
    def test_unconditional_matches_anything(self) -> None:
        assert Instruction("forward").matches(None)
        assert Instruction("forward").matches(Tile("blue"))

    def test_conditional_matches_colour_only(self) -> None:
        instr = Instruction("left", "green")
        assert instr.matches(Tile("green"))
        assert not instr.matches(Tile("red"))
        assert not instr.matches(None)

    def test_paint_color(self) -> None:
        assert paint_color("paint_blue") == "blue"
        assert paint_color("forward") is None


class TestSlot:
    def test_render_and_parse(self) -> None:
        slot = Slot("f2", 3)
        assert str(slot) == "f2-3"
        assert Slot.parse("f2-3") == slot

    @pytest.mark.parametrize("key", ["f6-0", "f1-", "f1-x", "forward"])
    def test_parse_rejects_garbage(self, key: str) -> None:
        with pytest.raises(ValueError):
            Slot.parse(key)


class TestProgram:
    def test_identical_programs_share_signature(self, make_program) -> None:
        a = make_program({"f1": ["forward", ("left", "red"), None]})
        b = make_program({"f1": ["forward", ("left", "red"), None]})
        assert a.signature() == b.signature()

    def test_condition_change_alters_signature(self, make_program) -> None:
        a = make_program({"f1": ["forward", ("left", "red")]})
        b = make_program({"f1": ["forward", ("left", "green")]})
        assert a.signature() != b.signature()

    def test_type_change_alters_signature(self, make_program) -> None:
        a = make_program({"f1": ["forward", "left"]})
        b = make_program({"f1": ["forward", "right"]})
        assert a.signature() != b.signature()

    def test_same_instructions_in_other_function_differ(self, make_program) -> None:
        a = make_program({"f1": ["forward"], "f2": [None]})
        b = make_program({"f1": [None], "f2": ["forward"]})
        assert a.signature() != b.signature()

    def test_clone_is_independent(self, make_program) -> None:
        original = make_program({"f1": ["forward", "left"]})
        copy = original.clone()
        copy.set(Slot("f1", 0), Instruction("right"))
        assert original.get(Slot("f1", 0)) == Instruction("forward")

    def test_set_outside_length_raises(self) -> None:
        program = Program.empty({"f1": 2})
        with pytest.raises(IndexError):
            program.set(Slot("f1", 2), Instruction("forward"))

    def test_pruned_keeps_lengths(self, make_program) -> None:
        program = make_program({"f1": ["forward", "left", "right"]})
        pruned = program.pruned({Slot("f1", 1)})
        assert pruned["f1"] == [None, Instruction("left"), None]
        assert pruned.instruction_count() == 1

    def test_record_shape(self, make_program) -> None:
        record = make_program({"f1": [("paint_red", "blue"), None]}).to_record()
        assert record["f1"] == [{"type": "paint_red", "condition": "blue"}, None]
        assert record["f5"] == []


class TestFetchSlot:
    def test_empty_stack_reenters_f1(self, make_program) -> None:
        program = make_program({"f1": ["forward"]})
        stack: list[CallFrame] = []
        assert fetch_slot(stack, program) == Slot("f1", 0)
        assert [frame.function for frame in stack] == ["f1"]

    def test_exhausted_frame_is_popped(self, make_program) -> None:
        program = make_program({"f1": ["forward"]})
        stack = [CallFrame("f1", pointer=1)]
        assert fetch_slot(stack, program) is None
        assert stack == []
