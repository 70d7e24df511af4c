"""robopuzzle CLI: Typer-based entry point.

Commands
--------
generate    Search for a puzzle and its solution.
verify      Re-run a stored solution with the executor and the replay player.
show        Render a stored puzzle (and its solution).
presets     List the built-in difficulty presets.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError

from robopuzzle.config.settings import get_settings
from robopuzzle.config.simulation import PRESETS, SimulationConfig, load_config
from robopuzzle.engine.packager import (
    PuzzleFormatError,
    program_from_record,
    puzzle_from_record,
    verify_solution,
)
from robopuzzle.engine.player import DEFAULT_MAX_STEPS, GamePlayer
from robopuzzle.engine.search import PuzzleGenerator
from robopuzzle.interfaces.console import PuzzleConsole

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="robopuzzle",
    help="robopuzzle: procedural synthesis of grid-robot programming puzzles",
    add_completion=False,
)

_INPUT_ERRORS = (PuzzleFormatError, ValidationError, KeyError, json.JSONDecodeError, OSError)


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(name)-30s  %(levelname)-7s  %(message)s",
    )


def _read_record(path: Path) -> dict[str, Any]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise PuzzleFormatError(f"{path} does not hold a JSON object")
    return raw


def _record_config(record: dict[str, Any], preset: str) -> SimulationConfig:
    if isinstance(record.get("config"), dict):
        return SimulationConfig.model_validate(record["config"])
    return load_config(preset=preset)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def generate(
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Difficulty preset name."),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON config file (overrides --preset).",
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Search deadline in seconds."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for a reproducible run."),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", "-n", help="Attempt budget."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Search for a puzzle and its solving program."""
    _setup_logging(verbose)
    settings = get_settings()
    ui = PuzzleConsole()

    try:
        config = load_config(config_file, preset or settings.preset)
    except _INPUT_ERRORS as exc:
        ui.print_error(str(exc))
        raise typer.Exit(2) from exc

    generator = PuzzleGenerator(
        config,
        seed=seed if seed is not None else settings.seed,
        max_mutation_attempts=settings.max_mutation_attempts,
        recent_forward_window=settings.recent_forward_window,
        progress_interval=settings.progress_interval_seconds,
    )
    result = generator.generate(
        timeout_s=timeout if timeout is not None else settings.timeout_seconds,
        max_attempts=max_attempts if max_attempts is not None else settings.max_attempts,
    )
    ui.print_result(result)

    if output is not None:
        record = {"config": config.to_record(), **result.to_record()}
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(record, indent=2), encoding="utf-8")
        ui.print_info(f"Saved to {output}")

    if not result.success:
        raise typer.Exit(1)


@app.command()
def verify(
    path: Path = typer.Argument(..., help="Result JSON written by `generate --output`."),
    preset: str = typer.Option("default", "--preset", "-p", help="Preset when the file has no config."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Re-run a stored solution with both the executor and the replay player."""
    _setup_logging(verbose)
    ui = PuzzleConsole()

    try:
        record = _read_record(path)
        puzzle = puzzle_from_record(record.get("puzzle"))
        solution = program_from_record(record.get("solution"))
        config = _record_config(record, preset)
    except _INPUT_ERRORS as exc:
        ui.print_error(str(exc))
        raise typer.Exit(2) from exc

    attempt = verify_solution(puzzle, solution, config)
    player = GamePlayer(puzzle, max_steps=max(config.max_steps, DEFAULT_MAX_STEPS))
    player.load(solution)
    status = player.run()

    ok = attempt.verdict.success and status == "won"
    if attempt.verdict.success:
        ui.print_info(f"Executor: passed in {attempt.trace.step_count} steps")
    else:
        ui.print_error(
            f"Executor: {attempt.verdict.error} "
            f"(measured {attempt.verdict.measured:g}, required {attempt.verdict.required:g})"
        )
    if status == "won":
        ui.print_info(f"Player: won in {player.state.steps} steps")
    else:
        ui.print_error(f"Player: {status} after {player.state.steps} steps")

    if not ok:
        raise typer.Exit(1)


@app.command()
def show(
    path: Path = typer.Argument(..., help="Result JSON written by `generate --output`."),
) -> None:
    """Render a stored puzzle and its solution."""
    _setup_logging()
    ui = PuzzleConsole()

    try:
        record = _read_record(path)
        puzzle = puzzle_from_record(record.get("puzzle"))
        solution = program_from_record(record["solution"]) if record.get("solution") else None
    except _INPUT_ERRORS as exc:
        ui.print_error(str(exc))
        raise typer.Exit(2) from exc

    ui.print_puzzle(puzzle, title=path.name)
    if solution is not None:
        ui.print_program(solution)


@app.command()
def presets() -> None:
    """List the built-in difficulty presets."""
    PuzzleConsole().print_presets(PRESETS)


def main() -> int:
    """Entry point for the ``robopuzzle`` console script."""
    app()
    return 0
