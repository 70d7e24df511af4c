"""Rich console rendering for puzzles, programs and search reports.

``PuzzleConsole`` wraps a themed ``rich.console.Console`` and knows how to
draw a grid (coloured cells, stars, the robot), a program as a slot
table, and the outcome of a search run with its failure tallies.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from robopuzzle.config.simulation import SimulationConfig
from robopuzzle.engine.model import FUNCTIONS, Direction, Program
from robopuzzle.engine.packager import GeneratedPuzzle
from robopuzzle.engine.search import GenerationResult

# ---------------------------------------------------------------------------
# Theme
# ---------------------------------------------------------------------------

PUZZLE_THEME = Theme(
    {
        "puzzle.name": "bold cyan",
        "puzzle.dim": "dim white",
        "puzzle.success": "bold green",
        "puzzle.error": "bold red",
        "puzzle.warning": "bold yellow",
        "puzzle.info": "bold blue",
        "puzzle.hint": "dim italic",
        "puzzle.border": "bright_cyan",
    }
)

CELL_STYLES: dict[str | None, str] = {
    "red": "on red3",
    "green": "on green4",
    "blue": "on blue3",
    None: "on grey50",
}

ROBOT_GLYPHS: dict[Direction, str] = {
    "up": "\u25b2",     # ▲
    "down": "\u25bc",   # ▼
    "left": "\u25c0",   # ◀
    "right": "\u25b6",  # ▶
}

INSTRUCTION_GLYPHS: dict[str, str] = {
    "forward": "\u2191",  # ↑
    "left": "\u21b6",     # ↶
    "right": "\u21b7",    # ↷
    "paint_red": "P:r",
    "paint_green": "P:g",
    "paint_blue": "P:b",
    "noop": "\u00b7",
}


class PuzzleConsole:
    """Encapsulates all Rich-based rendering for the robopuzzle CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(theme=PUZZLE_THEME, highlight=False)

    # ------------------------------------------------------------------
    # Grid
    # ------------------------------------------------------------------

    def render_grid(self, puzzle: GeneratedPuzzle, crop: bool = True) -> Text:
        """Two characters per cell; void cells blank.  Crops to placed tiles."""
        rows = [
            y for y, row in enumerate(puzzle.grid) if any(tile is not None for tile in row)
        ]
        cols = [
            x
            for x in range(len(puzzle.grid[0]) if puzzle.grid else 0)
            if any(row[x] is not None for row in puzzle.grid)
        ]
        if crop and rows and cols:
            y_range = range(rows[0], rows[-1] + 1)
            x_range = range(cols[0], cols[-1] + 1)
        else:
            y_range = range(len(puzzle.grid))
            x_range = range(len(puzzle.grid[0]) if puzzle.grid else 0)

        start = puzzle.robot_start
        text = Text()
        for y in y_range:
            for x in x_range:
                tile = puzzle.grid[y][x]
                if tile is None:
                    text.append("  ")
                    continue
                if (x, y) == start.position:
                    glyph = ROBOT_GLYPHS[start.direction] + " "
                elif tile.has_star:
                    glyph = "\u2605 "  # ★
                else:
                    glyph = "  "
                text.append(glyph, style=f"bold white {CELL_STYLES[tile.color]}")
            text.append("\n")
        return text

    def print_puzzle(self, puzzle: GeneratedPuzzle, title: str = "Puzzle") -> None:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column(style="dim", width=14)
        table.add_column()

        x, y = puzzle.robot_start.position
        table.add_row("start", f"({x}, {y}) facing {puzzle.robot_start.direction}")
        table.add_row("stars", str(len(puzzle.stars)))
        table.add_row(
            "functions",
            "  ".join(f"{fn}={n}" for fn, n in puzzle.function_lengths.items() if n > 0),
        )
        table.add_row("allowed", ", ".join(puzzle.allowed_instructions))
        table.add_row("steps", str(puzzle.step_count))
        if puzzle.quality_score:
            table.add_row("quality", str(puzzle.quality_score))

        self.console.print(
            Panel(
                Group(self.render_grid(puzzle), table),
                title=f"[bold]{title}[/bold]",
                border_style="puzzle.border",
                padding=(0, 1),
            )
        )

    # ------------------------------------------------------------------
    # Program
    # ------------------------------------------------------------------

    def program_table(self, program: Program, title: str = "Solution") -> Table:
        width = max((len(program[fn]) for fn in FUNCTIONS), default=0)
        table = Table(title=title, border_style="dim", show_header=True, header_style="bold")
        table.add_column("fn", style="cyan")
        for idx in range(width):
            table.add_column(str(idx), justify="center")

        for fn in FUNCTIONS:
            slots = program[fn]
            if not slots:
                continue
            cells: list[Text] = []
            for instr in slots:
                if instr is None:
                    cells.append(Text("\u00b7", style="puzzle.dim"))
                    continue
                glyph = INSTRUCTION_GLYPHS.get(instr.type, instr.type)
                style = f"bold white {CELL_STYLES[instr.condition]}" if instr.condition else "bold"
                cells.append(Text(glyph, style=style))
            cells.extend(Text("") for _ in range(width - len(slots)))
            table.add_row(fn, *cells)
        return table

    def print_program(self, program: Program, title: str = "Solution") -> None:
        self.console.print(self.program_table(program, title))

    # ------------------------------------------------------------------
    # Search report
    # ------------------------------------------------------------------

    def print_result(self, result: GenerationResult) -> None:
        status_style = "puzzle.success" if result.success else "puzzle.error"
        status_icon = "\u2714" if result.success else "\u2718"  # ✔ / ✘

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column(style="dim", width=12)
        table.add_column()
        table.add_row("outcome", Text(f"{status_icon} {result.outcome}", style=status_style))
        table.add_row("attempts", str(result.attempts))
        table.add_row("elapsed", f"{result.elapsed:.2f}s")
        if result.seed is not None:
            table.add_row("seed", str(result.seed))
        if result.error_type:
            table.add_row("last error", Text(result.error_type, style="puzzle.warning"))

        failures = sorted(
            ((count, kind) for kind, count in result.error_counts.items() if count),
            reverse=True,
        )
        if failures:
            table.add_row(
                "failures",
                ", ".join(f"{kind}={count}" for count, kind in failures),
            )

        self.console.print(
            Panel(table, title="[dim]Search[/dim]", border_style="dim", padding=(0, 1))
        )
        if result.puzzle is not None:
            self.print_puzzle(result.puzzle)
        if result.solution is not None:
            self.print_program(result.solution)

    def print_presets(self, presets: dict[str, SimulationConfig]) -> None:
        table = Table(title="Presets", border_style="dim", show_header=True, header_style="bold")
        table.add_column("Name", style="cyan")
        table.add_column("Slots", justify="right")
        table.add_column("Max steps", justify="right")
        table.add_column("Min tiles", justify="right")
        table.add_column("Min turns", justify="right")
        table.add_column("Stack", justify="right")
        table.add_column("Self-calls", justify="right")

        for name, config in presets.items():
            table.add_row(
                name,
                str(config.total_slots),
                str(config.max_steps),
                str(config.min_tiles),
                str(config.min_turns),
                str(config.min_stack_depth),
                str(config.min_self_calls),
            )
        self.console.print(table)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def print_error(self, message: str) -> None:
        """Render an error message."""
        self.console.print(
            Panel(
                Text(message, style="red"),
                title="[bold red]Error[/bold red]",
                border_style="red",
                padding=(0, 2),
            )
        )

    def print_info(self, message: str) -> None:
        self.console.print(f"  [puzzle.info]{message}[/puzzle.info]")
