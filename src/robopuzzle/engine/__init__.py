"""Puzzle synthesis engine.

Provides the grid/program data model, the program executor, the
constraint evaluator, the generate-and-repair search driver, result
packaging and a single-step replay player.
"""

from __future__ import annotations
