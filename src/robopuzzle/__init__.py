"""robopuzzle: procedural synthesis of grid-robot programming puzzles.

Generates a puzzle grid together with a verified solving program by
searching over random candidate programs and repairing each failure
according to the constraint it broke.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
