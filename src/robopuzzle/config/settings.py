"""Environment-driven runtime settings.

Values are read from environment variables (prefix ``ROBOPUZZLE_``) or a
``.env`` file in the working directory.  Difficulty thresholds are not
settings; they live in ``SimulationConfig`` presets and JSON files.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneratorSettings(BaseSettings):
    """Search-run knobs that sit outside the difficulty configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ROBOPUZZLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout_seconds: float = Field(default=30.0, gt=0.0, le=3600.0)
    seed: int | None = None
    """Fixed seed for reproducible runs; unset draws a fresh one."""
    max_attempts: int | None = Field(default=None, ge=1)
    max_mutation_attempts: int = Field(default=100, ge=1, le=10_000)
    """Tries at an unseen signature before a lineage is abandoned."""
    recent_forward_window: int = Field(default=5, ge=1, le=50)
    progress_interval_seconds: float = Field(default=10.0, gt=0.0)
    preset: str = "default"
    output_dir: Path = Path("puzzles")


# Module-level singleton; import and use directly.
settings = GeneratorSettings()


def get_settings() -> GeneratorSettings:
    """Return the module-level settings singleton."""
    return settings
