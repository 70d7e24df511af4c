"""Tests for environment-driven runtime settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from robopuzzle.config.settings import GeneratorSettings, get_settings


class TestGeneratorSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        settings = GeneratorSettings()
        assert settings.max_mutation_attempts == 100
        assert settings.recent_forward_window == 5
        assert settings.progress_interval_seconds == 10.0
        assert settings.seed is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ROBOPUZZLE_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("ROBOPUZZLE_SEED", "77")
        monkeypatch.setenv("ROBOPUZZLE_PRESET", "easy")
        settings = GeneratorSettings()
        assert settings.timeout_seconds == 5.0
        assert settings.seed == 77
        assert settings.preset == "easy"

    def test_invalid_value_rejected(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ROBOPUZZLE_RECENT_FORWARD_WINDOW", "0")
        with pytest.raises(ValidationError):
            GeneratorSettings()

    def test_singleton(self) -> None:
        assert get_settings() is get_settings()
