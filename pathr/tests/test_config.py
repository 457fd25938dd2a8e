"""Tests for the configuration loader.

Validates that the shipped ``pathr.yaml`` matches the dataclass defaults,
that partial files only override the keys they name, and that invalid
values are rejected with ``ConfigError``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pathr.configs import (
    ConfigError,
    EmitterConfig,
    GCodeConfig,
    PathrConfig,
    SvgConfig,
    load_config,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> PathrConfig:
    """Load the default pathr.yaml shipped with the package."""
    return load_config()


@pytest.fixture()
def write_yaml(tmp_path: Path):
    def _write(text: str) -> Path:
        path = tmp_path / "pathr.yaml"
        path.write_text(text)
        return path
    return _write


# ---------------------------------------------------------------------------
# Shipped defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_shipped_file_matches_dataclasses(self, config: PathrConfig) -> None:
        assert config == PathrConfig()

    def test_default_values(self, config: PathrConfig) -> None:
        assert config.emitter.wait_ms == 500
        assert config.emitter.long_wait_s == 1
        assert config.emitter.curve_max_samples == 1024
        assert config.svg.scale == 100.0
        assert config.gcode.scale == 1.0
        assert config.gcode.extrusion_proximity == 0.0

    def test_frozen(self, config: PathrConfig) -> None:
        with pytest.raises(AttributeError):
            config.svg.scale = 5.0  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    def test_partial_file(self, write_yaml) -> None:
        cfg = load_config(write_yaml("svg:\n  scale: 10\n"))
        assert cfg.svg == SvgConfig(scale=10.0)
        assert cfg.emitter == EmitterConfig()
        assert cfg.gcode == GCodeConfig()

    def test_emitter_keys(self, write_yaml) -> None:
        cfg = load_config(write_yaml(
            "emitter:\n  wait_ms: 250\n  comment_curves: false\n  curve_tolerance: 0.5\n"
        ))
        assert cfg.emitter.wait_ms == 250
        assert cfg.emitter.comment_curves is False
        assert cfg.emitter.curve_tolerance == 0.5


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize("text", [
        "svg:\n  scale: 0\n",
        "gcode:\n  scale: .nan\n",
        "gcode:\n  extrusion_proximity: -1\n",
        "emitter:\n  wait_ms: -5\n",
        "emitter:\n  curve_tolerance: 0\n",
        "emitter:\n  curve_segment_length: -16\n",
        "emitter:\n  curve_min_samples: 0\n",
        "emitter:\n  curve_min_samples: 8\n  curve_max_samples: 4\n",
        "emitter:\n  wait_ms: soon\n",
        "svg: 100\n",
    ])
    def test_invalid_values(self, write_yaml, text: str) -> None:
        with pytest.raises(ConfigError):
            load_config(write_yaml(text))

    def test_chained_cause(self, write_yaml) -> None:
        with pytest.raises(ConfigError) as excinfo:
            load_config(write_yaml("emitter:\n  wait_ms: soon\n"))
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_empty_file(self, write_yaml) -> None:
        with pytest.raises(ConfigError, match="Empty"):
            load_config(write_yaml(""))

    def test_non_mapping_root(self, write_yaml) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            load_config(write_yaml("- 1\n- 2\n"))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")
