"""Configuration loader for the converters.

Loads and validates ``pathr.yaml`` into typed, frozen dataclasses.  Every
dataclass carries the shipped defaults, so ``PathrConfig()`` is a valid
configuration on its own and the YAML file only needs the keys it
changes.

Units:
    All emitter values are in **device units** (integers on the wire),
    waits in milliseconds (``w``) or seconds (``W``).  The per-front-end
    ``scale`` maps input coordinates to device units before rounding.

Usage::

    from pathr.configs.loader import load_config
    cfg = load_config()                     # default path
    cfg = load_config("/custom/pathr.yaml") # explicit path
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pathr.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmitterConfig:
    """PathEmitter defaults and curve flattening parameters.

    Parameters
    ----------
    wait_ms : int
        Default short wait (``w``) after every drawn line.
    long_wait_s : int
        Default long wait (``W``).
    extrusion_rate : int
        Rate operand attached to every line-segment extrusion.
    curve_tolerance : float
        Douglas-Peucker tolerance for flattened curves, device units.
    curve_segment_length : float
        Curve arclength covered by one raw sample.
    curve_min_samples : int
        Lower bound on the raw sample count of any curve.
    curve_max_samples : int
        Upper bound on the raw sample count of any curve.
    comment_curves : bool
        Annotate each flattened curve with its length and point count.
    """

    wait_ms: int = 500
    long_wait_s: int = 1
    extrusion_rate: int = 10
    curve_tolerance: float = 1.0
    curve_segment_length: float = 16.0
    curve_min_samples: int = 5
    curve_max_samples: int = 1024
    comment_curves: bool = True


@dataclass(frozen=True)
class SvgConfig:
    """SVG front end: user units → device units."""

    scale: float = 100.0


@dataclass(frozen=True)
class GCodeConfig:
    """GCode front end.

    ``extrusion_proximity`` is the absolute tolerance under which an
    extrusion-rate change is not considered significant.
    """

    scale: float = 1.0
    extrusion_proximity: float = 0.0


@dataclass(frozen=True)
class PathrConfig:
    """Complete converter configuration loaded from ``pathr.yaml``."""

    emitter: EmitterConfig = field(default_factory=EmitterConfig)
    svg: SvgConfig = field(default_factory=SvgConfig)
    gcode: GCodeConfig = field(default_factory=GCodeConfig)


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a YAML section, ``{}`` when absent."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a mapping, got {type(section).__name__}"
        )
    return section


def _parse_emitter(data: dict[str, Any]) -> EmitterConfig:
    d = EmitterConfig()
    return EmitterConfig(
        wait_ms=int(data.get("wait_ms", d.wait_ms)),
        long_wait_s=int(data.get("long_wait_s", d.long_wait_s)),
        extrusion_rate=int(data.get("extrusion_rate", d.extrusion_rate)),
        curve_tolerance=float(data.get("curve_tolerance", d.curve_tolerance)),
        curve_segment_length=float(
            data.get("curve_segment_length", d.curve_segment_length)
        ),
        curve_min_samples=int(data.get("curve_min_samples", d.curve_min_samples)),
        curve_max_samples=int(data.get("curve_max_samples", d.curve_max_samples)),
        comment_curves=bool(data.get("comment_curves", d.comment_curves)),
    )


def _validate_scale(name: str, scale: float) -> None:
    if not math.isfinite(scale) or scale == 0:
        raise ConfigError(f"{name}.scale must be finite and non-zero, got {scale}")


def _validate_config(cfg: PathrConfig) -> None:
    """Cross-field checks.  Raises ``ConfigError`` on the first failure."""
    e = cfg.emitter
    if e.wait_ms < 0:
        raise ConfigError(f"emitter.wait_ms must be >= 0, got {e.wait_ms}")
    if e.long_wait_s < 0:
        raise ConfigError(f"emitter.long_wait_s must be >= 0, got {e.long_wait_s}")
    if not e.curve_tolerance > 0:
        raise ConfigError(
            f"emitter.curve_tolerance must be > 0, got {e.curve_tolerance}"
        )
    if not e.curve_segment_length > 0:
        raise ConfigError(
            f"emitter.curve_segment_length must be > 0, got {e.curve_segment_length}"
        )
    if e.curve_min_samples < 1:
        raise ConfigError(
            f"emitter.curve_min_samples must be >= 1, got {e.curve_min_samples}"
        )
    if e.curve_max_samples < e.curve_min_samples:
        raise ConfigError(
            "emitter.curve_max_samples must be >= curve_min_samples, "
            f"got {e.curve_max_samples} < {e.curve_min_samples}"
        )

    _validate_scale("svg", cfg.svg.scale)
    _validate_scale("gcode", cfg.gcode.scale)
    if not cfg.gcode.extrusion_proximity >= 0:
        raise ConfigError(
            "gcode.extrusion_proximity must be >= 0, "
            f"got {cfg.gcode.extrusion_proximity}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PathrConfig:
    """Load and validate converter configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``pathr.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    PathrConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "pathr.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data = load_yaml(path)
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")

    try:
        emitter = _parse_emitter(_section(data, "emitter"))

        sv = _section(data, "svg")
        svg = SvgConfig(scale=float(sv.get("scale", SvgConfig.scale)))

        gc = _section(data, "gcode")
        gcode = GCodeConfig(
            scale=float(gc.get("scale", GCodeConfig.scale)),
            extrusion_proximity=float(
                gc.get("extrusion_proximity", GCodeConfig.extrusion_proximity)
            ),
        )

        config = PathrConfig(emitter=emitter, svg=svg, gcode=gcode)
        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc
