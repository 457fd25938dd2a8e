"""Bézier flattening for the emitter.

Provides:
    - Quadratic / cubic Bézier evaluation (Bernstein form, vectorized)
    - Exact arclength via Legendre-Gauss quadrature
    - Even-parameter sampling (lookup table of N+1 points)
    - Douglas-Peucker polyline simplification

Used by:
    - PathEmitter.curve_to / quad_to: curve → simplified polyline, each
      vertex after the first becomes one line segment

All coordinates are in the emitter's *local* frame (pre-transform).
Sample count is N = max(min_samples, ceil(length / segment_length)), capped
at max_samples, and simplification always keeps the first and last sample.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from pathr.geometry.primitives import Point

# Legendre-Gauss order used for arclength integration
_LG_ORDER = 24
_LG_NODES, _LG_WEIGHTS = np.polynomial.legendre.leggauss(_LG_ORDER)


class CurveError(ValueError):
    """Raised when a curve cannot be built from the given control points."""

    pass


# ---------------------------------------------------------------------------
# Bézier curve
# ---------------------------------------------------------------------------


class BezierCurve:
    """Quadratic (3 points) or cubic (4 points) Bézier curve.

    Parameters
    ----------
    control_points : Sequence[Point]
        Start point, control point(s), end point.

    Raises
    ------
    CurveError
        Fewer than 3 or more than 4 points, or a non-finite coordinate.
    """

    def __init__(self, control_points: Sequence[Point]) -> None:
        if len(control_points) < 3:
            raise CurveError(
                f"Bézier curve needs at least 3 control points, got {len(control_points)}"
            )
        if len(control_points) > 4:
            raise CurveError(
                f"Only quadratic and cubic curves are supported, got {len(control_points)} points"
            )
        for p in control_points:
            if not p.is_finite():
                raise CurveError(f"Non-finite control point {p}")

        self.points = np.array([p.as_tuple() for p in control_points], dtype=float)
        self.order = len(control_points) - 1

    def evaluate(self, t: np.ndarray) -> np.ndarray:
        """Evaluate the curve at parameters *t*.

        Parameters
        ----------
        t : np.ndarray
            Parameter values in [0, 1], shape (N,)

        Returns
        -------
        np.ndarray
            Points on the curve, shape (N, 2)
        """
        return _bernstein(self.points, np.atleast_1d(t))

    def derivative(self, t: np.ndarray) -> np.ndarray:
        """First derivative B'(t), shape (N, 2)."""
        hodograph = self.order * (self.points[1:] - self.points[:-1])
        return _bernstein(hodograph, np.atleast_1d(t))

    def length(self) -> float:
        """Arclength of the curve.

        Notes
        -----
        Integrates |B'(t)| over [0, 1] with 24-point Legendre-Gauss
        quadrature.  Exact for straight segments, and far below one
        device unit of error for any curve the plotter can draw.
        """
        t = 0.5 * (_LG_NODES + 1.0)
        speed = np.linalg.norm(self.derivative(t), axis=1)
        return float(0.5 * np.sum(_LG_WEIGHTS * speed))

    def lut(self, steps: int) -> np.ndarray:
        """Sample ``steps + 1`` evenly-parameterized points, shape (steps+1, 2)."""
        return self.evaluate(np.linspace(0.0, 1.0, steps + 1))


def _bernstein(points: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Weighted sum of control *points* with Bernstein basis at *t*."""
    n = len(points) - 1
    t = t[:, None]
    basis = np.hstack([
        math.comb(n, i) * (1.0 - t) ** (n - i) * t ** i
        for i in range(n + 1)
    ])
    return basis @ points


# ---------------------------------------------------------------------------
# Polyline simplification
# ---------------------------------------------------------------------------


def _sq_segment_distances(points: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Squared distance from each of *points* to segment a-b."""
    seg = b - a
    seg_len_sq = float(seg @ seg)
    if seg_len_sq == 0.0:
        diff = points - a
    else:
        t = np.clip(((points - a) @ seg) / seg_len_sq, 0.0, 1.0)
        diff = points - (a + t[:, None] * seg)
    return np.einsum('ij,ij->i', diff, diff)


def simplify_polyline(points: np.ndarray, tolerance: float) -> np.ndarray:
    """Douglas-Peucker simplification.

    Parameters
    ----------
    points : np.ndarray
        Polyline vertices, shape (N, 2)
    tolerance : float
        Interior vertices closer than this to the simplified chain are
        dropped.

    Returns
    -------
    np.ndarray
        Kept vertices in order, shape (M, 2), M ≤ N.  The first and last
        vertex are always kept.
    """
    n = len(points)
    if n <= 2:
        return points.copy()

    sq_tolerance = tolerance * tolerance
    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        dists = _sq_segment_distances(points[first + 1:last], points[first], points[last])
        idx = int(np.argmax(dists))
        if dists[idx] > sq_tolerance:
            split = first + 1 + idx
            keep[split] = True
            stack.append((first, split))
            stack.append((split, last))

    return points[keep]


# ---------------------------------------------------------------------------
# Flattener
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Flattening:
    """Result of flattening one curve.

    Parameters
    ----------
    length : float
        Exact arclength of the curve.
    samples : tuple[Point, ...]
        Raw evenly-parameterized samples (N+1 points).
    points : tuple[Point, ...]
        Simplified polyline, starts and ends on the curve endpoints.
    """

    length: float
    samples: tuple[Point, ...]
    points: tuple[Point, ...]


class CurveFlattener:
    """Turn Bézier control points into a simplified polyline.

    Parameters
    ----------
    tolerance : float
        Simplification tolerance, default 1.0 device unit
    segment_length : float
        Arclength per raw sample, default 16.0
    min_samples : int
        Minimum raw sample count, default 5
    max_samples : int
        Maximum raw sample count, default 1024.  Longer curves get
        proportionally longer segments.
    """

    def __init__(
        self,
        tolerance: float = 1.0,
        segment_length: float = 16.0,
        min_samples: int = 5,
        max_samples: int = 1024,
    ) -> None:
        self.tolerance = tolerance
        self.segment_length = segment_length
        self.min_samples = min_samples
        self.max_samples = max(max_samples, min_samples)

    def sample_count(self, length: float) -> int:
        """Raw sample count for a curve of *length*, within the bounds."""
        if not math.isfinite(length):
            raise CurveError(f"Curve length is not finite ({length})")
        n = math.ceil(length / self.segment_length)
        return min(self.max_samples, max(self.min_samples, n))

    def flatten(self, control_points: Sequence[Point]) -> Flattening:
        """Flatten a quadratic or cubic curve.

        Raises
        ------
        CurveError
            If the control points do not describe a supported curve or
            its length overflows.
        """
        curve = BezierCurve(control_points)
        length = curve.length()
        samples = curve.lut(self.sample_count(length))
        simplified = simplify_polyline(samples, self.tolerance)
        return Flattening(
            length=length,
            samples=tuple(Point(float(x), float(y)) for x, y in samples),
            points=tuple(Point(float(x), float(y)) for x, y in simplified),
        )
