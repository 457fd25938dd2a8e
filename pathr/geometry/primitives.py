"""Geometry primitives: 2D points and affine matrices.

Both types are immutable values.  ``AffineMatrix`` follows the SVG
``matrix(a b c d e f)`` convention::

    | a  c  e |   | x |
    | b  d  f | · | y |
    | 0  0  1 |   | 1 |

Composition reads left to right in nesting order: entering a subtree with
matrix ``M`` turns the active context ``C`` into ``C.concat(M)`` so that
points are mapped by ``M`` first, then ``C``.

NaN and infinities propagate through every operation; callers that emit
coordinates check ``Point.is_finite()`` first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def round_half_up(value: float) -> float:
    """Round to the nearest integer, halves towards +inf; NaN/inf pass through."""
    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Point
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Point:
    """(x, y) pair with the vector arithmetic the emitter needs."""

    x: float
    y: float

    def translate(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)

    def sub(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def __sub__(self, other: Point) -> Point:
        return self.sub(other)

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def abs(self) -> Point:
        """Component-wise absolute value."""
        return Point(abs(self.x), abs(self.y))

    def round(self) -> Point:
        """Component-wise round-half-up."""
        return Point(round_half_up(self.x), round_half_up(self.y))

    def reflect(self, center: Point) -> Point:
        """Mirror this point through *center* (smooth-curve handles)."""
        return Point(2 * center.x - self.x, 2 * center.y - self.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


ORIGIN = Point(0.0, 0.0)


# ---------------------------------------------------------------------------
# AffineMatrix
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AffineMatrix:
    """2D affine transform: linear part (a, b, c, d) + translation (e, f).

    Defaults to the identity.
    """

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    # -- Constructors -------------------------------------------------------

    @classmethod
    def identity(cls) -> AffineMatrix:
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float = 0.0) -> AffineMatrix:
        return cls(e=tx, f=ty)

    @classmethod
    def scaling(cls, sx: float, sy: float | None = None) -> AffineMatrix:
        return cls(a=sx, d=sx if sy is None else sy)

    @classmethod
    def rotation(cls, degrees: float, cx: float = 0.0, cy: float = 0.0) -> AffineMatrix:
        """Rotation by *degrees* about (cx, cy), positive towards +y."""
        rad = math.radians(degrees)
        cos, sin = math.cos(rad), math.sin(rad)
        rotate = cls(a=cos, b=sin, c=-sin, d=cos)
        if cx == 0 and cy == 0:
            return rotate
        return cls.translation(cx, cy).concat(rotate).concat(cls.translation(-cx, -cy))

    @classmethod
    def skew_x(cls, degrees: float) -> AffineMatrix:
        return cls(c=math.tan(math.radians(degrees)))

    @classmethod
    def skew_y(cls, degrees: float) -> AffineMatrix:
        return cls(b=math.tan(math.radians(degrees)))

    @classmethod
    def from_array(cls, m: np.ndarray) -> AffineMatrix:
        """Build from a 3x3 homogeneous matrix (last row ignored)."""
        return cls(
            a=float(m[0, 0]), b=float(m[1, 0]),
            c=float(m[0, 1]), d=float(m[1, 1]),
            e=float(m[0, 2]), f=float(m[1, 2]),
        )

    # -- Operations ---------------------------------------------------------

    def as_array(self) -> np.ndarray:
        """3x3 homogeneous matrix."""
        return np.array(
            (
                (self.a, self.c, self.e),
                (self.b, self.d, self.f),
                (0.0, 0.0, 1.0),
            ),
            dtype=float,
        )

    def concat(self, other: AffineMatrix) -> AffineMatrix:
        """Return ``self ∘ other``: *other* is applied to points first."""
        return AffineMatrix.from_array(np.matmul(self.as_array(), other.as_array()))

    def transform_point(self, p: Point) -> Point:
        return Point(
            self.a * p.x + self.c * p.y + self.e,
            self.b * p.x + self.d * p.y + self.f,
        )

    def clone(self) -> AffineMatrix:
        return AffineMatrix(self.a, self.b, self.c, self.d, self.e, self.f)

    def is_identity(self) -> bool:
        return self == AffineMatrix()
