"""Geometry core: points, affine matrices and curve flattening."""

from pathr.geometry.curves import (
    BezierCurve,
    CurveError,
    CurveFlattener,
    Flattening,
    simplify_polyline,
)
from pathr.geometry.primitives import ORIGIN, AffineMatrix, Point, round_half_up

__all__ = [
    "AffineMatrix",
    "BezierCurve",
    "CurveError",
    "CurveFlattener",
    "Flattening",
    "ORIGIN",
    "Point",
    "round_half_up",
    "simplify_polyline",
]
