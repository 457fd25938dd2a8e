"""
Pathr Package.

Converts SVG shape trees and GCode motion programs into the line-oriented
PTH instruction stream consumed by the 2D/2.5D plotting device.

Subpackages:
    geometry: Points, affine matrices, Bézier flattening
    emitter: PathEmitter, the shared code-emission backend
    svg: Shape-tree boundary, path-data grammar, shape walker
    gcode: GCode line scanner and modal grammar
    configs: Converter configuration loading and validation
    utils: Logging setup and YAML I/O

Modules:
    diagnostics: Outcome / Diagnostic / ConversionResult
    vm: Dry-run replay of an instruction stream

Layering (strict one-way dependency):
    svg/, gcode/ → emitter/ → geometry/ → (numpy)

Usage::

    from pathr import gcode_to_path, svg_to_path
    from pathr.svg.tree import load_svg

    result = svg_to_path(load_svg("drawing.svg"))
    print(result.code)
"""

__version__ = "1.2.0"

from pathr.gcode.grammar import gcode_to_path
from pathr.svg.walker import svg_to_path

__all__ = [
    "configs",
    "diagnostics",
    "emitter",
    "gcode",
    "geometry",
    "svg",
    "utils",
    "vm",
    "gcode_to_path",
    "svg_to_path",
]
