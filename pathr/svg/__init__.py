"""SVG front end: shape tree → PathEmitter."""

from pathr.svg.path_data import SvgPathGrammar
from pathr.svg.tree import ElementNode, ShapeNode, load_svg, parse_transform
from pathr.svg.walker import ShapeWalker, svg_to_path

__all__ = [
    "ElementNode",
    "ShapeNode",
    "ShapeWalker",
    "SvgPathGrammar",
    "load_svg",
    "parse_transform",
    "svg_to_path",
]
