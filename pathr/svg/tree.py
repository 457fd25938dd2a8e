"""Shape-tree boundary for the SVG front end.

The walker never touches XML directly.  It consumes anything that
satisfies ``ShapeNode``: a lower-case tag name, attribute lookup, the
node's already-resolved list of transform matrices and its children.

``ElementNode`` is the ``xml.etree.ElementTree`` implementation of that
protocol and ``load_svg`` builds one from a file or a string.
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from typing import Iterator, Protocol, Union

from pathr.geometry.primitives import AffineMatrix

logger = logging.getLogger(__name__)

# name(args) pairs inside a transform attribute
_TRANSFORM_RE = re.compile(r"([A-Za-z]+)\s*\(([^)]*)\)")
_NUMBER_SPLIT_RE = re.compile(r"[\s,]+")


class ShapeNode(Protocol):
    """What the walker needs from one node of the shape tree."""

    @property
    def tag(self) -> str: ...

    @property
    def transforms(self) -> list[AffineMatrix]: ...

    def get(self, name: str, default: str | None = None) -> str | None: ...

    def children(self) -> Iterator[ShapeNode]: ...


# ---------------------------------------------------------------------------
# transform attribute
# ---------------------------------------------------------------------------


def parse_transform(text: str | None) -> list[AffineMatrix]:
    """Resolve an SVG ``transform`` attribute into matrices, in order.

    The first matrix in the list is the outermost one: entering the node
    concatenates them onto the active context left to right.

    Functions with the wrong argument count, non-numeric arguments or an
    unknown name are skipped with a warning; the others still apply.

    Examples
    --------
    >>> parse_transform("translate(10) scale(2)")  # doctest: +NORMALIZE_WHITESPACE
    [AffineMatrix(a=1.0, b=0.0, c=0.0, d=1.0, e=10.0, f=0.0),
     AffineMatrix(a=2.0, b=0.0, c=0.0, d=2.0, e=0.0, f=0.0)]
    """
    if not text:
        return []

    matrices: list[AffineMatrix] = []
    for name, raw_args in _TRANSFORM_RE.findall(text):
        try:
            args = [float(v) for v in _NUMBER_SPLIT_RE.split(raw_args.strip()) if v]
        except ValueError:
            logger.warning("Skipping transform %s(%s): non-numeric argument", name, raw_args)
            continue

        matrix = _transform_function(name.lower(), args)
        if matrix is None:
            logger.warning("Skipping unsupported transform %s(%s)", name, raw_args)
            continue
        matrices.append(matrix)
    return matrices


def _transform_function(name: str, args: list[float]) -> AffineMatrix | None:
    n = len(args)
    if name == "matrix" and n == 6:
        return AffineMatrix(*args)
    elif name == "translate" and n in (1, 2):
        return AffineMatrix.translation(*args)
    elif name == "scale" and n in (1, 2):
        return AffineMatrix.scaling(*args)
    elif name == "rotate" and n in (1, 3):
        return AffineMatrix.rotation(*args)
    elif name == "skewx" and n == 1:
        return AffineMatrix.skew_x(args[0])
    elif name == "skewy" and n == 1:
        return AffineMatrix.skew_y(args[0])
    return None


# ---------------------------------------------------------------------------
# xml.etree adapter
# ---------------------------------------------------------------------------


def _local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


class ElementNode:
    """``ShapeNode`` over an ``xml.etree.ElementTree.Element``."""

    def __init__(self, element: ET.Element) -> None:
        self._element = element
        self._transforms: list[AffineMatrix] | None = None

    def __repr__(self) -> str:
        return f"ElementNode(<{self.tag}>)"

    @property
    def element(self) -> ET.Element:
        return self._element

    @property
    def tag(self) -> str:
        return _local_name(self._element.tag).lower()

    @property
    def transforms(self) -> list[AffineMatrix]:
        if self._transforms is None:
            self._transforms = parse_transform(self._element.get("transform"))
        return self._transforms

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._element.get(name, default)

    def children(self) -> Iterator[ElementNode]:
        for child in self._element:
            # comments and processing instructions have a callable tag
            if isinstance(child.tag, str):
                yield ElementNode(child)


def load_svg(source: Union[str, os.PathLike]) -> ElementNode:
    """Parse an SVG document and return its root node.

    Parameters
    ----------
    source : str | PathLike
        Path to an SVG file, or the SVG markup itself (any string whose
        first non-blank character is ``<``).

    Raises
    ------
    FileNotFoundError
        If *source* names a file that does not exist.
    xml.etree.ElementTree.ParseError
        If the document is not well-formed XML.
    """
    if isinstance(source, str) and source.lstrip().startswith("<"):
        root = ET.fromstring(source)
    else:
        path = os.fspath(source)
        if not os.path.exists(path):
            raise FileNotFoundError(f"SVG file not found: {path}")
        root = ET.parse(path).getroot()

    node = ElementNode(root)
    logger.debug("Loaded SVG root <%s>", node.tag)
    return node
