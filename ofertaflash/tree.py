"""
Render tree produced by CompositionRenderer.

Nodes are laid out in preview (authoring) pixels. The auto-fit engine adjusts
Text.size and Row.fit_scale in place; the rasterizer maps the whole tree to
device pixels with a single affine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .geometry import RGBA, Affine, Box, Point


class BodyMode(str, Enum):
    HERO = "hero"
    SLIDE = "slide"
    GRID = "grid"
    EMPTY = "empty"


@dataclass
class Node:
    name: str = field(default="", kw_only=True)


@dataclass
class Rect(Node):
    box: Box
    fill: Optional[RGBA] = None
    outline: Optional[RGBA] = None
    width: float = 0.0
    radius: float = 0.0
    dash: Optional[Tuple[float, float]] = None  # (dash, gap)
    gradient: Optional[Tuple[RGBA, RGBA]] = None  # 135deg, overrides fill


@dataclass
class Polygon(Node):
    points: List[Point]
    fill: RGBA


@dataclass
class Ellipse(Node):
    box: Box
    fill: RGBA


@dataclass
class Picture(Node):
    src: str
    box: Box
    fit: str = "contain"  # contain | cover
    opacity: float = 1.0
    radius: float = 0.0
    shadow: bool = False


@dataclass
class Placeholder(Node):
    """Stand-in for a missing or unloadable image."""
    box: Box
    color: RGBA = (156, 163, 175, 255)


@dataclass
class Text(Node):
    text: str
    box: Box
    family: str
    color: RGBA
    base_size: float
    size: float = 0.0
    bold: bool = True
    align: str = "center"  # left | center | right
    valign: str = "top"  # top | center | bottom
    wrap: bool = True
    max_lines: Optional[int] = None
    fit_height: bool = False
    strike: bool = False
    shadow: Optional[RGBA] = None

    def __post_init__(self):
        if not self.size:
            self.size = self.base_size


@dataclass
class Span:
    """Inline run of text inside a Row; offsets are in em of the span's size."""
    text: str
    family: str
    size: float
    color: RGBA
    bold: bool = True
    dx_em: float = 0.0
    dy_em: float = 0.0
    strike: bool = False


@dataclass
class Row(Node):
    """
    Single-line inline row of spans sharing a baseline.

    fit_role selects the width margin used by auto-fit (footer, price, title);
    None disables width fitting.
    """
    box: Box
    spans: List[Span]
    gap: float = 0.0
    align: str = "center"
    fit_role: Optional[str] = None
    fit_scale: float = 1.0


@dataclass
class Group(Node):
    children: List[Node]
    transform: Affine = field(default_factory=Affine)
    clip: Optional[Box] = None
    opacity: float = 1.0


@dataclass
class Vignette(Node):
    """Radial darkening toward the edges of box."""
    box: Box
    color: RGBA = (0, 0, 0, 255)
    strength: float = 0.25


@dataclass
class Layer:
    name: str
    nodes: List[Node] = field(default_factory=list)


@dataclass
class RenderTree:
    format_id: str
    width: float
    height: float
    mode: BodyMode
    layers: List[Layer] = field(default_factory=list)

    def layer(self, name: str) -> Layer:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(name)

    def walk(self) -> Iterator[Node]:
        """Depth-first iteration over every node, groups included."""
        stack: List[Node] = []
        for layer in reversed(self.layers):
            stack.extend(reversed(layer.nodes))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, Group):
                stack.extend(reversed(node.children))

    def find(self, name: str) -> Optional[Node]:
        for node in self.walk():
            if node.name == name:
                return node
        return None

    def find_all(self, prefix: str) -> List[Node]:
        return [node for node in self.walk() if node.name.startswith(prefix)]

    def asset_sources(self) -> List[str]:
        """Distinct image sources referenced by the tree, in draw order."""
        seen = []
        for node in self.walk():
            if isinstance(node, Picture) and node.src not in seen:
                seen.append(node.src)
        return seen
