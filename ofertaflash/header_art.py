"""
HeaderArtGenerator - decorative header background shapes.

Supports the eight header-art variants:
- Block: flat primary band with a thin secondary stripe
- Slash: diagonal cut
- Wave: double bezier wave
- Peak: chevron pointing down with a secondary facet
- Arc: concave bottom edge
- Steps: staircase bottom edge
- Brush: irregular painted edge
- Circles: primary band with translucent secondary discs

Shapes are defined in CSS clip-path percentages or SVG viewBox units and
stretched onto the header box, so they follow the header at any size.
"""

import logging
from typing import List

from .geometry import (
    RGBA, Box, Point, cubic_bezier, map_viewbox, polygon_from_percent,
    quadratic_bezier, with_alpha,
)
from .models import HeaderArtStyle
from .styles import HEADER_ART_PRESETS
from .tree import Ellipse, Group, Node, Polygon, Rect

logger = logging.getLogger(__name__)

SLASH_POLYGON = [(0, 0), (100, 0), (100, 75), (0, 100)]
PEAK_POLYGON = [(0, 0), (100, 0), (100, 75), (50, 100), (0, 75)]
PEAK_FACET_POLYGON = [(100, 0), (100, 75), (50, 100), (75, 50)]
STEPS_POLYGON = [
    (0, 0), (100, 0), (100, 65), (75, 65), (75, 80), (50, 80),
    (50, 95), (25, 95), (25, 100), (0, 100),
]

WAVE_VIEWBOX = (500, 100)
ARC_VIEWBOX = (500, 100)
BRUSH_VIEWBOX = (500, 150)


def _wave(start_y: float, c1: Point, c2: Point, end_y: float) -> List[Point]:
    # M0,start C c1 c2 500,end L500,0 L0,0 Z
    start = (0.0, start_y)
    return [start] + cubic_bezier(start, c1, c2, (500.0, end_y)) + [(500.0, 0.0), (0.0, 0.0)]


def _arc() -> List[Point]:
    # M0,0 L500,0 L500,60 Q250,120 0,60 Z
    return [(0.0, 0.0), (500.0, 0.0), (500.0, 60.0)] + quadratic_bezier((500, 60), (250, 120), (0, 60))


def _brush() -> List[Point]:
    # M0,0 H500 V100 then four cubic strokes back to the left edge
    points = [(0.0, 0.0), (500.0, 0.0), (500.0, 100.0)]
    segments = [
        ((500, 100), (450, 120), (400, 80), (350, 110)),
        ((350, 110), (300, 140), (250, 90), (200, 120)),
        ((200, 120), (150, 150), (100, 100), (50, 130)),
        ((50, 130), (0, 160), (-50, 110), (0, 80)),
    ]
    for p0, p1, p2, p3 in segments:
        points.extend(cubic_bezier(p0, p1, p2, p3, steps=16))
    return points


class HeaderArtGenerator:
    """
    Builds the render nodes for a header-art variant.

    Every variant is clipped to the header box by the caller; shapes that
    bleed outside it (circles) are cut there.
    """

    def build(self, style: HeaderArtStyle, box: Box, primary: RGBA, secondary: RGBA, rem: float) -> List[Node]:
        """
        Build the background shape for a header.

        Args:
            style: Header-art variant
            box: Header box in layout pixels
            primary: Fill color of the main shape
            secondary: Accent color
            rem: Layout pixels per rem (for hairline strokes)

        Returns:
            Nodes to draw, bottom to top
        """
        style = HeaderArtStyle(style)
        if style not in HEADER_ART_PRESETS:
            logger.warning(f"Unknown header art {style!r}, using block")
            style = HeaderArtStyle.BLOCK

        if style == HeaderArtStyle.SLASH:
            return [Polygon(polygon_from_percent(SLASH_POLYGON, box), primary, name="header-art")]
        elif style == HeaderArtStyle.WAVE:
            return [
                Polygon(
                    map_viewbox(_wave(60, (150, 130), (350, -30), 60), WAVE_VIEWBOX, box),
                    with_alpha(secondary, 0.5), name="header-art-accent",
                ),
                Polygon(
                    map_viewbox(_wave(50, (150, 120), (350, -20), 50), WAVE_VIEWBOX, box),
                    primary, name="header-art",
                ),
            ]
        elif style == HeaderArtStyle.PEAK:
            return [
                Polygon(polygon_from_percent(PEAK_POLYGON, box), primary, name="header-art"),
                Polygon(
                    polygon_from_percent(PEAK_FACET_POLYGON, box),
                    with_alpha(secondary, 0.2), name="header-art-accent",
                ),
            ]
        elif style == HeaderArtStyle.ARC:
            return [Polygon(map_viewbox(_arc(), ARC_VIEWBOX, box), primary, name="header-art")]
        elif style == HeaderArtStyle.STEPS:
            return [Polygon(polygon_from_percent(STEPS_POLYGON, box), primary, name="header-art")]
        elif style == HeaderArtStyle.BRUSH:
            return [Polygon(map_viewbox(_brush(), BRUSH_VIEWBOX, box), primary, name="header-art")]
        elif style == HeaderArtStyle.CIRCLES:
            return self._circles(box, primary, secondary)
        else:
            return self._block(box, primary, secondary, rem)

    def _block(self, box: Box, primary: RGBA, secondary: RGBA, rem: float) -> List[Node]:
        stripe = max(1.0, rem / 16)
        return [
            Rect(box, fill=primary, name="header-art"),
            Rect(Box(box.x, box.bottom - stripe, box.w, stripe), fill=secondary, name="header-art-accent"),
        ]

    def _circles(self, box: Box, primary: RGBA, secondary: RGBA) -> List[Node]:
        diameter = max(box.w, box.h) * 0.5
        accent = with_alpha(secondary, 0.2)
        return [
            Rect(box, fill=primary, name="header-art"),
            Group(
                [
                    Ellipse(Box(box.x - diameter / 2, box.y - diameter / 2, diameter, diameter), accent),
                    Ellipse(Box(box.right - diameter / 2, box.bottom - diameter / 2, diameter, diameter), accent),
                ],
                clip=box,
                name="header-art-accent",
            ),
        ]
