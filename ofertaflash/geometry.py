"""
Geometry helpers shared by the renderer, auto-fit engine and rasterizer.

Everything here works in layout pixels (floats). The rasterizer converts to
device pixels with an Affine at capture time.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

Point = Tuple[float, float]
RGBA = Tuple[int, int, int, int]

# CSS rem expressed as a fraction of the canvas' smaller side.
# A 500px-wide A4 preview gives the browser's 16px rem.
REM_PER_VMIN = 0.032

TRANSPARENT: RGBA = (0, 0, 0, 0)


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in layout pixels."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Point:
        return (self.x + self.w / 2, self.y + self.h / 2)

    @property
    def coords(self) -> Tuple[float, float, float, float]:
        """Return (left, top, right, bottom)."""
        return (self.x, self.y, self.right, self.bottom)

    def point(self, fx: float, fy: float) -> Point:
        """Point at fractional position inside the box (0..1 on each axis)."""
        return (self.x + self.w * fx, self.y + self.h * fy)

    def inset(self, dx: float, dy: float = None) -> "Box":
        dy = dx if dy is None else dy
        return Box(self.x + dx, self.y + dy, max(0.0, self.w - 2 * dx), max(0.0, self.h - 2 * dy))

    def pad(self, top: float = 0, right: float = 0, bottom: float = 0, left: float = 0) -> "Box":
        return Box(
            self.x + left,
            self.y + top,
            max(0.0, self.w - left - right),
            max(0.0, self.h - top - bottom),
        )

    def translate(self, dx: float, dy: float) -> "Box":
        return Box(self.x + dx, self.y + dy, self.w, self.h)

    def sub(self, fx: float, fy: float, fw: float, fh: float) -> "Box":
        """Fractional sub-box: offsets and sizes relative to this box."""
        return Box(self.x + self.w * fx, self.y + self.h * fy, self.w * fw, self.h * fh)

    def split_columns(self, count: int, gap: float = 0) -> List["Box"]:
        """Split horizontally into equal columns separated by gap."""
        if count <= 0:
            return []
        col_w = (self.w - gap * (count - 1)) / count
        return [Box(self.x + i * (col_w + gap), self.y, col_w, self.h) for i in range(count)]

    def split_rows(self, weights: Sequence[float], gap: float = 0) -> List["Box"]:
        """Split vertically into rows proportional to weights."""
        total = sum(weights)
        if total <= 0:
            return [Box(self.x, self.y, self.w, 0) for _ in weights]
        usable = self.h - gap * (len(weights) - 1)
        rows = []
        y = self.y
        for weight in weights:
            h = usable * weight / total
            rows.append(Box(self.x, y, self.w, h))
            y += h + gap
        return rows

    def intersect(self, other: "Box") -> "Box":
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.right, other.right)
        y2 = min(self.bottom, other.bottom)
        return Box(x1, y1, max(0.0, x2 - x1), max(0.0, y2 - y1))

    @property
    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0


@dataclass(frozen=True)
class Affine:
    """
    Axis-aligned affine map: p' = (sx * x + tx, sy * y + ty).

    Element transforms only translate and scale uniformly, and capture
    rescales per axis, so rotation is never needed.
    """
    sx: float = 1.0
    sy: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    def apply(self, point: Point) -> Point:
        return (self.sx * point[0] + self.tx, self.sy * point[1] + self.ty)

    def apply_box(self, box: Box) -> Box:
        x, y = self.apply((box.x, box.y))
        return Box(x, y, box.w * self.sx, box.h * self.sy)

    def apply_points(self, points: Iterable[Point]) -> List[Point]:
        return [self.apply(p) for p in points]

    def then(self, inner: "Affine") -> "Affine":
        """Compose so that inner is applied first, then self."""
        return Affine(
            sx=self.sx * inner.sx,
            sy=self.sy * inner.sy,
            tx=self.sx * inner.tx + self.tx,
            ty=self.sy * inner.ty + self.ty,
        )

    @property
    def scale(self) -> float:
        """Representative uniform scale (for font sizes and stroke widths)."""
        return (self.sx + self.sy) / 2


def element_affine(anchor: Point, offset_x: float, offset_y: float, scale: float) -> Affine:
    """
    Translate-then-scale around an anchor point.

    Matches CSS `transform: translate(x, y) scale(s)` with transform-origin at
    the anchor: p' = anchor + offset + s * (p - anchor).
    """
    ax, ay = anchor
    return Affine(
        sx=scale,
        sy=scale,
        tx=ax + offset_x - scale * ax,
        ty=ay + offset_y - scale * ay,
    )


def fit_contain(src_size: Tuple[float, float], box: Box) -> Box:
    """Largest box with the source aspect ratio centered inside box."""
    sw, sh = src_size
    if sw <= 0 or sh <= 0 or box.is_empty:
        return Box(box.x, box.y, 0, 0)
    ratio = min(box.w / sw, box.h / sh)
    w, h = sw * ratio, sh * ratio
    return Box(box.x + (box.w - w) / 2, box.y + (box.h - h) / 2, w, h)


def fit_cover(src_size: Tuple[float, float], box: Box) -> Tuple[float, float, float, float]:
    """
    Crop rectangle (in source pixels) that fills box without distortion.

    Returns:
        (left, top, right, bottom) in source coordinates
    """
    sw, sh = src_size
    if box.is_empty:
        return (0, 0, sw, sh)
    target_ratio = box.w / box.h
    if sw / sh > target_ratio:
        crop_w = sh * target_ratio
        left = (sw - crop_w) / 2
        return (left, 0, left + crop_w, sh)
    crop_h = sw / target_ratio
    top = (sh - crop_h) / 2
    return (0, top, sw, top + crop_h)


def rem_size(width: float, height: float) -> float:
    """Layout pixels per rem for a canvas."""
    return min(width, height) * REM_PER_VMIN


def vmin(value: float, width: float, height: float) -> float:
    """CSS vmin units to layout pixels."""
    return value / 100 * min(width, height)


def polygon_from_percent(points: Sequence[Point], box: Box) -> List[Point]:
    """Map CSS clip-path style percentages (0..100) onto box."""
    return [(box.x + box.w * px / 100, box.y + box.h * py / 100) for px, py in points]


def cubic_bezier(p0: Point, p1: Point, p2: Point, p3: Point, steps: int = 24) -> List[Point]:
    points = []
    for i in range(1, steps + 1):
        t = i / steps
        mt = 1 - t
        x = mt ** 3 * p0[0] + 3 * mt ** 2 * t * p1[0] + 3 * mt * t ** 2 * p2[0] + t ** 3 * p3[0]
        y = mt ** 3 * p0[1] + 3 * mt ** 2 * t * p1[1] + 3 * mt * t ** 2 * p2[1] + t ** 3 * p3[1]
        points.append((x, y))
    return points


def quadratic_bezier(p0: Point, p1: Point, p2: Point, steps: int = 24) -> List[Point]:
    points = []
    for i in range(1, steps + 1):
        t = i / steps
        mt = 1 - t
        x = mt ** 2 * p0[0] + 2 * mt * t * p1[0] + t ** 2 * p2[0]
        y = mt ** 2 * p0[1] + 2 * mt * t * p1[1] + t ** 2 * p2[1]
        points.append((x, y))
    return points


def map_viewbox(points: Iterable[Point], viewbox: Tuple[float, float], box: Box) -> List[Point]:
    """Stretch points from an SVG viewBox (preserveAspectRatio=none) onto box."""
    vw, vh = viewbox
    return [(box.x + px / vw * box.w, box.y + py / vh * box.h) for px, py in points]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


_RGBA_FN = re.compile(r"rgba?\(\s*([^)]*)\)", re.IGNORECASE)


def parse_color(color: str) -> RGBA:
    """
    Parse a CSS color into an RGBA tuple.

    Accepts #rgb, #rgba, #rrggbb, #rrggbbaa, rgb()/rgba() and 'transparent'.
    """
    if color is None:
        return TRANSPARENT
    value = color.strip()
    if value.lower() == "transparent":
        return TRANSPARENT

    match = _RGBA_FN.fullmatch(value)
    if match:
        parts = [p.strip() for p in match.group(1).split(",")]
        if len(parts) not in (3, 4):
            raise ValueError(f"Invalid color: {color!r}")
        r, g, b = (int(float(p)) for p in parts[:3])
        a = int(round(float(parts[3]) * 255)) if len(parts) == 4 else 255
        return (r, g, b, a)

    hex_value = value.lstrip("#")
    if len(hex_value) in (3, 4):
        hex_value = "".join(c * 2 for c in hex_value)
    if len(hex_value) == 6:
        hex_value += "ff"
    if len(hex_value) != 8:
        raise ValueError(f"Invalid color: {color!r}")
    try:
        return tuple(int(hex_value[i:i + 2], 16) for i in (0, 2, 4, 6))
    except ValueError:
        raise ValueError(f"Invalid color: {color!r}") from None


def with_alpha(color: RGBA, opacity: float) -> RGBA:
    """Scale the alpha channel of a color by opacity."""
    r, g, b, a = color
    return (r, g, b, int(round(a * clamp(opacity, 0.0, 1.0))))


def mix(c1: RGBA, c2: RGBA, t: float) -> RGBA:
    return tuple(int(round(a + (b - a) * t)) for a, b in zip(c1, c2))


def bounds(points: Iterable[Point]) -> Box:
    xs, ys = [], []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        return Box(0, 0, 0, 0)
    return Box(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))
