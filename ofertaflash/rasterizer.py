"""
Rasterizer - Pillow-based capture of a RenderTree.

Handles:
1. Mapping the preview-sized tree to the target pixel size
2. Drawing shapes, gradients and frames
3. Placing product images (contain/cover, rounded, drop shadow)
4. Drawing wrapped text and inline rows on a shared baseline
5. Clipping and group opacity
6. Encoding the final image as PNG

Every node is drawn into a tile covering its device bounds and alpha
composited onto the target surface, so large canvases never allocate a
full-size buffer per node.
"""

import io
import logging
import math
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageFilter

from .geometry import RGBA, Affine, Box, bounds, fit_contain, fit_cover, with_alpha
from .text import LINE_HEIGHT, TextMeasurer
from .tree import (
    Ellipse, Group, Node, Picture, Placeholder, Polygon, Rect, RenderTree, Row, Text, Vignette,
)

logger = logging.getLogger(__name__)


class _Surface:
    """An RGBA image positioned at (ox, oy) in device space."""

    def __init__(self, image: Image.Image, ox: int = 0, oy: int = 0):
        self.image = image
        self.ox = ox
        self.oy = oy

    @property
    def box(self) -> Box:
        return Box(self.ox, self.oy, self.image.width, self.image.height)


def _pixel_bounds(box: Box) -> Tuple[int, int, int, int]:
    return (
        int(math.floor(box.x)),
        int(math.floor(box.y)),
        int(math.ceil(box.right)),
        int(math.ceil(box.bottom)),
    )


def _scale_alpha(image: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1:
        return image
    alpha = image.getchannel("A").point(lambda a: int(a * max(0.0, opacity)))
    image.putalpha(alpha)
    return image


def _composite_at(tile: Image.Image, image: Image.Image, x: int, y: int) -> None:
    """alpha_composite that tolerates negative offsets."""
    sx, sy = max(0, -x), max(0, -y)
    dx, dy = max(0, x), max(0, y)
    if sx >= image.width or sy >= image.height or dx >= tile.width or dy >= tile.height:
        return
    tile.alpha_composite(image, dest=(dx, dy), source=(sx, sy))


def _rounded_mask(size: Tuple[int, int], radius: float) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle([(0, 0), (size[0] - 1, size[1] - 1)], radius=radius, fill=255)
    return mask


class Rasterizer:
    """
    Renders trees using Pillow.

    Images are looked up in the prefetched asset map; a missing entry draws
    the placeholder instead.
    """

    def __init__(self, measurer: Optional[TextMeasurer] = None, assets: Optional[Dict[str, Image.Image]] = None):
        self.measurer = measurer or TextMeasurer()
        self.assets = assets or {}

    def rasterize(self, tree: RenderTree, size: Tuple[int, int]) -> Image.Image:
        """
        Draw the tree at an exact pixel size.

        Args:
            tree: Tree laid out in preview pixels
            size: Output (width, height) in device pixels

        Returns:
            RGBA image of exactly `size`
        """
        width, height = size
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid output size: {size}")
        root = Affine(sx=width / tree.width, sy=height / tree.height)
        surface = _Surface(Image.new("RGBA", (width, height), (0, 0, 0, 0)))
        for layer in tree.layers:
            for node in layer.nodes:
                self._draw(node, root, surface)
        return surface.image

    # ============== Dispatch ==============

    def _draw(self, node: Node, m: Affine, surface: _Surface) -> None:
        if isinstance(node, Group):
            self._draw_group(node, m, surface)
        elif isinstance(node, Rect):
            self._draw_rect(node, m, surface)
        elif isinstance(node, Polygon):
            self._draw_polygon(node, m, surface)
        elif isinstance(node, Ellipse):
            self._draw_ellipse(node, m, surface)
        elif isinstance(node, Picture):
            self._draw_picture(node, m, surface)
        elif isinstance(node, Placeholder):
            self._draw_placeholder(node, m, surface)
        elif isinstance(node, Text):
            self._draw_text(node, m, surface)
        elif isinstance(node, Row):
            self._draw_row(node, m, surface)
        elif isinstance(node, Vignette):
            self._draw_vignette(node, m, surface)
        else:
            raise TypeError(f"Cannot rasterize {type(node).__name__}")

    def _tile(self, surface: _Surface, device_box: Box) -> Optional[Tuple[Image.Image, int, int]]:
        """Transparent tile covering device_box clipped to the surface."""
        clipped = device_box.intersect(surface.box)
        if clipped.is_empty:
            return None
        x1, y1, x2, y2 = _pixel_bounds(clipped)
        if x2 <= x1 or y2 <= y1:
            return None
        return Image.new("RGBA", (x2 - x1, y2 - y1), (0, 0, 0, 0)), x1, y1

    def _commit(self, surface: _Surface, tile: Image.Image, x: int, y: int) -> None:
        surface.image.alpha_composite(tile, dest=(x - surface.ox, y - surface.oy))

    # ============== Shapes ==============

    def _draw_group(self, node: Group, m: Affine, surface: _Surface) -> None:
        inner = m.then(node.transform)
        if node.clip is None and node.opacity >= 1:
            for child in node.children:
                self._draw(child, inner, surface)
            return

        area = m.apply_box(node.clip) if node.clip is not None else surface.box
        placed = self._tile(surface, area)
        if placed is None:
            return
        tile, x, y = placed
        sub = _Surface(tile, x, y)
        for child in node.children:
            self._draw(child, inner, sub)
        self._commit(surface, _scale_alpha(tile, node.opacity), x, y)

    def _draw_rect(self, node: Rect, m: Affine, surface: _Surface) -> None:
        box = m.apply_box(node.box)
        if box.w < 1 or box.h < 1:
            return
        width = node.width * m.scale
        placed = self._tile(surface, box.inset(-width, -width))
        if placed is None:
            return
        tile, tx, ty = placed
        local = [(box.x - tx, box.y - ty), (box.right - tx - 1, box.bottom - ty - 1)]
        radius = node.radius * m.scale

        if node.gradient is not None:
            w, h = int(round(box.w)), int(round(box.h))
            fill = self._gradient((w, h), *node.gradient)
            if radius > 0:
                fill.putalpha(ImageChops.multiply(fill.getchannel("A"), _rounded_mask((w, h), radius)))
            _composite_at(tile, fill, int(round(box.x - tx)), int(round(box.y - ty)))
        elif node.fill is not None and node.fill[3] > 0:
            ImageDraw.Draw(tile).rounded_rectangle(local, radius=radius, fill=node.fill)

        if node.outline is not None and width > 0:
            draw = ImageDraw.Draw(tile)
            # Stroke is centered on the box edge
            half = width / 2
            stroke = [(local[0][0] - half, local[0][1] - half), (local[1][0] + half, local[1][1] + half)]
            if node.dash:
                self._dashed_outline(draw, stroke, node.outline, width, node.dash[0] * m.scale, node.dash[1] * m.scale)
            else:
                draw.rounded_rectangle(
                    stroke, radius=radius, outline=node.outline, width=max(1, int(round(width))),
                )
        self._commit(surface, tile, tx, ty)

    def _gradient(self, size: Tuple[int, int], start: RGBA, end: RGBA) -> Image.Image:
        """135deg linear gradient (top-left to bottom-right)."""
        horizontal = Image.linear_gradient("L").rotate(90).resize(size)
        vertical = Image.linear_gradient("L").resize(size)
        mask = ImageChops.invert(Image.blend(horizontal, vertical, 0.5))
        first = Image.new("RGBA", size, start)
        second = Image.new("RGBA", size, end)
        return Image.composite(first, second, mask)

    def _dashed_outline(self, draw, stroke, color: RGBA, width: float, dash: float, gap: float) -> None:
        (x1, y1), (x2, y2) = stroke
        line = max(1, int(round(width)))
        half = width / 2
        dash = max(1.0, dash)
        gap = max(1.0, gap)
        edges = [
            ((x1, y1 + half), (x2, y1 + half)),
            ((x2 - half, y1), (x2 - half, y2)),
            ((x2, y2 - half), (x1, y2 - half)),
            ((x1 + half, y2), (x1 + half, y1)),
        ]
        for (ax, ay), (bx, by) in edges:
            length = math.hypot(bx - ax, by - ay)
            if length == 0:
                continue
            ux, uy = (bx - ax) / length, (by - ay) / length
            position = 0.0
            while position < length:
                end = min(position + dash, length)
                draw.line(
                    [(ax + ux * position, ay + uy * position), (ax + ux * end, ay + uy * end)],
                    fill=color, width=line,
                )
                position = end + gap

    def _draw_polygon(self, node: Polygon, m: Affine, surface: _Surface) -> None:
        points = m.apply_points(node.points)
        placed = self._tile(surface, bounds(points).inset(-1, -1))
        if placed is None:
            return
        tile, tx, ty = placed
        ImageDraw.Draw(tile).polygon([(x - tx, y - ty) for x, y in points], fill=node.fill)
        self._commit(surface, tile, tx, ty)

    def _draw_ellipse(self, node: Ellipse, m: Affine, surface: _Surface) -> None:
        box = m.apply_box(node.box)
        placed = self._tile(surface, box)
        if placed is None:
            return
        tile, tx, ty = placed
        ImageDraw.Draw(tile).ellipse(
            [(box.x - tx, box.y - ty), (box.right - tx, box.bottom - ty)], fill=node.fill,
        )
        self._commit(surface, tile, tx, ty)

    def _draw_vignette(self, node: Vignette, m: Affine, surface: _Surface) -> None:
        box = m.apply_box(node.box)
        w, h = max(1, int(round(box.w))), max(1, int(round(box.h)))
        # radial_gradient is black at the center and white at the edges
        mask = Image.radial_gradient("L").resize((w, h)).point(lambda v: int(v * node.strength))
        shade = Image.new("RGBA", (w, h), node.color[:3] + (0,))
        shade.putalpha(mask)
        placed = self._tile(surface, box)
        if placed is None:
            return
        tile, tx, ty = placed
        _composite_at(tile, shade, int(round(box.x - tx)), int(round(box.y - ty)))
        self._commit(surface, tile, tx, ty)

    # ============== Images ==============

    def _draw_placeholder(self, node: Placeholder, m: Affine, surface: _Surface) -> None:
        box = m.apply_box(node.box)
        if box.w < 2 or box.h < 2:
            return
        placed = self._tile(surface, box)
        if placed is None:
            return
        tile, tx, ty = placed
        draw = ImageDraw.Draw(tile)
        side = min(box.w, box.h) * 0.5
        cx, cy = box.center[0] - tx, box.center[1] - ty
        line = max(1, int(round(side * 0.06)))
        draw.rounded_rectangle(
            [(box.x - tx, box.y - ty), (box.right - tx - 1, box.bottom - ty - 1)],
            radius=min(box.w, box.h) * 0.1, fill=with_alpha(node.color, 0.15),
        )
        # package glyph: a box with a lid seam
        draw.rectangle(
            [(cx - side / 2, cy - side / 3), (cx + side / 2, cy + side / 2)], outline=node.color, width=line,
        )
        draw.line([(cx - side / 2, cy - side / 3), (cx - side / 3, cy - side / 2),
                   (cx + side / 3, cy - side / 2), (cx + side / 2, cy - side / 3)], fill=node.color, width=line)
        draw.line([(cx, cy - side / 3), (cx, cy + side / 6)], fill=node.color, width=line)
        self._commit(surface, tile, tx, ty)

    def _draw_picture(self, node: Picture, m: Affine, surface: _Surface) -> None:
        source = self.assets.get(node.src)
        if source is None:
            self._draw_placeholder(Placeholder(node.box, name=node.name), m, surface)
            return

        box = m.apply_box(node.box)
        if node.fit == "cover":
            target = box
            left, top, right, bottom = fit_cover(source.size, box)
            image = source.crop((int(left), int(top), int(math.ceil(right)), int(math.ceil(bottom))))
        else:
            target = fit_contain(source.size, box)
            image = source
        w, h = int(round(target.w)), int(round(target.h))
        if w <= 0 or h <= 0:
            return
        image = image.convert("RGBA").resize((w, h), Image.Resampling.LANCZOS)
        if node.radius > 0:
            image.putalpha(ImageChops.multiply(image.getchannel("A"), _rounded_mask((w, h), node.radius * m.scale)))
        image = _scale_alpha(image, node.opacity)

        blur = max(1, int(round(min(w, h) * 0.03))) if node.shadow else 0
        placed = self._tile(surface, target.inset(-3 * blur, -3 * blur) if blur else target)
        if placed is None:
            return
        tile, tx, ty = placed
        x, y = int(round(target.x - tx)), int(round(target.y - ty))
        if blur:
            shadow = Image.new("RGBA", tile.size, (0, 0, 0, 0))
            silhouette = Image.new("RGBA", (w, h), (0, 0, 0, 90))
            silhouette.putalpha(ImageChops.multiply(silhouette.getchannel("A"), image.getchannel("A")))
            shadow.paste(silhouette, (x, y + blur), silhouette)
            tile.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(blur)))
        tile.paste(image, (x, y), image)
        self._commit(surface, tile, tx, ty)

    # ============== Text ==============

    def _draw_text(self, node: Text, m: Affine, surface: _Surface) -> None:
        measurer = self.measurer
        size = node.size
        if node.wrap:
            lines = measurer.wrap(node.text, node.family, size, node.box.w, node.bold, node.max_lines)
        else:
            lines = [node.text]
        line_h = measurer.line_height(size)
        block_h = line_h * len(lines)
        if node.valign == "center":
            top = node.box.y + (node.box.h - block_h) / 2
        elif node.valign == "bottom":
            top = node.box.bottom - block_h
        else:
            top = node.box.y

        # Residual overflow is clipped to the box (with room for descenders)
        slack = size * (LINE_HEIGHT - 1)
        placed = self._tile(surface, m.apply_box(node.box.inset(-slack, -slack)))
        if placed is None:
            return
        tile, tx, ty = placed
        draw = ImageDraw.Draw(tile)
        font = measurer.resolver.get(node.family, size * m.scale, node.bold)

        for index, line in enumerate(lines):
            line_w = measurer.width(line, node.family, size, node.bold)
            if node.align == "left":
                x = node.box.x
            elif node.align == "right":
                x = node.box.right - line_w
            else:
                x = node.box.x + (node.box.w - line_w) / 2
            # baseline sits at ~80% of the font size inside the line box
            baseline = top + index * line_h + (line_h - size) / 2 + size * 0.8
            dx, dy = m.apply((x, baseline))
            origin = (dx - tx, dy - ty)
            if node.shadow is not None:
                offset = max(1, size * m.scale * 0.04)
                draw.text((origin[0] + offset, origin[1] + offset), line, font=font, fill=node.shadow, anchor="ls")
            draw.text(origin, line, font=font, fill=node.color, anchor="ls")
            if node.strike:
                strike_y = origin[1] - size * m.scale * 0.3
                draw.line(
                    [(origin[0], strike_y), (origin[0] + line_w * m.sx, strike_y)],
                    fill=node.color, width=max(1, int(round(size * m.scale * 0.08))),
                )
        self._commit(surface, tile, tx, ty)

    def _draw_row(self, node: Row, m: Affine, surface: _Surface) -> None:
        measurer = self.measurer
        scale = node.fit_scale
        widths = [measurer.width(s.text, s.family, s.size * scale, s.bold) for s in node.spans]
        gap = node.gap * scale
        total = sum(widths) + gap * max(0, len(widths) - 1)
        if node.align == "left":
            x = node.box.x
        elif node.align == "right":
            x = node.box.right - total
        else:
            x = node.box.x + (node.box.w - total) / 2
        largest = max((s.size * scale for s in node.spans), default=0.0)
        baseline = node.box.y + node.box.h / 2 + largest * 0.35

        slack = largest
        placed = self._tile(surface, m.apply_box(node.box.inset(-slack, -slack)))
        if placed is None:
            return
        tile, tx, ty = placed
        draw = ImageDraw.Draw(tile)
        for span, width in zip(node.spans, widths):
            size = span.size * scale
            font = measurer.resolver.get(span.family, size * m.scale, span.bold)
            px, py = m.apply((x + span.dx_em * size, baseline + span.dy_em * size))
            draw.text((px - tx, py - ty), span.text, font=font, fill=span.color, anchor="ls")
            if span.strike:
                strike_y = py - ty - size * m.scale * 0.3
                draw.line([(px - tx, strike_y), (px - tx + width * m.sx, strike_y)], fill=span.color,
                          width=max(1, int(round(size * m.scale * 0.08))))
            x += width + gap
        self._commit(surface, tile, tx, ty)


def encode_png(image: Image.Image) -> bytes:
    """Encode a rasterized frame as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
