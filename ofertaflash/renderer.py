"""
CompositionRenderer - builds the render tree for a theme, products and format.

Handles:
1. Body mode selection (hero, slide, grid, empty state)
2. Header art, header image modes, logo and header texts
3. Product elements wrapped in their per-format transforms
4. Footer text and company info
5. Decorative frame

The renderer is pure: the same inputs always produce the same tree. It lays
out in the preview viewport; output resolution is applied at capture time.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .geometry import (
    RGBA, Box, element_affine, parse_color, rem_size, vmin, with_alpha,
)
from .header_art import HeaderArtGenerator
from .layout import LayoutEngine
from .migration import ensure_active_format
from .models import (
    ElementTransform, FrameStyle, HeaderImageMode, HeaderLayout, Product, Theme,
)
from .presets import SIGNAGE, STORY, Format, get_format
from .pricing import PriceBlockBuilder, discount_percent
from .styles import HeaderArtPreset, effective_header_layout, get_header_art
from .text import TextMeasurer, apply_case
from .tree import (
    BodyMode, Ellipse, Group, Layer, Node, Picture, Placeholder, Rect,
    RenderTree, Row, Span, Text, Vignette,
)

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_WIDTH = 540

EMPTY_TITLE = "Seu cartaz está vazio"
EMPTY_HINT = "Adicione produtos no menu lateral"

CARD_FILL: RGBA = (255, 255, 255, 230)


def select_body_mode(product_count: int, fmt: Format) -> BodyMode:
    """Hero for a single product, slide for a single product on signage, grid otherwise."""
    if product_count <= 0:
        return BodyMode.EMPTY
    if product_count == 1:
        return BodyMode.SLIDE if fmt.id == SIGNAGE else BodyMode.HERO
    return BodyMode.GRID


def font_scale(fmt: Format) -> float:
    if fmt.is_story:
        return 1.2
    if fmt.is_landscape:
        return 0.9
    return 1.0


def body_padding(fmt: Format) -> float:
    """Body padding in rem."""
    if fmt.id == STORY:
        return 1.0
    if fmt.is_landscape:
        return 1.5
    return 2.0


@dataclass
class _Context:
    theme: Theme
    fmt: Format
    width: float
    height: float
    rem: float
    scale: float  # format font scale

    @property
    def canvas(self) -> Box:
        return Box(0, 0, self.width, self.height)

    def color(self, value: str) -> RGBA:
        return parse_color(value)


def _transformed(children: List[Node], box: Box, transform: ElementTransform, name: str) -> Group:
    """Wrap nodes in translate-then-scale around the center of box."""
    return Group(
        children,
        transform=element_affine(box.center, transform.offset_x, transform.offset_y, transform.scale),
        name=name,
    )


class CompositionRenderer:
    """
    Renders a composition into a RenderTree.

    Layers, bottom to top: background, header, body, footer, frame.
    """

    def __init__(
        self,
        preview_width: int = DEFAULT_PREVIEW_WIDTH,
        measurer: Optional[TextMeasurer] = None,
        layout_engine: Optional[LayoutEngine] = None,
        art: Optional[HeaderArtGenerator] = None,
    ):
        self.preview_width = preview_width
        self.measurer = measurer or TextMeasurer()
        self.layout_engine = layout_engine
        self.art = art or HeaderArtGenerator()

    def render(self, theme: Theme, products: Sequence[Product], format_id: Optional[str] = None) -> RenderTree:
        """
        Build the render tree.

        Args:
            theme: Theme to render with
            products: Products in display order
            format_id: Target format (defaults to the theme's active format)

        Returns:
            RenderTree laid out in preview pixels

        Raises:
            FormatNotFound: if the format id is not registered
        """
        fmt = get_format(format_id or theme.format_id)
        theme = ensure_active_format(theme, fmt.id)
        width, height = fmt.preview_size(self.preview_width)
        ctx = _Context(theme, fmt, width, height, rem_size(width, height), font_scale(fmt))
        mode = select_body_mode(len(products), fmt)

        header_box = Box(0, 0, width, self._header_height(ctx))
        footer_h = self._footer_height(ctx)
        footer_box = Box(0, height - footer_h, width, footer_h)
        body_box = Box(0, header_box.bottom, width, max(0.0, footer_box.y - header_box.bottom))

        tree = RenderTree(
            format_id=fmt.id,
            width=width,
            height=height,
            mode=mode,
            layers=[
                Layer("background", self._background(ctx)),
                Layer("header", self._header(ctx, header_box)),
                Layer("body", self._body(ctx, body_box, list(products), mode)),
                Layer("footer", self._footer(ctx, footer_box)),
                Layer("frame", self._frame(ctx)),
            ],
        )
        logger.debug(f"Rendered {fmt.id} tree: {mode.value}, {len(products)} products, {width}x{height}")
        return tree

    # ============== Background ==============

    def _background(self, ctx: _Context) -> List[Node]:
        nodes: List[Node] = [Rect(ctx.canvas, fill=ctx.color(ctx.theme.background_color), name="background")]
        if ctx.theme.background_image:
            nodes.append(Picture(
                ctx.theme.background_image, ctx.canvas, fit="cover", opacity=0.4, name="background-image",
            ))
        return nodes

    # ============== Header ==============

    def _title_size(self, ctx: _Context, logo_beside: bool) -> float:
        size = (3.5 if ctx.fmt.is_landscape else 4.0) * ctx.rem * ctx.scale
        return size * 0.8 if logo_beside else size

    def _logo_size(self, ctx: _Context) -> float:
        return 4.0 * ctx.rem * ctx.scale

    def _header_height(self, ctx: _Context) -> float:
        preset = get_header_art(ctx.theme.header_art_style_id)
        layout = effective_header_layout(ctx.theme)
        pad_top, _, pad_bottom, _ = (value * ctx.rem for value in preset.content_padding)
        title = self._title_size(ctx, layout in (HeaderLayout.LOGO_LEFT, HeaderLayout.LOGO_RIGHT))
        subtitle = 1.25 * ctx.rem
        content = title * 1.2 + ctx.rem * 0.5 + subtitle * 1.2 + ctx.rem * 0.6
        if layout == HeaderLayout.LOGO_TOP:
            content += self._logo_size(ctx) + ctx.rem * 0.5
        minimum = ctx.height * (0.25 if ctx.fmt.is_landscape else 0.20)
        return min(ctx.height * 0.4, max(minimum, pad_top + content + pad_bottom))

    def _header(self, ctx: _Context, box: Box) -> List[Node]:
        theme = ctx.theme
        preset = get_header_art(theme.header_art_style_id)
        mode = HeaderImageMode(theme.header_image_mode) if theme.header_image else HeaderImageMode.NONE
        art = self.art.build(
            preset.id, box, ctx.color(theme.primary_color), ctx.color(theme.secondary_color), ctx.rem,
        )

        nodes: List[Node] = []
        if mode == HeaderImageMode.BACKGROUND:
            nodes.append(Picture(
                theme.header_image, box, fit="cover", opacity=theme.header_image_opacity, name="header-image",
            ))
            nodes.append(Group(art, opacity=0.5, name="header-art-tint"))
        elif mode == HeaderImageMode.HERO:
            nodes.append(Picture(theme.header_image, box, fit="cover", name="header-image"))
        else:
            nodes.extend(art)

        if mode != HeaderImageMode.HERO or preset.allows_hero_overlay:
            nodes.extend(self._header_content(ctx, box, preset))
        return [Group(nodes, clip=box, name="header")]

    def _header_content(self, ctx: _Context, box: Box, preset: HeaderArtPreset) -> List[Node]:
        theme = ctx.theme
        rem = ctx.rem
        pad_top, pad_right, pad_bottom, pad_left = (value * rem for value in preset.content_padding)
        content = box.pad(pad_top, pad_right, pad_bottom, pad_left)
        layout = effective_header_layout(theme)
        elements = theme.header_for(ctx.fmt.id)
        nodes: List[Node] = []

        text_area = content
        if layout != HeaderLayout.TEXT_ONLY:
            size = self._logo_size(ctx)
            if layout == HeaderLayout.LOGO_TOP:
                logo_box = Box(content.center[0] - size / 2, content.y, size, size)
                text_area = content.pad(top=size + rem * 0.5)
            elif layout == HeaderLayout.LOGO_LEFT:
                logo_box = Box(content.x, content.center[1] - size / 2, size, size)
                text_area = content.pad(left=size + rem)
            else:
                logo_box = Box(content.right - size, content.center[1] - size / 2, size, size)
                text_area = content.pad(right=size + rem)
            logo_layout = theme.logo_layout_for(ctx.fmt.id)
            nodes.append(Group(
                [Picture(theme.logo.src, logo_box, fit="contain", name="logo-image")],
                transform=element_affine(logo_box.center, logo_layout.offset_x, logo_layout.offset_y, logo_layout.scale),
                name="logo",
            ))

        title_size = self._title_size(ctx, layout in (HeaderLayout.LOGO_LEFT, HeaderLayout.LOGO_RIGHT))
        subtitle_size = 1.25 * rem
        title_h = title_size * 1.2
        pill_h = subtitle_size * 1.2 + rem * 0.6
        subtitle_text = elements.header_subtitle.text.strip()
        stack_h = title_h + (rem * 0.5 + pill_h if subtitle_text else 0)
        y = text_area.y + max(0.0, (text_area.h - stack_h) / 2)
        header_color = ctx.color(theme.header_text_color)

        title_box = Box(text_area.x, y, text_area.w, title_h)
        title = Row(
            title_box,
            [Span(apply_case(elements.header_title.text, theme.header_title_case),
                  theme.font_family_display, title_size, header_color)],
            fit_role="title",
            name="header-title-text",
        )
        nodes.append(_transformed([title], title_box, elements.header_title, "header-title"))

        if subtitle_text:
            text_w = self.measurer.width(subtitle_text, theme.font_family_body, subtitle_size)
            pill_w = min(text_area.w, text_w + rem * 2)
            pill_box = Box(text_area.center[0] - pill_w / 2, title_box.bottom + rem * 0.5, pill_w, pill_h)
            nodes.append(_transformed(
                [
                    Rect(pill_box, fill=ctx.color(theme.secondary_color), radius=pill_h / 2, name="header-subtitle-pill"),
                    Text(
                        subtitle_text, pill_box.inset(rem * 0.5, rem * 0.3), theme.font_family_body,
                        ctx.color(theme.primary_color), base_size=subtitle_size, wrap=False,
                        valign="center", name="header-subtitle-text",
                    ),
                ],
                pill_box, elements.header_subtitle, "header-subtitle",
            ))
        return nodes

    # ============== Body ==============

    def _body(self, ctx: _Context, box: Box, products: List[Product], mode: BodyMode) -> List[Node]:
        area = box.inset(body_padding(ctx.fmt) * ctx.rem)
        if mode == BodyMode.EMPTY:
            return self._empty_state(ctx, area)
        if mode == BodyMode.HERO:
            return self._hero(ctx, box, area, products[0])
        if mode == BodyMode.SLIDE:
            return self._slide(ctx, area, products[0])
        return self._grid(ctx, area, products)

    def _empty_state(self, ctx: _Context, area: Box) -> List[Node]:
        rem = ctx.rem
        color = ctx.color(ctx.theme.text_color)
        icon = 4 * rem
        cx, cy = area.center
        icon_box = Box(cx - icon / 2, cy - icon - rem, icon, icon)
        title_box = Box(area.x, cy, area.w, 1.5 * rem * 1.3)
        hint_box = Box(area.x, title_box.bottom + rem * 0.25, area.w, rem * 1.3)
        return [Group(
            [
                Placeholder(icon_box, name="empty-state-icon"),
                Text(EMPTY_TITLE, title_box, ctx.theme.font_family_display, color,
                     base_size=1.5 * rem, fit_height=True, name="empty-state-title"),
                Text(EMPTY_HINT, hint_box, ctx.theme.font_family_body, with_alpha(color, 0.6),
                     base_size=rem, bold=False, fit_height=True, name="empty-state-hint"),
            ],
            name="empty-state",
        )]

    def _image(self, product: Product, box: Box, name: str, radius: float = 0.0) -> Node:
        if product.image:
            return Picture(product.image, box, fit="contain", radius=radius, shadow=True, name=name)
        return Placeholder(box, name=name)

    def _badge(self, ctx: _Context, product: Product, center_x: float, center_y: float, diameter: float) -> List[Node]:
        discount = discount_percent(product.price, product.old_price)
        if discount is None:
            return []
        box = Box(center_x - diameter / 2, center_y - diameter / 2, diameter, diameter)
        return [
            Ellipse(box, ctx.color(ctx.theme.primary_color), name="discount-badge-bg"),
            Text(
                f"-{discount}%", box.inset(diameter * 0.12), ctx.theme.font_family_display,
                ctx.color(ctx.theme.header_text_color), base_size=diameter * 0.32,
                wrap=False, valign="center", fit_height=True, name="discount-badge",
            ),
        ]

    def _product_elements(
        self,
        ctx: _Context,
        product: Product,
        image_box: Box,
        name_box: Box,
        description_box: Optional[Box],
        price_box: Box,
        name_size: float,
        price_size: float,
        align: str = "center",
        prefix: str = "product",
    ) -> List[Node]:
        theme = ctx.theme
        layout = product.layout_for(ctx.fmt.id)
        text_color = ctx.color(theme.text_color)
        nodes: List[Node] = [
            _transformed([self._image(product, image_box, f"{prefix}-image-src", radius=ctx.rem * 0.5)],
                         image_box, layout.image, f"{prefix}-image"),
            _transformed([Text(
                product.name, name_box, theme.font_family_display, text_color,
                base_size=name_size, align=align, max_lines=3, fit_height=True, name=f"{prefix}-name-text",
            )], name_box, layout.name, f"{prefix}-name"),
        ]
        if description_box is not None and product.description:
            nodes.append(_transformed([Text(
                product.description, description_box, theme.font_family_body, with_alpha(text_color, 0.8),
                base_size=ctx.rem * ctx.scale, bold=False, align=align, max_lines=3, fit_height=True,
                name=f"{prefix}-description-text",
            )], description_box, layout.description, f"{prefix}-description"))

        price = PriceBlockBuilder(theme, ctx.rem).build(product, price_box, price_size, name=f"{prefix}-price-block")
        diameter = min(price_box.h * 0.6, 4.5 * ctx.rem * ctx.scale)
        price.children.extend(self._badge(ctx, product, price_box.right - diameter * 0.3, price_box.y, diameter))
        nodes.append(_transformed([price], price_box, layout.price, f"{prefix}-price"))
        return nodes

    def _hero(self, ctx: _Context, body: Box, area: Box, product: Product) -> List[Node]:
        rem, scale = ctx.rem, ctx.scale
        nodes: List[Node] = [Vignette(body, name="vignette")]
        nodes.extend(self._product_elements(
            ctx, product,
            image_box=area.sub(0.1, 0.0, 0.8, 0.45),
            name_box=area.sub(0.05, 0.47, 0.9, 0.13),
            description_box=area.sub(0.1, 0.60, 0.8, 0.08),
            price_box=area.sub(0.15, 0.70, 0.7, 0.28),
            name_size=3 * rem * scale,
            price_size=5 * rem * scale,
            prefix="hero",
        ))
        return nodes

    def _slide(self, ctx: _Context, area: Box, product: Product) -> List[Node]:
        rem, scale = ctx.rem, ctx.scale
        left, right = area.split_columns(2, gap=2 * rem)
        return self._product_elements(
            ctx, product,
            image_box=left,
            name_box=right.sub(0, 0.0, 1, 0.3),
            description_box=right.sub(0, 0.32, 1, 0.16),
            price_box=right.sub(0, 0.52, 0.9, 0.45),
            name_size=2 * rem * scale,
            price_size=4 * rem * scale,
            align="left",
            prefix="slide",
        )

    def _grid(self, ctx: _Context, area: Box, products: List[Product]) -> List[Node]:
        rem, scale = ctx.rem, ctx.scale
        engine = self.layout_engine or LayoutEngine(gap=rem)
        grid = engine.calculate_layout(len(products), area, ctx.theme.cols_for(ctx.fmt.id))
        nodes: List[Node] = []
        for cell, product in zip(grid.cells, products):
            inner = cell.box.inset(rem * 0.5)
            image_box, name_box, price_box = inner.split_rows([0.5, 0.2, 0.3], gap=rem * 0.25)
            children: List[Node] = [Rect(cell.box, fill=CARD_FILL, radius=rem * 0.75, name="card-bg")]
            children.extend(self._product_elements(
                ctx, product,
                image_box=image_box,
                name_box=name_box,
                description_box=None,
                price_box=price_box,
                name_size=1.1 * rem * scale,
                price_size=min(2.5 * rem * scale, price_box.h * 0.6),
                prefix=f"card-{cell.index}",
            ))
            nodes.append(Group(children, name=f"card-{cell.index}"))
        return nodes

    # ============== Footer ==============

    def _footer_height(self, ctx: _Context) -> float:
        height = 2.5 * ctx.rem * ctx.scale
        if ctx.theme.company_info and ctx.theme.company_info.visible_items():
            height += 1.75 * ctx.rem * ctx.scale
        return height

    def _footer(self, ctx: _Context, box: Box) -> List[Node]:
        theme = ctx.theme
        rem, scale = ctx.rem, ctx.scale
        color = ctx.color(theme.header_text_color)
        element = theme.header_for(ctx.fmt.id).footer_text
        nodes: List[Node] = [Rect(box, fill=ctx.color(theme.primary_color), name="footer-bg")]

        items = theme.company_info.visible_items() if theme.company_info else []
        text_box = box.pad(0, rem, 0, rem)
        if items:
            text_box, info_box = text_box.split_rows([2.5, 1.75])
            nodes.append(Row(
                info_box,
                [Span("  •  ".join(items), theme.font_family_body, 0.8 * rem * scale, color, bold=False)],
                fit_role="footer",
                name="company-info",
            ))
        if element.text.strip():
            nodes.append(_transformed([Row(
                text_box,
                [Span(element.text, theme.font_family_body, rem * scale, color)],
                fit_role="footer",
                name="footer-text-row",
            )], text_box, element, "footer-text"))
        return nodes

    # ============== Frame ==============

    def _frame(self, ctx: _Context) -> List[Node]:
        theme = ctx.theme
        if not theme.has_frame or theme.frame_thickness <= 0:
            return []
        thickness = vmin(theme.frame_thickness, ctx.width, ctx.height)
        color = ctx.color(theme.frame_color)
        canvas = ctx.canvas
        style = FrameStyle(theme.frame_style)
        if style == FrameStyle.DOUBLE:
            line = thickness / 3
            return [
                Rect(canvas.inset(line / 2), outline=color, width=line, name="frame"),
                Rect(canvas.inset(thickness - line / 2), outline=color, width=line, name="frame-inner"),
            ]
        box = canvas.inset(thickness / 2)
        if style == FrameStyle.DASHED:
            return [Rect(box, outline=color, width=thickness, dash=(thickness * 3, thickness * 2), name="frame")]
        if style == FrameStyle.ROUNDED:
            return [Rect(box, outline=color, width=thickness, radius=2 * ctx.rem, name="frame")]
        return [Rect(box, outline=color, width=thickness, name="frame")]
