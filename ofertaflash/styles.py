"""
Visual presets: theme palettes, header templates, fonts, frames and header art.

Presets are partial theme updates applied with `Theme.model_copy(update=...)`.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import (
    FrameStyle, HeaderArtStyle, HeaderFooterLayout, HeaderImageMode,
    HeaderLayout, PriceCardStyle, Theme, TitleCase,
)
from .presets import known_format_ids


@dataclass(frozen=True)
class HeaderArtPreset:
    """
    Shape and content-placement contract of a header-art variant.

    content_padding is in rem (top, right, bottom, left) and keeps text off
    the decorative edge of the shape.
    """
    id: HeaderArtStyle
    name: str
    logo_positions: Tuple[HeaderLayout, ...]
    content_padding: Tuple[float, float, float, float] = (2.0, 2.0, 2.0, 2.0)
    allows_hero_overlay: bool = False


_ALL_LOGO_POSITIONS = (HeaderLayout.LOGO_LEFT, HeaderLayout.LOGO_RIGHT, HeaderLayout.LOGO_TOP)

HEADER_ART_PRESETS: Dict[HeaderArtStyle, HeaderArtPreset] = {
    preset.id: preset for preset in (
        HeaderArtPreset(HeaderArtStyle.BLOCK, "Bloco Moderno", _ALL_LOGO_POSITIONS, allows_hero_overlay=True),
        HeaderArtPreset(HeaderArtStyle.SLASH, "Corte Diagonal", _ALL_LOGO_POSITIONS, (2.0, 2.0, 4.0, 2.0)),
        HeaderArtPreset(HeaderArtStyle.WAVE, "Onda Suave", _ALL_LOGO_POSITIONS, (0.0, 2.0, 3.0, 2.0)),
        HeaderArtPreset(
            HeaderArtStyle.PEAK, "Pico Geométrico",
            (HeaderLayout.LOGO_TOP,), (2.0, 2.0, 6.0, 2.0),
        ),
        HeaderArtPreset(HeaderArtStyle.ARC, "Arco", _ALL_LOGO_POSITIONS, (2.0, 2.0, 5.0, 2.0)),
        HeaderArtPreset(
            HeaderArtStyle.STEPS, "Degraus",
            (HeaderLayout.LOGO_LEFT, HeaderLayout.LOGO_TOP), (2.0, 2.0, 6.0, 2.0),
        ),
        HeaderArtPreset(HeaderArtStyle.BRUSH, "Pincelada", _ALL_LOGO_POSITIONS, (2.0, 2.0, 4.0, 2.0)),
        HeaderArtPreset(HeaderArtStyle.CIRCLES, "Círculos", (), allows_hero_overlay=True),
    )
}


def get_header_art(style_id: HeaderArtStyle) -> HeaderArtPreset:
    return HEADER_ART_PRESETS.get(HeaderArtStyle(style_id), HEADER_ART_PRESETS[HeaderArtStyle.BLOCK])


def effective_header_layout(theme: Theme) -> HeaderLayout:
    """
    Header layout actually used for a theme.

    Without a logo everything collapses to text-only; a logo position the
    art variant cannot host falls back to the variant's first allowed one.
    """
    requested = HeaderLayout(theme.header_layout_id)
    if theme.logo is None or requested == HeaderLayout.TEXT_ONLY:
        return HeaderLayout.TEXT_ONLY
    preset = get_header_art(theme.header_art_style_id)
    if requested in preset.logo_positions:
        return requested
    if preset.logo_positions:
        return preset.logo_positions[0]
    return HeaderLayout.TEXT_ONLY


@dataclass(frozen=True)
class FontPreset:
    id: str
    name: str
    font_family: str


FONT_PRESETS: Tuple[FontPreset, ...] = (
    FontPreset("oswald", "Impacto", "Oswald, sans-serif"),
    FontPreset("anton", "Negrito", "Anton, sans-serif"),
    FontPreset("alfa-slab", "Bloco", "Alfa Slab One, cursive"),
    FontPreset("bebas-neue", "Alto", "Bebas Neue, cursive"),
    FontPreset("lobster", "Cursiva", "Lobster, cursive"),
    FontPreset("pacifico", "Manual", "Pacifico, cursive"),
)

FRAME_STYLE_PRESETS: Tuple[Tuple[FrameStyle, str], ...] = (
    (FrameStyle.SOLID, "Sólida"),
    (FrameStyle.DASHED, "Tracejada"),
    (FrameStyle.ROUNDED, "Arredondada"),
    (FrameStyle.DOUBLE, "Dupla"),
)


@dataclass(frozen=True)
class ThemePreset:
    id: str
    name: str
    theme: Dict[str, object]


THEME_PRESETS: Tuple[ThemePreset, ...] = (
    ThemePreset("classic-red", "Clássico Vermelho", {
        "primary_color": "#dc2626", "secondary_color": "#fbbf24",
        "background_color": "#ffffff", "text_color": "#1f2937", "header_text_color": "#ffffff",
        "price_card_style": PriceCardStyle.DEFAULT,
        "price_card_background_color": "#ffffff", "price_card_text_color": "#dc2626",
        "font_family_display": "Oswald, sans-serif", "font_family_body": "Inter, sans-serif",
    }),
    ThemePreset("modern-blue", "Moderno Azul", {
        "primary_color": "#2563eb", "secondary_color": "#10b981",
        "background_color": "#f9fafb", "text_color": "#111827", "header_text_color": "#ffffff",
        "price_card_style": PriceCardStyle.MINIMAL,
        "price_card_background_color": "transparent", "price_card_text_color": "#2563eb",
        "font_family_display": "Roboto Condensed, sans-serif", "font_family_body": "Inter, sans-serif",
    }),
    ThemePreset("impact-yellow", "Impacto Amarelo", {
        "primary_color": "#000000", "secondary_color": "#facc15",
        "background_color": "#f3f4f6", "text_color": "#000000", "header_text_color": "#000000",
        "price_card_style": PriceCardStyle.PILL,
        "price_card_background_color": "#000000", "price_card_text_color": "#facc15",
        "font_family_display": "Anton, sans-serif", "font_family_body": "Roboto Condensed, sans-serif",
    }),
    ThemePreset("fresh-natural", "Fresco Natural", {
        "primary_color": "#166534", "secondary_color": "#f97316",
        "background_color": "#f0fdf4", "text_color": "#14532d", "header_text_color": "#ffffff",
        "price_card_style": PriceCardStyle.DEFAULT,
        "price_card_background_color": "#ffffff", "price_card_text_color": "#166534",
        "font_family_display": "Bebas Neue, cursive", "font_family_body": "Inter, sans-serif",
    }),
    ThemePreset("elegant-dark", "Elegante Escuro", {
        "primary_color": "#1f2937", "secondary_color": "#d97706",
        "background_color": "#111827", "text_color": "#f9fafb", "header_text_color": "#f9fafb",
        "price_card_style": PriceCardStyle.PILL,
        "price_card_background_color": "#374151", "price_card_text_color": "#f59e0b",
        "font_family_display": "Roboto Condensed, sans-serif", "font_family_body": "Inter, sans-serif",
    }),
)


@dataclass(frozen=True)
class HeaderTemplate:
    id: str
    name: str
    title: str
    subtitle: str
    theme: Dict[str, object] = field(default_factory=dict)


HEADER_TEMPLATE_PRESETS: Tuple[HeaderTemplate, ...] = (
    HeaderTemplate("black-friday", "Black Friday", "BLACK FRIDAY", "IMPERDÍVEL", {
        "primary_color": "#000000", "secondary_color": "#fcee21", "header_text_color": "#ffffff",
        "font_family_display": "Anton, sans-serif",
        "header_art_style_id": HeaderArtStyle.SLASH, "header_title_case": TitleCase.UPPERCASE,
    }),
    HeaderTemplate("hortifruti", "Feira Fresca", "HORTIFRUTI", "Tudo Fresquinho", {
        "primary_color": "#166534", "secondary_color": "#f97316", "header_text_color": "#ffffff",
        "font_family_display": "'Bebas Neue', cursive",
        "header_art_style_id": HeaderArtStyle.WAVE, "header_title_case": TitleCase.UPPERCASE,
    }),
    HeaderTemplate("butcher-shop", "Açougue do Chefe", "AÇOUGUE", "Carnes Nobres", {
        "primary_color": "#b91c1c", "secondary_color": "#f7f2e9", "header_text_color": "#ffffff",
        "font_family_display": "'Alfa Slab One', cursive",
        "header_art_style_id": HeaderArtStyle.BRUSH, "header_title_case": TitleCase.UPPERCASE,
        "header_image": "https://www.transparenttextures.com/patterns/wood-pattern.png",
        "header_image_mode": HeaderImageMode.BACKGROUND, "header_image_opacity": 0.2,
    }),
    HeaderTemplate("bakery", "Padaria Delícia", "Padaria & Confeitaria", "Sabor de Casa", {
        "primary_color": "#78350f", "secondary_color": "#fde68a", "header_text_color": "#ffffff",
        "font_family_display": "'Lobster', cursive",
        "header_art_style_id": HeaderArtStyle.ARC, "header_title_case": TitleCase.CAPITALIZE,
    }),
    HeaderTemplate("pink-week", "Pink Week", "Pink Week", "Promoção Especial", {
        "primary_color": "#db2777", "secondary_color": "#fbcfe8", "header_text_color": "#ffffff",
        "font_family_display": "'Pacifico', cursive",
        "header_art_style_id": HeaderArtStyle.CIRCLES, "header_title_case": TitleCase.CAPITALIZE,
    }),
    HeaderTemplate("tech-deals", "Ofertas Tech", "OFERTAS TECH", "Conecte-se ao Futuro", {
        "primary_color": "#1e3a8a", "secondary_color": "#0ea5e9", "header_text_color": "#ffffff",
        "font_family_display": "'Roboto Condensed', sans-serif",
        "header_art_style_id": HeaderArtStyle.STEPS, "header_title_case": TitleCase.UPPERCASE,
    }),
)


def _find(presets, preset_id: str):
    for preset in presets:
        if preset.id == preset_id:
            return preset
    raise KeyError(f"Unknown preset: {preset_id!r}")


def apply_theme_preset(theme: Theme, preset_id: str) -> Theme:
    """Return a copy of theme with a palette preset applied."""
    preset = _find(THEME_PRESETS, preset_id)
    return theme.model_copy(update=dict(preset.theme), deep=True)


def apply_header_template(theme: Theme, template_id: str, format_ids: Optional[List[str]] = None) -> Theme:
    """
    Return a copy of theme with a header template applied.

    Header texts are replaced for every format; existing offsets and scales
    are kept so per-format fine tuning survives a template switch.
    """
    template = _find(HEADER_TEMPLATE_PRESETS, template_id)
    updated = theme.model_copy(update=dict(template.theme), deep=True)
    elements = {}
    for format_id in format_ids or known_format_ids():
        current = updated.header_for(format_id)
        elements[format_id] = HeaderFooterLayout(
            header_title=current.header_title.model_copy(update={"text": template.title}),
            header_subtitle=current.header_subtitle.model_copy(update={"text": template.subtitle}),
            footer_text=current.footer_text,
        )
    # keep entries for formats outside the requested set
    merged = dict(updated.header_elements)
    merged.update(elements)
    updated.header_elements = merged
    return updated


def get_style_options() -> dict:
    """Get all visual presets for user selection."""
    return {
        "themes": [{"id": p.id, "name": p.name} for p in THEME_PRESETS],
        "header_templates": [{"id": t.id, "name": t.name} for t in HEADER_TEMPLATE_PRESETS],
        "fonts": [{"id": f.id, "name": f.name, "font_family": f.font_family} for f in FONT_PRESETS],
        "frames": [{"id": style.value, "name": name} for style, name in FRAME_STYLE_PRESETS],
        "header_arts": [
            {
                "id": preset.id.value,
                "name": preset.name,
                "logo_positions": [p.value for p in preset.logo_positions],
                "allows_hero_overlay": preset.allows_hero_overlay,
            }
            for preset in HEADER_ART_PRESETS.values()
        ],
    }
