import pytest

from ofertaflash.header_art import HeaderArtGenerator
from ofertaflash.geometry import Box
from ofertaflash.models import (
    HeaderArtStyle, HeaderImageMode, HeaderLayout, Logo, PriceCardStyle, Theme, TitleCase, default_theme,
)
from ofertaflash.styles import (
    HEADER_ART_PRESETS, apply_header_template, apply_theme_preset, effective_header_layout, get_style_options,
)
from ofertaflash.tree import Group, Polygon

RED = (220, 38, 38, 255)
YELLOW = (251, 191, 36, 255)


def test_eight_header_art_variants():
    assert set(HEADER_ART_PRESETS) == set(HeaderArtStyle)
    assert len(get_style_options()["header_arts"]) == 8


@pytest.mark.parametrize("style", list(HeaderArtStyle))
def test_every_variant_builds_art_inside_the_header(style):
    box = Box(0, 0, 400, 120)
    nodes = HeaderArtGenerator().build(style, box, RED, YELLOW, rem=12.8)
    assert nodes
    assert any(node.name == "header-art" for node in _flatten(nodes))
    for node in _flatten(nodes):
        if isinstance(node, Polygon):
            for _, y in node.points:
                assert -1 <= y <= 121


def _flatten(nodes):
    for node in nodes:
        yield node
        if isinstance(node, Group):
            yield from _flatten(node.children)


def test_header_layout_collapses_without_logo():
    theme = Theme(header_layout_id=HeaderLayout.LOGO_LEFT)
    assert effective_header_layout(theme) == HeaderLayout.TEXT_ONLY


def test_header_layout_falls_back_to_allowed_position():
    theme = Theme(
        logo=Logo(src="logo.png"),
        header_layout_id=HeaderLayout.LOGO_LEFT,
        header_art_style_id=HeaderArtStyle.PEAK,
    )
    assert effective_header_layout(theme) == HeaderLayout.LOGO_TOP

    circles = theme.model_copy(update={"header_art_style_id": HeaderArtStyle.CIRCLES})
    assert effective_header_layout(circles) == HeaderLayout.TEXT_ONLY


def test_apply_theme_preset_returns_copy():
    theme = default_theme()
    styled = apply_theme_preset(theme, "impact-yellow")
    assert styled.primary_color == "#000000"
    assert styled.price_card_style == PriceCardStyle.PILL
    assert theme.primary_color == "#dc2626"

    with pytest.raises(KeyError):
        apply_theme_preset(theme, "neon")


def test_apply_header_template_keeps_offsets():
    theme = default_theme()
    theme.header_elements["feed"].header_title.offset_x = 15

    styled = apply_header_template(theme, "butcher-shop")

    assert styled.header_art_style_id == HeaderArtStyle.BRUSH
    assert styled.header_image_mode == HeaderImageMode.BACKGROUND
    assert styled.header_elements["feed"].header_title.text == "AÇOUGUE"
    assert styled.header_elements["feed"].header_title.offset_x == 15
    assert styled.header_elements["tv"].header_subtitle.text == "Carnes Nobres"

    bakery = apply_header_template(theme, "bakery")
    assert bakery.header_title_case == TitleCase.CAPITALIZE
