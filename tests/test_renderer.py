import pytest
from ofertaflash.geometry import element_affine
from ofertaflash.migration import ensure_layouts, load_product, load_theme
from ofertaflash.models import (
    CompanyInfo, FrameStyle, HeaderArtStyle, HeaderImageMode, Product, default_theme, starter_products,
)
from ofertaflash.presets import get_format
from ofertaflash.renderer import CompositionRenderer, select_body_mode
from ofertaflash.tree import BodyMode, Group, Picture, Placeholder, Row, Text

HEADER_IMAGE = "https://example.com/header.jpg"


@pytest.fixture
def renderer():
    return CompositionRenderer(preview_width=500)


@pytest.fixture
def products():
    return starter_products()


def test_select_body_mode():
    assert select_body_mode(0, get_format("a4")) == BodyMode.EMPTY
    assert select_body_mode(1, get_format("a4")) == BodyMode.HERO
    assert select_body_mode(1, get_format("tv")) == BodyMode.SLIDE
    assert select_body_mode(2, get_format("tv")) == BodyMode.GRID
    assert select_body_mode(12, get_format("story")) == BodyMode.GRID


def test_tree_layers_and_size(renderer, products):
    tree = renderer.render(default_theme(), products, "a4")
    assert [layer.name for layer in tree.layers] == ["background", "header", "body", "footer", "frame"]
    assert (tree.width, tree.height) == (500, 707)
    assert tree.format_id == "a4"


def test_render_is_deterministic(renderer, products):
    theme = default_theme()
    assert renderer.render(theme, products, "feed") == renderer.render(theme, products, "feed")


def test_format_defaults_to_theme_active_format(renderer, products):
    tree = renderer.render(default_theme().model_copy(update={"format_id": "tv"}), products)
    assert tree.format_id == "tv"


def test_empty_state(renderer):
    tree = renderer.render(default_theme(), [], "a4")
    assert tree.mode == BodyMode.EMPTY
    assert tree.find("empty-state") is not None
    assert tree.find("empty-state-title").text == "Seu cartaz está vazio"
    assert tree.find("header-title") is not None
    assert tree.find("footer-bg") is not None


def test_hero_mode(renderer, products):
    tree = renderer.render(default_theme(), products[:1], "a4")
    assert tree.mode == BodyMode.HERO
    assert tree.find("vignette") is not None
    for element in ("image", "name", "description", "price"):
        assert tree.find(f"hero-{element}") is not None
    assert isinstance(tree.find("hero-image-src"), Placeholder)


def test_slide_mode_on_signage(renderer, products):
    tree = renderer.render(default_theme(), products[:1], "tv")
    assert tree.mode == BodyMode.SLIDE
    assert tree.find("slide-name") is not None
    assert tree.find("vignette") is None


def test_grid_mode_has_one_card_per_product(renderer, products):
    tree = renderer.render(default_theme(), products, "feed")
    assert tree.mode == BodyMode.GRID
    for index in range(len(products)):
        assert tree.find(f"card-{index}") is not None
    assert tree.find(f"card-{len(products)}") is None


def test_grid_respects_per_format_columns(renderer, products):
    theme = default_theme()
    theme.layout_cols["feed"] = 3
    tree = renderer.render(theme, products, "feed")
    cards = [tree.find(f"card-{i}").children[0].box for i in range(3)]
    assert cards[0].y == cards[1].y == cards[2].y


def test_discount_badge(renderer):
    product = Product(id="1", name="Leite 1L", price="4.99", old_price="6.50")
    tree = renderer.render(default_theme(), [product], "a4")
    assert tree.find("discount-badge").text == "-23%"

    no_discount = Product(id="2", name="Leite 1L", price="4.99", old_price="4.50")
    tree = renderer.render(default_theme(), [no_discount], "a4")
    assert tree.find("discount-badge") is None


def test_product_transform_is_applied(renderer):
    product = ensure_layouts(Product(id="1", name="Leite", price="4.99"))
    theme = default_theme()
    plain = renderer.render(theme, [product], "a4").find("hero-name")

    moved = product.model_copy(deep=True)
    moved.layouts["a4"].name.offset_x = 12
    moved.layouts["a4"].name.scale = 1.5
    group = renderer.render(theme, [moved], "a4").find("hero-name")

    box = group.children[0].box
    assert group.transform == element_affine(box.center, 12, 0, 1.5)
    assert plain.transform.sx == 1.0


def test_transform_only_affects_its_format(renderer):
    product = ensure_layouts(Product(id="1", name="Leite", price="4.99"))
    product.layouts["story"].price.scale = 2.0
    tree = renderer.render(default_theme(), [product], "a4")
    assert tree.find("hero-price").transform.sx == 1.0


def test_header_texts_come_from_active_format(renderer, products):
    theme = default_theme()
    theme.header_elements["feed"].header_title.text = "Promo Relâmpago"
    theme.header_elements["feed"].header_subtitle.text = ""

    tree = renderer.render(theme, products, "feed")
    title = tree.find("header-title-text")
    assert isinstance(title, Row)
    assert title.spans[0].text == "PROMO RELÂMPAGO"
    assert tree.find("header-subtitle") is None

    other = renderer.render(theme, products, "a4")
    assert other.find("header-title-text").spans[0].text == "SUPER OFERTAS"


def test_header_image_background_mode(renderer, products):
    theme = default_theme().model_copy(update={
        "header_image": HEADER_IMAGE, "header_image_mode": HeaderImageMode.BACKGROUND,
    })
    tree = renderer.render(theme, products, "a4")
    image = tree.find("header-image")
    assert isinstance(image, Picture) and image.opacity == theme.header_image_opacity
    assert tree.find("header-art-tint").opacity == 0.5
    assert tree.find("header-title") is not None
    assert HEADER_IMAGE in tree.asset_sources()


def test_header_image_hero_mode_hides_text(renderer, products):
    theme = default_theme().model_copy(update={
        "header_image": HEADER_IMAGE, "header_image_mode": HeaderImageMode.HERO,
        "header_art_style_id": HeaderArtStyle.SLASH,
    })
    tree = renderer.render(theme, products, "a4")
    assert tree.find("header-image") is not None
    assert tree.find("header-art") is None
    assert tree.find("header-title") is None


def test_hero_overlay_variant_keeps_text(renderer, products):
    theme = default_theme().model_copy(update={
        "header_image": HEADER_IMAGE,
        "header_image_mode": HeaderImageMode.HERO,
        "header_art_style_id": HeaderArtStyle.CIRCLES,
    })
    tree = renderer.render(theme, products, "a4")
    assert tree.find("header-title") is not None


def test_header_image_mode_ignored_without_image(renderer, products):
    theme = default_theme().model_copy(update={"header_image_mode": HeaderImageMode.HERO})
    tree = renderer.render(theme, products, "a4")
    assert tree.find("header-image") is None
    assert tree.find("header-title") is not None


def test_logo_is_rendered_with_its_layout(renderer, products):
    theme = load_theme({
        "logo": {"src": "https://example.com/logo.png"},
        "headerLayoutId": "logo-left",
        "logoLayouts": {"a4": {"scale": 2, "offsetX": 0, "offsetY": 0}},
    })
    tree = renderer.render(theme, products, "a4")
    logo = tree.find("logo")
    assert isinstance(logo, Group)
    assert logo.transform.sx == 2
    assert "https://example.com/logo.png" in tree.asset_sources()


def test_company_info_in_footer(renderer, products):
    theme = default_theme().model_copy(update={
        "company_info": CompanyInfo(phone="(11) 4002-8922", show_phone=True, website="loja.com"),
    })
    tree = renderer.render(theme, products, "a4")
    info = tree.find("company-info")
    assert info.spans[0].text == "(11) 4002-8922"
    assert tree.find("footer-text-row") is not None


@pytest.mark.parametrize("style, extra", [
    (FrameStyle.SOLID, None),
    (FrameStyle.DASHED, None),
    (FrameStyle.ROUNDED, None),
    (FrameStyle.DOUBLE, "frame-inner"),
])
def test_frame_styles(renderer, products, style, extra):
    theme = default_theme().model_copy(update={"has_frame": True, "frame_style": style})
    tree = renderer.render(theme, products, "feed")
    frame = tree.find("frame")
    assert frame is not None
    assert (frame.dash is not None) == (style == FrameStyle.DASHED)
    if extra:
        assert tree.find(extra) is not None


def test_no_frame_by_default(renderer, products):
    tree = renderer.render(default_theme(), products, "feed")
    assert tree.layer("frame").nodes == []


def test_body_fonts_scale_with_format(renderer):
    product = Product(id="1", name="Leite", price="4.99")
    story = renderer.render(default_theme(), [product], "story").find("hero-name-text")
    feed = renderer.render(default_theme(), [product], "feed").find("hero-name-text")
    assert isinstance(story, Text)
    assert story.base_size == pytest.approx(feed.base_size * 1.2)


def test_out_of_range_price_renders_as_fallback_product(renderer):
    product = load_product({"id": "1", "name": "X", "price": "1e30", "oldPrice": "9" * 29})
    tree = renderer.render(default_theme(), [product], "a4")
    assert tree.mode == BodyMode.HERO
