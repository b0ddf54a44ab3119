import pytest
from ofertaflash.geometry import Box
from ofertaflash.models import PriceCardStyle, Product, Theme
from ofertaflash.pricing import (
    PriceBlockBuilder, discount_percent, format_price, has_wholesale, parse_price, price_info, split_price,
)
from ofertaflash.tree import Rect, Row, Text


@pytest.fixture
def leite():
    return Product(id="1", name="Leite 1L", price="4.99", old_price="6.50", unit="un")


def test_format_price_uses_brazilian_separators():
    assert format_price("4.99") == "4,99"
    assert format_price("1234.5") == "1.234,50"
    assert format_price("22") == "22,00"
    assert format_price("0.005") == "0,01"


def test_format_price_rejects_garbage():
    with pytest.raises(ValueError):
        format_price("abc")


def test_prices_too_large_for_cents_are_rejected():
    assert parse_price("1e30") is None
    assert parse_price("9" * 29) is None
    with pytest.raises(ValueError):
        format_price("1e30")
    assert format_price("999999999999.99") == "999.999.999.999,99"


def test_parse_price():
    assert str(parse_price("4,99")) == "4.99"
    assert parse_price("") is None
    assert parse_price(None) is None
    assert parse_price("NaN") is None


def test_split_price():
    assert split_price("4.99") == ("4", ",99")
    assert split_price("1234.5") == ("1.234", ",50")


def test_discount_percent(leite):
    assert discount_percent(leite.price, leite.old_price) == 23
    assert discount_percent("5.00", "10.00") == 50
    assert discount_percent("10", "10") is None
    assert discount_percent("10", "8") is None
    assert discount_percent("10", None) is None
    assert discount_percent("10", "xyz") is None


def test_price_info_with_discount(leite):
    info = price_info(leite)
    assert info.integer == "4"
    assert info.cents == ",99"
    assert info.old_price == "DE R$ 6,50"
    assert info.badge == "-23%"
    assert info.wholesale is None


def test_price_info_without_discount():
    info = price_info(Product(id="2", name="Arroz", price="22.90", old_price="20.00"))
    assert info.old_price is None
    assert info.badge is None


def test_wholesale_requires_price_and_unit():
    product = Product(id="3", name="Café", price="14.50", wholesale_price="12.90", wholesale_unit="cx 10")
    assert has_wholesale(product)
    assert price_info(product).wholesale == "ATACADO: R$ 12,90 / cx 10"

    assert not has_wholesale(Product(id="4", name="Café", price="14.50", wholesale_price="12.90"))
    assert not has_wholesale(Product(id="5", name="Café", price="14.50", wholesale_unit="cx"))


def test_price_block_nodes(leite):
    block = PriceBlockBuilder(Theme(), rem=16).build(leite, Box(0, 0, 200, 120), size=60, name="hero-price-block")

    names = [child.name for child in block.children]
    assert names == ["price-card", "hero-price-block-old", "hero-price-block-main"]

    old = block.children[1]
    assert isinstance(old, Text) and old.strike

    main = block.children[2]
    assert isinstance(main, Row)
    assert main.fit_role == "price"
    assert [span.text for span in main.spans] == ["R$", "4", ",99", "/un"]
    assert main.spans[3].dx_em == 0
    assert main.spans[3].dy_em == 0


def test_price_block_card_styles(leite):
    box = Box(0, 0, 200, 100)

    minimal = PriceBlockBuilder(Theme(price_card_style=PriceCardStyle.MINIMAL), 16).build(leite, box, 50)
    assert not any(isinstance(child, Rect) for child in minimal.children)

    pill = PriceBlockBuilder(Theme(price_card_style=PriceCardStyle.PILL), 16).build(leite, box, 50)
    assert pill.children[0].radius == 50
    assert pill.children[0].gradient is None

    default = PriceBlockBuilder(Theme(), 16).build(leite, box, 50)
    assert default.children[0].gradient is not None


def test_unit_offsets_are_relative_to_defaults(leite):
    theme = Theme(unit_right_em=-1.0, unit_bottom_em=-0.3)
    block = PriceBlockBuilder(theme, 16).build(leite, Box(0, 0, 200, 100), 50)
    unit = block.children[-1].spans[-1]
    assert unit.dx_em == pytest.approx(-0.5)
    assert unit.dy_em == pytest.approx(-0.2)


def test_wholesale_row_added():
    product = Product(id="3", name="Café", price="14.50", wholesale_price="12.90", wholesale_unit="cx")
    block = PriceBlockBuilder(Theme(), 16).build(product, Box(0, 0, 200, 120), 50, name="p")
    assert [c.name for c in block.children][-2:] == ["p-wholesale-bg", "p-wholesale"]
