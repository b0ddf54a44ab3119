"""
Price formatting and price-block composition.

Prices are kept as decimal strings on the model and only formatted here,
at render time, as Brazilian currency with exactly two fractional digits.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Tuple, Union

from .geometry import Box, mix, parse_color, with_alpha
from .models import MAX_PRICE_DIGITS, PriceCardStyle, Product, Theme
from .tree import Group, Node, Rect, Row, Span, Text

CURRENCY = "R$"
CENTS = Decimal("0.01")

# Unit offsets are stored relative to these defaults.
DEFAULT_UNIT_BOTTOM_EM = -0.5
DEFAULT_UNIT_RIGHT_EM = -1.5


def _usable(number: Decimal) -> Optional[Decimal]:
    if not number.is_finite() or number.adjusted() >= MAX_PRICE_DIGITS:
        return None
    return number


def parse_price(value: Union[str, Decimal, None]) -> Optional[Decimal]:
    """Parse "4.99" or "4,99"; None for empty, invalid or out-of-range input."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return _usable(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return _usable(number)


def format_price(value: Union[str, Decimal]) -> str:
    """
    Format a price with two digits, comma decimal and dot thousands.

    Examples:
        >>> format_price("1234.5")
        '1.234,50'
    """
    number = parse_price(value)
    if number is None:
        raise ValueError(f"Not a price: {value!r}")
    quantized = number.quantize(CENTS, rounding=ROUND_HALF_UP)
    integer, cents = f"{quantized:,.2f}".split(".")
    return f"{integer.replace(',', '.')},{cents}"


def split_price(value: Union[str, Decimal]) -> Tuple[str, str]:
    """Split into the integer part and the ",cents" suffix."""
    integer, cents = format_price(value).rsplit(",", 1)
    return integer, f",{cents}"


def discount_percent(price: Union[str, Decimal, None], old_price: Union[str, Decimal, None]) -> Optional[int]:
    """
    Whole-percent discount, or None when there is no discount to show.

    A badge is shown only when the old price parses and is strictly greater
    than the current price.
    """
    new = parse_price(price)
    old = parse_price(old_price)
    if new is None or old is None or old <= 0 or old <= new:
        return None
    percent = (old - new) / old * 100
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def has_wholesale(product: Product) -> bool:
    return parse_price(product.wholesale_price) is not None and bool((product.wholesale_unit or "").strip())


@dataclass
class PriceInfo:
    """Display strings for a product's price block."""
    integer: str
    cents: str
    unit: str
    old_price: Optional[str] = None
    discount: Optional[int] = None
    wholesale: Optional[str] = None

    @property
    def badge(self) -> Optional[str]:
        return f"-{self.discount}%" if self.discount is not None else None


def price_info(product: Product) -> PriceInfo:
    integer, cents = split_price(product.price)
    discount = discount_percent(product.price, product.old_price)
    old = f"DE {CURRENCY} {format_price(product.old_price)}" if discount is not None else None
    wholesale = None
    if has_wholesale(product):
        wholesale = f"ATACADO: {CURRENCY} {format_price(product.wholesale_price)} / {product.wholesale_unit.strip()}"
    return PriceInfo(
        integer=integer,
        cents=cents,
        unit=product.unit or "un",
        old_price=old,
        discount=discount,
        wholesale=wholesale,
    )


class PriceBlockBuilder:
    """Builds the price card (old price, main price row, wholesale label)."""

    def __init__(self, theme: Theme, rem: float):
        self.theme = theme
        self.rem = rem

    def build(self, product: Product, box: Box, size: float, name: str = "price") -> Group:
        """
        Args:
            product: Product to price
            box: Area of the whole block
            size: Font size of the integer part before auto-fit
            name: Node name prefix

        Returns:
            Group with the card and its text rows
        """
        theme = self.theme
        info = price_info(product)
        card_color = parse_color(theme.price_card_background_color)
        text_color = parse_color(theme.price_card_text_color)
        display = theme.font_family_display

        weights = [1.0]
        if info.old_price:
            weights.insert(0, 0.35)
        if info.wholesale:
            weights.append(0.45)
        padding = self.rem * 0.5 if theme.price_card_style != PriceCardStyle.MINIMAL else 0.0
        rows = box.inset(padding, padding * 0.5).split_rows(weights)

        children: List[Node] = []
        card = self._card(box, card_color)
        if card is not None:
            children.append(card)

        if info.old_price:
            old_box = rows.pop(0)
            children.append(Text(
                info.old_price, old_box, display, with_alpha(parse_color(theme.text_color), 0.7),
                base_size=min(size * 0.35, old_box.h / 1.2), wrap=False, strike=True,
                name=f"{name}-old",
            ))

        main_box = rows.pop(0)
        main = min(size, main_box.h / 1.1)
        unit_dx = -(theme.unit_right_em - DEFAULT_UNIT_RIGHT_EM)
        unit_dy = -(theme.unit_bottom_em - DEFAULT_UNIT_BOTTOM_EM)
        children.append(Row(
            main_box,
            [
                Span(CURRENCY, display, main * 0.35, text_color),
                Span(info.integer, display, main, text_color),
                Span(info.cents, display, main * 0.5, text_color),
                Span(f"/{info.unit}", display, main * 0.3, text_color, dx_em=unit_dx, dy_em=unit_dy),
            ],
            gap=self.rem * 0.15,
            fit_role="price",
            name=f"{name}-main",
        ))

        if info.wholesale:
            wholesale_box = rows.pop(0)
            label_size = min(size * 0.3, wholesale_box.h / 1.4)
            children.append(Rect(
                wholesale_box.inset(0, wholesale_box.h * 0.1), fill=parse_color(theme.secondary_color),
                radius=wholesale_box.h / 2, name=f"{name}-wholesale-bg",
            ))
            children.append(Row(
                wholesale_box,
                [Span(info.wholesale, theme.font_family_body, label_size, parse_color(theme.primary_color))],
                fit_role="price",
                name=f"{name}-wholesale",
            ))

        return Group(children, name=name)

    def _card(self, box: Box, color) -> Optional[Rect]:
        style = PriceCardStyle(self.theme.price_card_style)
        if style == PriceCardStyle.MINIMAL:
            return None
        if style == PriceCardStyle.PILL:
            return Rect(box, fill=color, radius=min(box.h, box.w) / 2, name="price-card")
        accent = parse_color(self.theme.secondary_color)
        return Rect(
            box, fill=color, radius=self.rem * 0.75,
            gradient=(color, mix(color, accent, 0.35)), name="price-card",
        )
