"""
Theme, product and layout models.

Persisted records use camelCase keys (the shape the editor stores); Python
code uses snake_case attributes. Per-format data lives in plain dicts keyed
by format id.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .presets import A4, FEED, POSTER, SIGNAGE, STORY, DEFAULT_FORMAT_ID, known_format_ids

# Integer digits a price may carry; larger values cannot be rounded to cents.
MAX_PRICE_DIGITS = 12


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        """Dump to the persisted (camelCase JSON) shape."""
        return self.model_dump(by_alias=True, mode="json")


class HeaderImageMode(str, Enum):
    NONE = "none"
    BACKGROUND = "background"
    HERO = "hero"


class PriceCardStyle(str, Enum):
    DEFAULT = "default"
    PILL = "pill"
    MINIMAL = "minimal"


class FrameStyle(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"
    ROUNDED = "rounded"
    DOUBLE = "double"


class HeaderArtStyle(str, Enum):
    BLOCK = "block"
    SLASH = "slash"
    WAVE = "wave"
    PEAK = "peak"
    ARC = "arc"
    STEPS = "steps"
    BRUSH = "brush"
    CIRCLES = "circles"


class HeaderLayout(str, Enum):
    TEXT_ONLY = "text-only"
    LOGO_LEFT = "logo-left"
    LOGO_RIGHT = "logo-right"
    LOGO_TOP = "logo-top"


class TitleCase(str, Enum):
    UPPERCASE = "uppercase"
    CAPITALIZE = "capitalize"


# ============== Layout records ==============

class ElementTransform(CamelModel):
    """Offset (layout px) and multiplicative scale relative to the anchored position."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = Field(default=1.0, gt=0)


class ProductLayout(CamelModel):
    """Per-format transforms for the four product elements."""
    image: ElementTransform = Field(default_factory=ElementTransform)
    name: ElementTransform = Field(default_factory=ElementTransform)
    price: ElementTransform = Field(default_factory=ElementTransform)
    description: ElementTransform = Field(default_factory=ElementTransform)


class HeaderElement(ElementTransform):
    """A transformable piece of free header/footer text."""
    text: str = ""


DEFAULT_HEADER_TITLE = "SUPER OFERTAS"
DEFAULT_HEADER_SUBTITLE = "SÓ HOJE"
DEFAULT_FOOTER_TEXT = "Ofertas válidas enquanto durarem os estoques"


class HeaderFooterLayout(CamelModel):
    header_title: HeaderElement = Field(default_factory=lambda: HeaderElement(text=DEFAULT_HEADER_TITLE))
    header_subtitle: HeaderElement = Field(default_factory=lambda: HeaderElement(text=DEFAULT_HEADER_SUBTITLE))
    footer_text: HeaderElement = Field(default_factory=lambda: HeaderElement(text=DEFAULT_FOOTER_TEXT))


class LogoLayout(CamelModel):
    scale: float = Field(default=1.0, gt=0)
    offset_x: float = 0.0
    offset_y: float = 0.0


class Logo(CamelModel):
    src: str


class CompanyInfo(CamelModel):
    """Contact details shown in the footer when their show flag is set."""
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    payment_methods: Optional[str] = None
    show_phone: bool = False
    show_whatsapp: bool = False
    show_instagram: bool = False
    show_facebook: bool = False
    show_website: bool = False
    show_address: bool = False
    show_payment_methods: bool = False

    def visible_items(self) -> List[str]:
        """Values to print, in footer order."""
        items = []
        for field in ("phone", "whatsapp", "instagram", "facebook", "website", "address", "payment_methods"):
            value = getattr(self, field)
            if getattr(self, f"show_{field}") and value:
                items.append(value)
        return items


DEFAULT_LAYOUT_COLS = {STORY: 2, FEED: 2, A4: 2, POSTER: 3, SIGNAGE: 3}


def default_cols(format_id: str) -> int:
    return DEFAULT_LAYOUT_COLS.get(format_id, 2)


# ============== Theme ==============

class Theme(CamelModel):
    """Global styling plus per-format layout maps keyed by format id."""
    primary_color: str = "#dc2626"
    secondary_color: str = "#fbbf24"
    background_color: str = "#ffffff"
    text_color: str = "#1a1a1a"
    header_text_color: str = "#ffffff"

    font_family_display: str = "Oswald, sans-serif"
    font_family_body: str = "Inter, sans-serif"
    header_title_case: TitleCase = TitleCase.UPPERCASE

    header_layout_id: HeaderLayout = HeaderLayout.TEXT_ONLY
    header_art_style_id: HeaderArtStyle = HeaderArtStyle.BLOCK
    header_image: Optional[str] = None
    header_image_mode: HeaderImageMode = HeaderImageMode.NONE
    header_image_opacity: float = Field(default=0.3, ge=0, le=1)
    background_image: Optional[str] = None

    price_card_style: PriceCardStyle = PriceCardStyle.DEFAULT
    price_card_background_color: str = "#ffffff"
    price_card_text_color: str = "#dc2626"

    has_frame: bool = False
    frame_style: FrameStyle = FrameStyle.SOLID
    frame_color: str = "#fbbf24"
    frame_thickness: float = Field(default=1.5, ge=0)  # vmin

    unit_bottom_em: float = -0.5
    unit_right_em: float = -1.5

    format_id: str = DEFAULT_FORMAT_ID
    layout_cols: Dict[str, int] = Field(default_factory=dict)
    header_elements: Dict[str, HeaderFooterLayout] = Field(default_factory=dict)
    logo: Optional[Logo] = None
    logo_layouts: Dict[str, LogoLayout] = Field(default_factory=dict)
    company_info: Optional[CompanyInfo] = None

    @field_validator("layout_cols")
    @classmethod
    def _positive_cols(cls, value: Dict[str, int]) -> Dict[str, int]:
        for format_id, cols in value.items():
            if cols < 1:
                raise ValueError(f"layoutCols[{format_id}] must be >= 1, got {cols}")
        return value

    def header_for(self, format_id: str) -> HeaderFooterLayout:
        return self.header_elements.get(format_id) or HeaderFooterLayout()

    def cols_for(self, format_id: str) -> int:
        return self.layout_cols.get(format_id) or default_cols(format_id)

    def logo_layout_for(self, format_id: str) -> LogoLayout:
        return self.logo_layouts.get(format_id) or LogoLayout()


# ============== Product ==============

def normalize_decimal(value: Optional[str]) -> Optional[str]:
    """Validate a decimal string ("4.99" or "4,99") and normalize the separator."""
    if value is None:
        return None
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a decimal price: {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"Not a decimal price: {value!r}")
    if number.adjusted() >= MAX_PRICE_DIGITS:
        raise ValueError(f"Price out of range: {value!r}")
    return text


class Product(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    price: str
    old_price: Optional[str] = None
    unit: str = "un"
    wholesale_price: Optional[str] = None
    wholesale_unit: Optional[str] = None
    image: Optional[str] = None
    layouts: Dict[str, ProductLayout] = Field(default_factory=dict)

    @field_validator("price", mode="before")
    @classmethod
    def _price_is_decimal(cls, value):
        normalized = normalize_decimal(value)
        if normalized is None:
            raise ValueError("price is required")
        return normalized

    @field_validator("old_price", "wholesale_price", mode="before")
    @classmethod
    def _optional_decimal(cls, value):
        return normalize_decimal(value)

    def layout_for(self, format_id: str) -> ProductLayout:
        return self.layouts.get(format_id) or ProductLayout()


# ============== Saved compositions ==============

class SavedComposition(CamelModel):
    """Export artifact record; owns a copy of the theme used to produce it."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    image_url: str
    storage_path: str
    format_name: str
    timestamp: int  # unix ms
    theme: Theme


# ============== Defaults ==============

def default_theme(format_ids: Optional[List[str]] = None) -> Theme:
    """A brand-new theme with entries for every known format."""
    ids = format_ids or known_format_ids()
    return Theme(
        layout_cols={fid: default_cols(fid) for fid in ids},
        header_elements={fid: HeaderFooterLayout() for fid in ids},
        logo_layouts={fid: LogoLayout() for fid in ids},
    )


def default_product(product_id: str = "novo", format_ids: Optional[List[str]] = None) -> Product:
    ids = format_ids or known_format_ids()
    return Product(
        id=product_id,
        name="Novo Produto",
        price="0.00",
        unit="un",
        layouts={fid: ProductLayout() for fid in ids},
    )


def starter_products(format_ids: Optional[List[str]] = None) -> List[Product]:
    ids = format_ids or known_format_ids()
    seed = [
        ("1", "Leite Integral 1L", "Leite fresco e puro, ideal para toda a família.", "4.99", "6.50"),
        ("2", "Arroz Branco 5kg", "Tipo 1, grãos selecionados.", "22.90", None),
        ("3", "Café Tradicional 500g", "Torra média, sabor intenso.", "14.50", "18.90"),
    ]
    return [
        Product(
            id=pid, name=name, description=description, price=price, old_price=old_price,
            unit="un", layouts={fid: ProductLayout() for fid in ids},
        )
        for pid, name, description, price, old_price in seed
    ]
