"""
Migration guard for persisted theme and product records.

Older records were saved before layouts became per-format: products carried
a single `layout`, themes carried top-level `headerTitle`/`headerSubtitle`/
`footerText`, an integer `layoutCols`, a `logo` with an embedded scale and
an embedded `format` object. `ensure_layouts` upgrades any of those shapes
to the per-format maps and fills in defaults for every registered format.

The guard works on plain JSON-like dicts (camelCase keys) so it can run
before pydantic validation. It is idempotent.
"""

import copy
import logging
import math
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .models import (
    DEFAULT_FOOTER_TEXT, DEFAULT_HEADER_SUBTITLE, DEFAULT_HEADER_TITLE,
    Product, Theme, default_cols, default_product, default_theme, starter_products,
)
from .presets import DEFAULT_FORMAT_ID, known_format_ids

logger = logging.getLogger(__name__)

LAYOUT_VERSION = 2

ELEMENT_KEYS = ("image", "name", "price", "description")
HEADER_KEYS = ("headerTitle", "headerSubtitle", "footerText")
HEADER_DEFAULT_TEXT = {
    "headerTitle": DEFAULT_HEADER_TITLE,
    "headerSubtitle": DEFAULT_HEADER_SUBTITLE,
    "footerText": DEFAULT_FOOTER_TEXT,
}

# Keys used to recognise flat (pre per-format) shapes. A format id equal to
# one of them would make a per-format map indistinguishable from a flat one.
RESERVED_KEYS = frozenset(
    ELEMENT_KEYS + HEADER_KEYS + ("x", "y", "offsetX", "offsetY", "scale", "text", "src", "layoutVersion")
)


class InvalidEntityShape(ValueError):
    """A persisted record cannot be interpreted as a theme or product."""


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return default
        return parsed if math.isfinite(parsed) else default
    return default


def _scale(value: Any) -> float:
    scale = _number(value, 1.0)
    return scale if scale > 0 else 1.0


def normalize_transform(raw: Any) -> dict:
    """Canonical {offsetX, offsetY, scale}; legacy x/y keys are accepted."""
    if not isinstance(raw, Mapping):
        raw = {}
    return {
        "offsetX": _number(raw.get("offsetX", raw.get("x")), 0.0),
        "offsetY": _number(raw.get("offsetY", raw.get("y")), 0.0),
        "scale": _scale(raw.get("scale")),
    }


def normalize_product_layout(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        raw = {}
    return {key: normalize_transform(raw.get(key)) for key in ELEMENT_KEYS}


def normalize_header_element(raw: Any, default_text: str) -> dict:
    element = normalize_transform(raw)
    text = raw.get("text") if isinstance(raw, Mapping) else None
    element["text"] = text if isinstance(text, str) else default_text
    return element


def normalize_header_footer(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        raw = {}
    return {key: normalize_header_element(raw.get(key), HEADER_DEFAULT_TEXT[key]) for key in HEADER_KEYS}


def normalize_logo_layout(raw: Any) -> dict:
    transform = normalize_transform(raw)
    return {"scale": transform["scale"], "offsetX": transform["offsetX"], "offsetY": transform["offsetY"]}


def _is_flat(mapping: Any, keys: Iterable[str]) -> bool:
    return isinstance(mapping, Mapping) and bool(mapping) and set(mapping) <= set(keys)


def _cols(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and math.isfinite(value) and int(value) >= 1:
        return int(value)
    return default


def _check_format_ids(format_ids: List[str]) -> None:
    if not format_ids:
        raise InvalidEntityShape("No known format ids to migrate against")
    collisions = RESERVED_KEYS.intersection(format_ids)
    if collisions:
        raise InvalidEntityShape(f"Format ids collide with reserved keys: {sorted(collisions)}")


def is_product_record(record: Mapping) -> bool:
    return "price" in record or "layouts" in record or "layout" in record


def ensure_product_layouts(raw: Mapping, format_ids: List[str]) -> dict:
    """Upgrade a product record so every format id has a ProductLayout entry."""
    record = copy.deepcopy(dict(raw))
    layouts = record.get("layouts")
    legacy = record.pop("layout", None)

    if _is_flat(layouts, ELEMENT_KEYS):
        legacy, layouts = layouts, {}
    if not isinstance(layouts, Mapping):
        layouts = {}

    seed = normalize_product_layout(legacy) if isinstance(legacy, Mapping) else None

    upgraded = {str(key): normalize_product_layout(entry) for key, entry in layouts.items()}
    for format_id in format_ids:
        if format_id not in upgraded:
            upgraded[format_id] = copy.deepcopy(seed) if seed else normalize_product_layout(None)

    record["layouts"] = upgraded
    record["layoutVersion"] = LAYOUT_VERSION
    return record


def ensure_theme_layouts(raw: Mapping, format_ids: List[str]) -> dict:
    """Upgrade a theme record so every per-format map covers every format id."""
    record = copy.deepcopy(dict(raw))

    # Active format
    embedded = record.pop("format", None)
    if not isinstance(record.get("formatId"), str) and isinstance(embedded, Mapping):
        record["formatId"] = embedded.get("id")
    if record.get("formatId") not in format_ids:
        fallback = DEFAULT_FORMAT_ID if DEFAULT_FORMAT_ID in format_ids else format_ids[0]
        if record.get("formatId") is not None:
            logger.warning(f"Unknown active format {record.get('formatId')!r}, using {fallback!r}")
        record["formatId"] = fallback

    # Header / footer texts
    flat = {key: record.pop(key) for key in HEADER_KEYS if key in record}
    elements = record.get("headerElements")
    if _is_flat(elements, HEADER_KEYS):
        flat.update(elements)
        elements = {}
    if not isinstance(elements, Mapping):
        elements = {}
    seed = normalize_header_footer(flat) if flat else None

    header_elements = {str(key): normalize_header_footer(entry) for key, entry in elements.items()}
    for format_id in format_ids:
        if format_id not in header_elements:
            header_elements[format_id] = copy.deepcopy(seed) if seed else normalize_header_footer(None)
    record["headerElements"] = header_elements

    # Grid columns
    cols = record.get("layoutCols")
    if isinstance(cols, Mapping):
        layout_cols = {str(key): _cols(value, default_cols(str(key))) for key, value in cols.items()}
    elif isinstance(cols, (int, float)) and not isinstance(cols, bool):
        layout_cols = {format_id: _cols(cols, default_cols(format_id)) for format_id in format_ids}
    else:
        layout_cols = {}
    for format_id in format_ids:
        layout_cols.setdefault(format_id, default_cols(format_id))
    record["layoutCols"] = layout_cols

    # Logo
    logo = record.get("logo")
    logo_seed = None
    if isinstance(logo, Mapping):
        if "scale" in logo:
            logo_seed = normalize_logo_layout({"scale": logo.get("scale")})
        src = logo.get("src")
        record["logo"] = {"src": src} if isinstance(src, str) and src else None
    elif isinstance(logo, str) and logo:
        record["logo"] = {"src": logo}
    else:
        record["logo"] = None

    logo_layouts = record.get("logoLayouts")
    if not isinstance(logo_layouts, Mapping):
        logo_layouts = {}
    normalized_logos = {str(key): normalize_logo_layout(entry) for key, entry in logo_layouts.items()}
    for format_id in format_ids:
        if format_id not in normalized_logos:
            normalized_logos[format_id] = copy.deepcopy(logo_seed) if logo_seed else normalize_logo_layout(None)
    record["logoLayouts"] = normalized_logos

    record["layoutVersion"] = LAYOUT_VERSION
    return record


Entity = Union[Mapping, Theme, Product]


def ensure_layouts(entity: Entity, format_ids: Optional[Iterable[str]] = None):
    """
    Guarantee per-format layout entries on a theme or product.

    Args:
        entity: Persisted record (dict) or a Theme/Product model
        format_ids: Registered format ids (defaults to the format registry)

    Returns:
        Upgraded copy of the same kind (dict in, dict out; model in, model out)

    Raises:
        InvalidEntityShape: entity is not a mapping, or a format id collides
            with a reserved key
    """
    ids = list(format_ids) if format_ids is not None else known_format_ids()
    _check_format_ids(ids)

    if isinstance(entity, Theme):
        return Theme.model_validate(ensure_theme_layouts(entity.to_record(), ids))
    if isinstance(entity, Product):
        return Product.model_validate(ensure_product_layouts(entity.to_record(), ids))
    if not isinstance(entity, Mapping):
        raise InvalidEntityShape(f"Expected an object, got {type(entity).__name__}")

    if is_product_record(entity):
        return ensure_product_layouts(entity, ids)
    return ensure_theme_layouts(entity, ids)


def load_theme(raw: Any, format_ids: Optional[Iterable[str]] = None) -> Theme:
    """Migrate and validate a theme; a malformed record yields a brand-new default theme."""
    ids = list(format_ids) if format_ids is not None else known_format_ids()
    try:
        _check_format_ids(ids)
        if not isinstance(raw, Mapping):
            raise InvalidEntityShape(f"Expected a theme object, got {type(raw).__name__}")
        return Theme.model_validate(ensure_theme_layouts(raw, ids))
    except (InvalidEntityShape, ValidationError) as e:
        logger.warning(f"Replacing unreadable theme with defaults: {e}")
        return default_theme(ids)


def load_product(raw: Any, format_ids: Optional[Iterable[str]] = None) -> Product:
    """Migrate and validate a product; a malformed record yields a brand-new default product."""
    ids = list(format_ids) if format_ids is not None else known_format_ids()
    try:
        _check_format_ids(ids)
        if not isinstance(raw, Mapping):
            raise InvalidEntityShape(f"Expected a product object, got {type(raw).__name__}")
        return Product.model_validate(ensure_product_layouts(raw, ids))
    except (InvalidEntityShape, ValidationError) as e:
        product_id = raw.get("id") if isinstance(raw, Mapping) else None
        if not isinstance(product_id, str) or not product_id:
            product_id = uuid.uuid4().hex[:8]
        logger.warning(f"Replacing unreadable product {product_id!r} with defaults: {e}")
        return default_product(product_id, ids)


def load_products(raw: Any, format_ids: Optional[Iterable[str]] = None) -> List[Product]:
    """Migrate a persisted product list; a non-list yields the starter catalog."""
    ids = list(format_ids) if format_ids is not None else known_format_ids()
    if not isinstance(raw, list):
        logger.warning(f"Expected a product list, got {type(raw).__name__}; using starter products")
        return starter_products(ids)
    return [load_product(item, ids) for item in raw]


def ensure_active_format(theme: Theme, format_id: str) -> Theme:
    """
    Make sure the theme has entries for format_id before rendering.

    Returns the same instance when nothing is missing, otherwise an updated copy.
    """
    if (
        format_id in theme.header_elements
        and format_id in theme.layout_cols
        and format_id in theme.logo_layouts
    ):
        return theme
    logger.debug(f"Synthesizing default layout entries for format {format_id!r}")
    return Theme.model_validate(ensure_theme_layouts(theme.to_record(), [format_id]))
