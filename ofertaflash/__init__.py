# OfertaFlash Module
# Multi-format promotional poster composition: render tree, auto-fit, export

from .presets import Format, FormatNotFound, get_format, get_format_options, list_formats
from .models import Theme, Product, SavedComposition, default_theme, starter_products
from .migration import ensure_layouts, load_theme, load_products, InvalidEntityShape
from .styles import get_style_options, apply_theme_preset, apply_header_template
from .layout import LayoutEngine
from .renderer import CompositionRenderer
from .autofit import AutoFitEngine, AutoFitConfig
from .rasterizer import Rasterizer
from .assets import AssetLoader
from .session import CompositionSession
from .exporter import ExportPipeline
from .storage import LocalCompositionStore
from .ai_content import GeminiContentGenerator

__all__ = [
    "Format",
    "FormatNotFound",
    "get_format",
    "get_format_options",
    "list_formats",
    "Theme",
    "Product",
    "SavedComposition",
    "default_theme",
    "starter_products",
    "ensure_layouts",
    "load_theme",
    "load_products",
    "InvalidEntityShape",
    "get_style_options",
    "apply_theme_preset",
    "apply_header_template",
    "LayoutEngine",
    "CompositionRenderer",
    "AutoFitEngine",
    "AutoFitConfig",
    "Rasterizer",
    "AssetLoader",
    "CompositionSession",
    "ExportPipeline",
    "LocalCompositionStore",
    "GeminiContentGenerator",
]
