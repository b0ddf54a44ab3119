"""
Font resolution for CSS-style font family strings.

A family like "'Bebas Neue', cursive" is resolved to a TrueType file in the
configured font directory, then to common system fonts, then to Pillow's
built-in scalable default.
"""

import logging
import os
import re
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

FONT_CACHE_SIZE = 256

SYSTEM_FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",  # Linux
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",  # Arch
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "C:\\Windows\\Fonts\\arialbd.ttf",  # Windows
]

SYSTEM_REGULAR_FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:\\Windows\\Fonts\\arial.ttf",
]

FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")


def primary_family(css_family: str) -> str:
    """First family name of a CSS font-family list, without quotes."""
    first = (css_family or "").split(",")[0]
    return first.strip().strip("'\"")


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


class FontResolver:
    """
    Loads and caches fonts by (family, size, bold).

    Sizes are rounded to whole pixels; callers that need fractional metrics
    should measure at a large reference size and scale.
    """

    def __init__(self, font_dir: Optional[str] = None):
        self.font_dir = Path(font_dir) if font_dir else None
        self._path_cache: Dict[Tuple[str, bool], Optional[str]] = {}
        self._font_cache: "OrderedDict[Tuple[Optional[str], int], ImageFont.ImageFont]" = OrderedDict()

    def _find_in_font_dir(self, family: str, bold: bool) -> Optional[str]:
        if not self.font_dir or not self.font_dir.is_dir():
            return None
        wanted = _normalize(family)
        if not wanted:
            return None
        candidates = []
        for entry in sorted(self.font_dir.iterdir()):
            if entry.suffix.lower() not in FONT_EXTENSIONS:
                continue
            stem = _normalize(entry.stem)
            if stem.startswith(wanted):
                candidates.append((stem, str(entry)))
        if not candidates:
            return None
        if bold:
            for stem, path in candidates:
                if "bold" in stem or "black" in stem:
                    return path
        for stem, path in candidates:
            if "regular" in stem or stem == wanted:
                return path
        return candidates[0][1]

    def resolve_path(self, css_family: str, bold: bool = True) -> Optional[str]:
        """Path of the font file used for a family, or None for Pillow's default."""
        family = primary_family(css_family)
        key = (family, bold)
        if key in self._path_cache:
            return self._path_cache[key]

        path = self._find_in_font_dir(family, bold)
        if path is None:
            for fp in SYSTEM_FONT_PATHS if bold else SYSTEM_REGULAR_FONT_PATHS:
                if os.path.exists(fp):
                    path = fp
                    break
        if path is None:
            logger.debug(f"No font file for {family!r}, using Pillow default")
        self._path_cache[key] = path
        return path

    def get(self, css_family: str, size: float, bold: bool = True) -> ImageFont.ImageFont:
        """Get font for text rendering."""
        px = max(1, int(round(size)))
        path = self.resolve_path(css_family, bold)
        key = (path, px)
        font = self._font_cache.get(key)
        if font is not None:
            self._font_cache.move_to_end(key)
            return font

        if path:
            try:
                font = ImageFont.truetype(path, px)
            except OSError as e:
                logger.warning(f"Failed to load font {path}: {e}")
        if font is None:
            font = ImageFont.load_default(size=px)
        self._font_cache[key] = font
        if len(self._font_cache) > FONT_CACHE_SIZE:
            self._font_cache.popitem(last=False)
        return font
