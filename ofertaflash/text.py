"""
Text metrics shared by the auto-fit engine and the rasterizer.

Widths are measured once at REFERENCE_SIZE and scaled linearly, so the same
string measures the same way at preview and at print resolution.
"""

from collections import OrderedDict
from typing import List, Optional, Tuple

from .fonts import FontResolver
from .models import TitleCase

REFERENCE_SIZE = 200
WIDTH_CACHE_SIZE = 4096
LINE_HEIGHT = 1.2


def apply_case(text: str, case: TitleCase) -> str:
    """CSS text-transform for header titles."""
    if TitleCase(case) == TitleCase.UPPERCASE:
        return text.upper()
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


class TextMeasurer:
    """Measures and wraps text in layout pixels."""

    def __init__(self, resolver: Optional[FontResolver] = None, cache_size: int = WIDTH_CACHE_SIZE):
        self.resolver = resolver or FontResolver()
        self.cache_size = cache_size
        self._widths: "OrderedDict[Tuple[str, str, bool], float]" = OrderedDict()

    def width(self, text: str, family: str, size: float, bold: bool = True) -> float:
        key = (text, family, bold)
        ref = self._widths.get(key)
        if ref is None:
            font = self.resolver.get(family, REFERENCE_SIZE, bold)
            ref = float(font.getlength(text)) if text else 0.0
            self._widths[key] = ref
            if len(self._widths) > self.cache_size:
                self._widths.popitem(last=False)
        else:
            self._widths.move_to_end(key)
        return ref * size / REFERENCE_SIZE

    @staticmethod
    def line_height(size: float) -> float:
        return size * LINE_HEIGHT

    def wrap(
        self,
        text: str,
        family: str,
        size: float,
        max_width: float,
        bold: bool = True,
        max_lines: Optional[int] = None,
    ) -> List[str]:
        """
        Greedy word wrap.

        Words wider than max_width are broken between characters. With
        max_lines, the last kept line gets an ellipsis if text was dropped.
        """
        lines: List[str] = []
        for paragraph in (text or "").split("\n"):
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}" if current else word
                if self.width(candidate, family, size, bold) <= max_width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                current = ""
                for char in word:
                    if current and self.width(current + char, family, size, bold) > max_width:
                        lines.append(current)
                        current = char
                    else:
                        current += char
            lines.append(current)

        if max_lines is not None and len(lines) > max_lines:
            lines = lines[:max_lines]
            last = lines[-1]
            while last and self.width(last + "…", family, size, bold) > max_width:
                last = last[:-1]
            lines[-1] = last.rstrip() + "…"
        return lines

    def wrapped_height(
        self,
        text: str,
        family: str,
        size: float,
        max_width: float,
        bold: bool = True,
        max_lines: Optional[int] = None,
    ) -> float:
        lines = self.wrap(text, family, size, max_width, bold, max_lines)
        return len(lines) * self.line_height(size)
