"""
Format registry for poster composition.

Supports the fixed set of output canvases:
- Story / TikTok (vertical)
- Instagram Feed (square)
- A4 print poster (portrait)
- Landscape poster (A4 rotated)
- TV / digital signage (16:9)
"""

from dataclasses import dataclass
from typing import List, Tuple


STORY = "story"
FEED = "feed"
A4 = "a4"
POSTER = "poster"
SIGNAGE = "tv"

DEFAULT_FORMAT_ID = A4

# Formats captured by the "save all" flow besides the active one
SOCIAL_MEDIA_FORMAT_IDS = (STORY, FEED)


class FormatNotFound(KeyError):
    """Raised when a format id is not registered."""

    def __init__(self, format_id: str):
        super().__init__(format_id)
        self.format_id = format_id

    def __str__(self) -> str:
        return f"Unknown format: {self.format_id!r}"


@dataclass(frozen=True)
class Format:
    """An output canvas: pixel size plus display metadata."""
    id: str
    name: str
    width: int
    height: int
    aspect_ratio: str
    label: str
    icon: str = ""

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height

    @property
    def is_story(self) -> bool:
        return self.id == STORY

    def preview_size(self, preview_width: int) -> Tuple[int, int]:
        """
        Size of the on-screen (authoring) viewport for this format.

        Args:
            preview_width: Width of the preview in layout pixels

        Returns:
            Tuple of (width, height) keeping the format's aspect ratio
        """
        if preview_width <= 0:
            raise ValueError(f"Preview width must be positive, got {preview_width}")
        return (preview_width, max(1, round(preview_width * self.height / self.width)))


POSTER_FORMATS: Tuple[Format, ...] = (
    Format(
        id=STORY, name="Story / TikTok",
        width=1080, height=1920,
        aspect_ratio="1080 / 1920", label="9:16", icon="📱",
    ),
    Format(
        id=FEED, name="Instagram / Quadrado",
        width=1080, height=1080,
        aspect_ratio="1080 / 1080", label="1:1", icon="🟦",
    ),
    Format(
        id=A4, name="Folha A4 / Cartaz",
        width=2480, height=3508,
        aspect_ratio="2480 / 3508", label="A4", icon="📄",
    ),
    Format(
        id=POSTER, name="Cartaz Paisagem",
        width=3508, height=2480,
        aspect_ratio="3508 / 2480", label="A4 ↔", icon="🖼️",
    ),
    Format(
        id=SIGNAGE, name="TV / Paisagem",
        width=1920, height=1080,
        aspect_ratio="1920 / 1080", label="16:9", icon="📺",
    ),
)

FORMAT_REGISTRY = {fmt.id: fmt for fmt in POSTER_FORMATS}


def list_formats() -> List[Format]:
    """Return every registered format in display order."""
    return list(POSTER_FORMATS)


def get_format(format_id: str) -> Format:
    """
    Look up a format by id.

    Examples:
        >>> get_format("a4").size
        (2480, 3508)

    Raises:
        FormatNotFound: if the id is not registered
    """
    try:
        return FORMAT_REGISTRY[format_id]
    except (KeyError, TypeError):
        raise FormatNotFound(format_id) from None


def known_format_ids() -> List[str]:
    return [fmt.id for fmt in POSTER_FORMATS]


def get_format_options() -> list:
    """Get list of available formats for user selection."""
    return [
        {
            "id": fmt.id,
            "name": fmt.name,
            "dimensions": f"{fmt.width}x{fmt.height}",
            "aspect_ratio": fmt.aspect_ratio,
            "label": fmt.label,
            "icon": fmt.icon,
        }
        for fmt in POSTER_FORMATS
    ]
