"""
CompositionSession - the live editing state shared by preview and export.

Exports mutate the session (active product set, active format) while they
run, so they hold `exclusive()` and restore a snapshot when done.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .migration import ensure_active_format, ensure_layouts
from .models import Product, Theme, default_theme, starter_products
from .presets import get_format

logger = logging.getLogger(__name__)


class ExportInProgress(RuntimeError):
    """Another export already holds the session."""


@dataclass(frozen=True)
class SessionSnapshot:
    """Deep copy of the session state at one point in time."""
    theme: Theme
    products: List[Product]
    version: int


class CompositionSession:
    """Owns the Theme and the Product list being edited."""

    def __init__(self, theme: Optional[Theme] = None, products: Optional[Sequence[Product]] = None):
        theme = theme or default_theme()
        self.theme = ensure_active_format(theme, theme.format_id)
        self.products: List[Product] = list(products) if products is not None else starter_products()
        self.version = 0
        self._busy = False

    @property
    def format_id(self) -> str:
        return self.theme.format_id

    @property
    def busy(self) -> bool:
        return self._busy

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            theme=self.theme.model_copy(deep=True),
            products=[product.model_copy(deep=True) for product in self.products],
            version=self.version,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        self.theme = snapshot.theme.model_copy(deep=True)
        self.products = [product.model_copy(deep=True) for product in snapshot.products]
        self.version += 1
        logger.debug(f"Session restored to snapshot v{snapshot.version}")

    def update(self, theme: Optional[Theme] = None, products: Optional[Sequence[Product]] = None) -> None:
        if theme is not None:
            self.theme = ensure_active_format(theme, theme.format_id)
        if products is not None:
            self.products = [ensure_layouts(product) for product in products]
        self.version += 1

    def set_format(self, format_id: str) -> None:
        """
        Switch the active format.

        Raises:
            FormatNotFound: if the format id is not registered
        """
        fmt = get_format(format_id)
        theme = self.theme.model_copy(update={"format_id": fmt.id}, deep=True)
        self.theme = ensure_active_format(theme, fmt.id)
        self.version += 1

    @asynccontextmanager
    async def exclusive(self):
        """
        Mark an export as running for the duration of the block.

        Raises:
            ExportInProgress: if an export is already running
        """
        if self._busy:
            raise ExportInProgress("An export is already in progress for this session")
        self._busy = True
        try:
            yield self
        finally:
            self._busy = False
