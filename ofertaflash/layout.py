"""
LayoutEngine - Grid calculation for the product body.

Handles:
1. Fixed column count per format (rows = ceil(count / cols))
2. Equal cell sizing with a uniform gap
3. Left-aligned last row, like a CSS grid with repeat(cols, 1fr)
"""

import math
from dataclasses import dataclass
from typing import List

from .geometry import Box


@dataclass
class CellSpec:
    """Position of a single product card in the grid."""
    index: int
    box: Box
    row: int
    col: int


@dataclass
class GridLayout:
    """Complete grid layout: cells plus the grid they sit in."""
    area: Box
    cells: List[CellSpec]
    cell_width: float
    cell_height: float
    gap: float
    rows: int
    cols: int


class LayoutEngine:
    """
    Calculates grid layouts for product cards.

    Features:
    - Column count comes from the theme's per-format layoutCols
    - Rows share the available height equally
    - Cards stretch to fill their cell (no aspect constraint)
    """

    def __init__(self, gap: float = 16.0):
        """
        Initialize layout engine.

        Args:
            gap: Space between cards in layout pixels
        """
        self.gap = gap

    def calculate_grid_config(self, item_count: int, cols: int) -> tuple:
        """
        Calculate grid configuration.

        Args:
            item_count: Number of cards to place
            cols: Requested columns (clamped to at least 1)

        Returns:
            Tuple of (num_rows, num_cols)
        """
        cols = max(1, int(cols))
        if item_count <= 0:
            return 0, cols
        return int(math.ceil(item_count / cols)), cols

    def calculate_layout(self, item_count: int, area: Box, cols: int) -> GridLayout:
        """
        Calculate complete grid layout.

        Args:
            item_count: Number of cards
            area: Body content box
            cols: Columns for the active format

        Returns:
            GridLayout with all positioning information
        """
        num_rows, num_cols = self.calculate_grid_config(item_count, cols)
        if num_rows == 0:
            return GridLayout(area, [], 0.0, 0.0, self.gap, 0, num_cols)

        cell_width = max(0.0, (area.w - (num_cols - 1) * self.gap) / num_cols)
        cell_height = max(0.0, (area.h - (num_rows - 1) * self.gap) / num_rows)

        cells = []
        for index in range(item_count):
            row, col = divmod(index, num_cols)
            x = area.x + col * (cell_width + self.gap)
            y = area.y + row * (cell_height + self.gap)
            cells.append(CellSpec(index=index, box=Box(x, y, cell_width, cell_height), row=row, col=col))

        return GridLayout(
            area=area,
            cells=cells,
            cell_width=cell_width,
            cell_height=cell_height,
            gap=self.gap,
            rows=num_rows,
            cols=num_cols,
        )
