"""
Auto-fit text engine.

Two adjustments are made in place on a RenderTree:

- Text nodes flagged with fit_height shrink from their base size in steps of
  FONT_STEP * base until the wrapped text fits the box, stopping at
  FONT_FLOOR * base.
- Rows with a fit_role get one uniform factor
  container_width / content_width * margin, bounded below by MIN_BLOCK_SCALE.

Every run restarts from base values, so running twice gives the same tree.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .text import TextMeasurer
from .tree import RenderTree, Row, Text

logger = logging.getLogger(__name__)

FONT_STEP = 0.05
FONT_FLOOR = 0.5
FOOTER_WIDTH_MARGIN = 0.98
PRICE_WIDTH_MARGIN = 0.95
TITLE_WIDTH_MARGIN = 0.98
MIN_BLOCK_SCALE = 0.3


class AutoFitNonConvergence(Exception):
    """A node still overflows at the floor size."""

    def __init__(self, node_name: str, required: float, available: float):
        super().__init__(f"{node_name or '<unnamed>'} overflows: needs {required:.1f}, has {available:.1f}")
        self.node_name = node_name
        self.required = required
        self.available = available


@dataclass
class AutoFitConfig:
    font_step: float = FONT_STEP
    font_floor: float = FONT_FLOOR
    footer_width_margin: float = FOOTER_WIDTH_MARGIN
    price_width_margin: float = PRICE_WIDTH_MARGIN
    title_width_margin: float = TITLE_WIDTH_MARGIN
    min_block_scale: float = MIN_BLOCK_SCALE
    strict: bool = False

    def __post_init__(self):
        if not 0 < self.font_step < 1:
            raise ValueError(f"font_step must be in (0, 1), got {self.font_step}")
        if not 0 < self.font_floor <= 1:
            raise ValueError(f"font_floor must be in (0, 1], got {self.font_floor}")
        if not 0 < self.min_block_scale <= 1:
            raise ValueError(f"min_block_scale must be in (0, 1], got {self.min_block_scale}")

    @property
    def max_steps(self) -> int:
        """Upper bound on shrink iterations for one text node."""
        return int(math.ceil((1 - self.font_floor) / self.font_step)) + 1

    def margin_for(self, role: str) -> float:
        margins = {
            "footer": self.footer_width_margin,
            "price": self.price_width_margin,
            "title": self.title_width_margin,
        }
        return margins.get(role, self.footer_width_margin)


@dataclass
class AutoFitReport:
    adjusted: List[Tuple[str, float]] = field(default_factory=list)
    failures: List[AutoFitNonConvergence] = field(default_factory=list)
    iterations: int = 0

    @property
    def converged(self) -> bool:
        return not self.failures


class AutoFitEngine:
    """Shrinks text to fit using real font metrics."""

    def __init__(self, measurer: Optional[TextMeasurer] = None, config: Optional[AutoFitConfig] = None):
        self.measurer = measurer or TextMeasurer()
        self.config = config or AutoFitConfig()

    def run(self, tree: RenderTree) -> AutoFitReport:
        """
        Fit every flagged node of the tree.

        Raises:
            AutoFitNonConvergence: only in strict mode, for the first overflow
        """
        report = AutoFitReport()
        for node in tree.walk():
            if isinstance(node, Text):
                node.size = node.base_size
                if node.fit_height:
                    self.fit_text(node, report)
            elif isinstance(node, Row):
                node.fit_scale = 1.0
                if node.fit_role:
                    self.fit_row(node, report)

        if report.failures:
            logger.info(f"Auto-fit left {len(report.failures)} node(s) overflowing on {tree.format_id}")
            if self.config.strict:
                raise report.failures[0]
        return report

    def _text_extent(self, node: Text, size: float) -> Tuple[float, float]:
        m = self.measurer
        if node.wrap:
            return 0.0, m.wrapped_height(node.text, node.family, size, node.box.w, node.bold)
        return m.width(node.text, node.family, size, node.bold), m.line_height(size)

    def _text_fits(self, node: Text, size: float) -> bool:
        width, height = self._text_extent(node, size)
        return height <= node.box.h and width <= node.box.w

    def fit_text(self, node: Text, report: AutoFitReport) -> None:
        cfg = self.config
        base = node.base_size
        floor = base * cfg.font_floor
        size = base
        steps = 0
        while True:
            report.iterations += 1
            if self._text_fits(node, size):
                break
            if size <= floor + 1e-9 or steps >= cfg.max_steps:
                _, height = self._text_extent(node, size)
                report.failures.append(AutoFitNonConvergence(node.name, height, node.box.h))
                break
            steps += 1
            size = max(floor, base * (1 - cfg.font_step * steps))
        node.size = size
        if size != base:
            report.adjusted.append((node.name, size / base))

    def row_width(self, row: Row, scale: float = 1.0) -> float:
        spans = row.spans
        total = sum(self.measurer.width(s.text, s.family, s.size * scale, s.bold) for s in spans)
        return total + row.gap * scale * max(0, len(spans) - 1)

    def fit_row(self, row: Row, report: AutoFitReport) -> None:
        report.iterations += 1
        content = self.row_width(row)
        margin = self.config.margin_for(row.fit_role)
        if content <= 0 or content <= row.box.w * margin:
            return
        factor = row.box.w / content * margin
        if factor < self.config.min_block_scale:
            report.failures.append(AutoFitNonConvergence(row.name, content, row.box.w))
            factor = self.config.min_block_scale
        row.fit_scale = factor
        report.adjusted.append((row.name, factor))
