import pytest
from ofertaflash.autofit import AutoFitConfig, AutoFitEngine, AutoFitNonConvergence, AutoFitReport
from ofertaflash.geometry import Box
from ofertaflash.models import default_theme, starter_products
from ofertaflash.renderer import CompositionRenderer
from ofertaflash.text import TextMeasurer
from ofertaflash.tree import BodyMode, Layer, RenderTree, Row, Span, Text

BLACK = (0, 0, 0, 255)


class FixedWidthMeasurer(TextMeasurer):
    """Every glyph is half an em wide."""

    def width(self, text, family, size, bold=True):
        return len(text) * size * 0.5


def make_tree(*nodes):
    return RenderTree("feed", 100, 100, BodyMode.GRID, [Layer("body", list(nodes))])


def line(chars, box_w=100, box_h=12, base=10):
    return Text("x" * chars, Box(0, 0, box_w, box_h), "Inter", BLACK, base_size=base,
                wrap=False, fit_height=True, name="line")


@pytest.fixture
def engine():
    return AutoFitEngine(FixedWidthMeasurer())


def test_text_that_fits_is_untouched(engine):
    node = line(10)
    report = engine.run(make_tree(node))
    assert node.size == 10
    assert report.adjusted == []
    assert report.converged


def test_text_shrinks_in_five_percent_steps(engine):
    node = line(30)  # 15 * size must be <= 100
    report = engine.run(make_tree(node))
    assert node.size == pytest.approx(6.5)
    assert report.adjusted == [("line", pytest.approx(0.65))]
    assert report.converged


def test_text_stops_at_half_size(engine):
    node = line(100)
    report = engine.run(make_tree(node))
    assert node.size == pytest.approx(5.0)
    assert not report.converged
    assert report.failures[0].node_name == "line"


def test_fitting_restarts_from_base_size(engine):
    node = line(30)
    tree = make_tree(node)
    engine.run(tree)
    first = node.size
    engine.run(tree)
    assert node.size == first

    node.text = "x" * 5
    engine.run(tree)
    assert node.size == 10


def test_wrapped_text_fits_height(engine):
    node = Text("aa bb cc dd ee ff", Box(0, 0, 30, 24), "Inter", BLACK, base_size=10,
                fit_height=True, name="wrapped")
    engine.run(make_tree(node))
    lines = engine.measurer.wrap(node.text, node.family, node.size, node.box.w)
    assert len(lines) * node.size * 1.2 <= node.box.h
    assert node.size < 10


def test_unflagged_text_is_left_alone(engine):
    node = Text("x" * 100, Box(0, 0, 10, 10), "Inter", BLACK, base_size=10)
    engine.run(make_tree(node))
    assert node.size == 10


def test_row_scales_to_width_margin(engine):
    row = Row(Box(0, 0, 100, 20), [Span("x" * 40, "Inter", 10, BLACK)], fit_role="price", name="price-row")
    engine.run(make_tree(row))
    assert row.fit_scale == pytest.approx(100 / 200 * 0.95)


def test_row_margins_depend_on_role(engine):
    footer = Row(Box(0, 0, 100, 20), [Span("x" * 40, "Inter", 10, BLACK)], fit_role="footer")
    engine.run(make_tree(footer))
    assert footer.fit_scale == pytest.approx(0.49)


def test_row_within_margin_keeps_scale(engine):
    row = Row(Box(0, 0, 100, 20), [Span("x" * 10, "Inter", 10, BLACK)], fit_role="title")
    engine.run(make_tree(row))
    assert row.fit_scale == 1.0


def test_row_gap_counts_towards_width(engine):
    row = Row(Box(0, 0, 100, 20), [Span("xx", "Inter", 10, BLACK), Span("xx", "Inter", 10, BLACK)], gap=90)
    assert engine.row_width(row) == pytest.approx(110)


def test_row_scale_is_clamped(engine):
    row = Row(Box(0, 0, 100, 20), [Span("x" * 400, "Inter", 10, BLACK)], fit_role="price", name="huge")
    report = engine.run(make_tree(row))
    assert row.fit_scale == 0.3
    assert report.failures[0].node_name == "huge"


def test_strict_mode_raises(engine):
    strict = AutoFitEngine(FixedWidthMeasurer(), AutoFitConfig(strict=True))
    with pytest.raises(AutoFitNonConvergence):
        strict.run(make_tree(line(100)))


def test_config_validation():
    with pytest.raises(ValueError):
        AutoFitConfig(font_step=0)
    with pytest.raises(ValueError):
        AutoFitConfig(font_floor=1.5)
    assert AutoFitConfig().margin_for("unknown") == AutoFitConfig().footer_width_margin


def test_fit_text_bounded_iterations(engine):
    report = AutoFitReport()
    engine.fit_text(line(1000), report)
    assert report.iterations <= engine.config.max_steps + 1


def test_rendered_tree_fits(engine):
    renderer = CompositionRenderer(preview_width=400)
    tree = renderer.render(default_theme(), starter_products(), "story")
    engine.run(tree)
    for node in tree.walk():
        if isinstance(node, Text):
            assert node.size >= node.base_size * 0.5 - 1e-9
        if isinstance(node, Row):
            assert 0.3 <= node.fit_scale <= 1.0
