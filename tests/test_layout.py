from ofertaflash.geometry import Box, element_affine
from ofertaflash.layout import LayoutEngine


def test_grid_config_uses_fixed_columns():
    engine = LayoutEngine()
    assert engine.calculate_grid_config(5, 2) == (3, 2)
    assert engine.calculate_grid_config(6, 3) == (2, 3)
    assert engine.calculate_grid_config(0, 3) == (0, 3)
    assert engine.calculate_grid_config(4, 0) == (4, 1)


def test_layout_cells_fill_area():
    engine = LayoutEngine(gap=10)
    layout = engine.calculate_layout(4, Box(0, 0, 210, 110), cols=2)

    assert (layout.rows, layout.cols) == (2, 2)
    assert layout.cell_width == 100
    assert layout.cell_height == 50
    assert layout.cells[3].box == Box(110, 60, 100, 50)


def test_last_row_is_left_aligned():
    layout = LayoutEngine(gap=0).calculate_layout(3, Box(0, 0, 300, 200), cols=2)
    last = layout.cells[2]
    assert (last.row, last.col) == (1, 0)
    assert last.box.x == 0


def test_empty_layout():
    layout = LayoutEngine().calculate_layout(0, Box(0, 0, 100, 100), cols=2)
    assert layout.cells == []
    assert layout.rows == 0


def test_element_affine_scales_around_anchor():
    m = element_affine((50, 50), offset_x=10, offset_y=-5, scale=2)
    assert m.apply((50, 50)) == (60, 45)
    assert m.apply((60, 50)) == (80, 45)
