import numpy as np
import pytest

from phonebox.layout.grid import cell_size, crop_box, map_grid, slot_position
from phonebox.types import CropRect


def test_crop_box_and_cell_size_for_default_crop():
    box = crop_box(1000, 800, CropRect(top=9, left=19, right=83, bottom=92))
    assert box == (190, 72, 830, 736)
    assert cell_size(box, rows=5, columns=12) == (53, 132)


def test_slot_position_is_row_major():
    assert slot_position(37, columns=12) == (3, 0)
    assert slot_position(1, columns=12) == (0, 0)
    assert slot_position(60, columns=12) == (4, 11)
    with pytest.raises(ValueError):
        slot_position(0, columns=12)


def test_map_grid_places_cells_from_crop_origin():
    cells = map_grid(1000, 800, CropRect(), rows=5, columns=12)
    cell = cells[36]
    assert cell.slot == 37
    assert (cell.row, cell.column) == (3, 0)
    assert (cell.outer.left, cell.outer.top) == (190, 72 + 3 * 132)
    assert (cell.outer.width, cell.outer.height) == (53, 132)


@pytest.mark.parametrize(
    "width, height, crop, rows, columns",
    [
        (1000, 800, CropRect(), 5, 12),
        (640, 480, CropRect(top=0, left=0, right=100, bottom=100), 3, 7),
        (1333, 999, CropRect(top=12.5, left=3.3, right=97.1, bottom=88.8), 6, 10),
    ],
)
def test_outer_cells_tile_crop_box_without_overlap(width, height, crop, rows, columns):
    cells = map_grid(width, height, crop, rows, columns)
    left, top, right, bottom = crop_box(width, height, crop)

    assert [c.slot for c in cells] == list(range(1, rows * columns + 1))

    coverage = np.zeros((height, width), dtype=np.int32)
    for cell in cells:
        outer = cell.outer
        assert left <= outer.left and outer.right <= right
        assert top <= outer.top and outer.bottom <= bottom
        coverage[outer.top:outer.bottom, outer.left:outer.right] += 1
    assert coverage.max() == 1


def test_inner_rect_sits_inside_outer_with_positive_area():
    for cell in map_grid(1000, 800, CropRect(), rows=5, columns=12):
        inner, outer = cell.inner, cell.outer
        assert inner.area > 0
        assert outer.left <= inner.left and inner.right <= outer.right
        assert outer.top <= inner.top and inner.bottom <= outer.bottom
        # the bottom margin is deeper than the top margin
        assert (outer.bottom - inner.bottom) >= (inner.top - outer.top)


def test_inner_rect_clamped_for_tiny_cells():
    cells = map_grid(24, 10, CropRect(top=0, left=0, right=100, bottom=100), rows=5, columns=12)
    assert all(c.inner.width >= 1 and c.inner.height >= 1 for c in cells)


def test_degenerate_grid_yields_empty_cells():
    cells = map_grid(10, 10, CropRect(top=0, left=0, right=100, bottom=100), rows=5, columns=12)
    assert len(cells) == 60
    assert all(c.outer.area == 0 and c.inner.area == 0 for c in cells)


@pytest.mark.parametrize(
    "crop",
    [
        CropRect(top=50, left=10, right=90, bottom=50),
        CropRect(top=10, left=90, right=10, bottom=90),
        CropRect(top=-1, left=10, right=90, bottom=90),
        CropRect(top=10, left=10, right=101, bottom=90),
    ],
)
def test_invalid_crop_rejected(crop):
    with pytest.raises(ValueError):
        map_grid(1000, 800, crop, rows=5, columns=12)


def test_invalid_grid_shape_rejected():
    with pytest.raises(ValueError):
        map_grid(1000, 800, CropRect(), rows=0, columns=12)
