"""Map a percentage crop of the box photo onto a fixed grid of slot rectangles."""

from __future__ import annotations

import logging
from typing import List, Tuple

from phonebox.types import BBox, CellSample, CropRect, PixelRect, round_half_up

LOGGER = logging.getLogger("phonebox.layout.grid")

# Sampling insets as fractions of the cell size; the bottom edge carries the slot label.
INSET_X_FRAC = 0.10
INSET_TOP_FRAC = 0.12
INSET_BOTTOM_FRAC = 0.15
MIN_SAMPLE_PX = 1


def crop_box(width: int, height: int, crop: CropRect) -> BBox:
    """Convert crop percentages into an absolute (L, T, R, B) pixel box."""
    crop.validate()
    left = round_half_up((crop.left / 100.0) * width)
    right = round_half_up((crop.right / 100.0) * width)
    top = round_half_up((crop.top / 100.0) * height)
    bottom = round_half_up((crop.bottom / 100.0) * height)
    return left, top, right, bottom


def cell_size(box: BBox, rows: int, columns: int) -> Tuple[int, int]:
    """Integer cell width/height; remainder pixels are left uncovered."""
    left, top, right, bottom = box
    return (right - left) // columns, (bottom - top) // rows


def inner_rect(outer: PixelRect) -> PixelRect:
    """Inset an outer cell rectangle to avoid dividers and slot labels."""
    if outer.area == 0:
        return PixelRect(outer.left, outer.top, 0, 0)
    x0 = round_half_up(outer.left + INSET_X_FRAC * outer.width)
    x1 = round_half_up(outer.left + (1.0 - INSET_X_FRAC) * outer.width)
    y0 = round_half_up(outer.top + INSET_TOP_FRAC * outer.height)
    y1 = round_half_up(outer.top + (1.0 - INSET_BOTTOM_FRAC) * outer.height)
    return PixelRect(
        left=x0,
        top=y0,
        width=max(MIN_SAMPLE_PX, x1 - x0),
        height=max(MIN_SAMPLE_PX, y1 - y0),
    )


def slot_index(row: int, column: int, columns: int) -> int:
    return row * columns + column + 1


def slot_position(slot: int, columns: int) -> Tuple[int, int]:
    """Inverse of :func:`slot_index`: 1-based slot -> (row, column)."""
    if slot < 1:
        raise ValueError(f"Slot must be >= 1, got {slot}")
    return divmod(slot - 1, columns)


def map_grid(
    width: int,
    height: int,
    crop: CropRect,
    rows: int,
    columns: int,
) -> List[CellSample]:
    """Return one :class:`CellSample` per grid cell in row-major slot order."""
    if rows < 1 or columns < 1:
        raise ValueError(f"Grid must have at least one row and column, got {rows}x{columns}")
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    box = crop_box(width, height, crop)
    cell_w, cell_h = cell_size(box, rows, columns)
    if cell_w == 0 or cell_h == 0:
        LOGGER.warning(
            "Crop %s on %dx%d image is smaller than the %dx%d grid; cells are empty",
            box,
            width,
            height,
            rows,
            columns,
        )
    left, top, _, _ = box

    cells: List[CellSample] = []
    for row in range(rows):
        for column in range(columns):
            outer = PixelRect(left + column * cell_w, top + row * cell_h, cell_w, cell_h)
            cells.append(
                CellSample(
                    slot=slot_index(row, column, columns),
                    row=row,
                    column=column,
                    outer=outer,
                    inner=inner_rect(outer),
                )
            )
    LOGGER.debug("Mapped %d cells (cell=%dx%d) inside crop box %s", len(cells), cell_w, cell_h, box)
    return cells
