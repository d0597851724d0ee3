"""
Placeholder detections for automatic counts.

The remote detector reports only a number, never positions. To give the
review overlay one marker per reported unit, placeholders are laid out on a
square-ish grid. Their positions carry no spatial meaning: they are a display
convenience, not a localization of real objects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from models.detection import PLACEHOLDER_CLASS, BoundingBox, Detection


@dataclass(frozen=True)
class GridLayout:
    """
    Placeholder grid geometry in display coordinates.

    Attributes:
        origin: Offset of the first cell from the top-left corner.
        spacing: Distance between neighbouring cell origins.
        size: Width and height of each placeholder box.
    """
    origin: float = 50.0
    spacing: float = 100.0
    size: float = 60.0

    @classmethod
    def from_config(cls, cfg) -> "GridLayout":
        """Adapter: build from a models.config.PlaceholderConfig."""
        return cls(origin=cfg.origin, spacing=cfg.spacing, size=cfg.size)


def grid_shape(count: int) -> Tuple[int, int]:
    """
    Return (columns, rows) for `count` placeholders.

    columns = ceil(sqrt(count)), rows = ceil(count / columns).
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if count == 0:
        return (0, 0)
    columns = math.ceil(math.sqrt(count))
    rows = math.ceil(count / columns)
    return (columns, rows)


def synthesize_placeholders(count: int, layout: GridLayout = GridLayout()) -> List[Detection]:
    """
    Build `count` placeholder detections in row-major grid order.

    Placeholder i sits in cell (row, col) = divmod(i, columns). All get
    confidence 1.0, manual=False and class "object".
    """
    columns, _ = grid_shape(count)
    if count == 0:
        return []

    rows_idx, cols_idx = np.divmod(np.arange(count), columns)
    xs = layout.origin + cols_idx * layout.spacing
    ys = layout.origin + rows_idx * layout.spacing

    return [
        Detection(
            id=f"obj_{i}",
            bbox=BoundingBox(x=float(x), y=float(y), width=layout.size, height=layout.size),
            confidence=1.0,
            class_name=PLACEHOLDER_CLASS,
            manual=False,
        )
        for i, (x, y) in enumerate(zip(xs, ys))
    ]
