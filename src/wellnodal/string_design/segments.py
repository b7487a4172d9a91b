"""Merge BHA and casing strings into the flow path seen by the lift
performance calculation.

The flow path is described by depth intervals, each with the inner diameter
of the narrowest component active over the interval.
"""

import math
from typing import Iterable, List, Optional

from pydantic import BaseModel

from wellnodal import getLogger
from wellnodal.string_design.string_design import ComponentRow

logger = getLogger(__name__)


class PipeSegment(BaseModel):
    start_depth: float
    end_depth: float
    diameter: float


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def is_valid_row(row: Optional[ComponentRow]) -> bool:
    """A row can carry flow if its depths are finite and ordered, and it has
    a positive inner diameter"""
    if row is None:
        return False
    if not (_finite(row.top) and _finite(row.bottom) and _finite(row.inner_diameter)):
        logger.warning(
            "Skipping row %s: top=%s, bottom=%s, inner_diameter=%s",
            row.id,
            row.top,
            row.bottom,
            row.inner_diameter,
        )
        return False
    if row.inner_diameter <= 0:
        logger.debug("Skipping row %s without inner diameter", row.id)
        return False
    if row.bottom < row.top:
        logger.warning(
            "Skipping row %s: bottom %s above top %s", row.id, row.bottom, row.top
        )
        return False
    return True


def _narrowest_bore(
    rows: List[ComponentRow], top: float, bottom: float
) -> Optional[float]:
    covering = [
        row.inner_diameter for row in rows if row.top < bottom and row.bottom > top
    ]
    if not covering:
        return None
    return min(covering)


def merge_string_segments(
    bha_rows: Optional[Iterable[ComponentRow]],
    casing_rows: Optional[Iterable[ComponentRow]],
    nodal_depth: Optional[float] = None,
) -> List[PipeSegment]:
    """Build flow path intervals from the BHA and casing strings.

    Every top and bottom depth becomes an interval boundary. Each interval
    gets the smallest inner diameter among the components covering it, and
    intervals without any component are left out. The flow path ends at the
    nodal depth: deeper intervals are dropped, and the interval spanning the
    nodal depth is clipped.

    Args:
        bha_rows: Rows of the bottom hole assembly
        casing_rows: Rows of the casing string
        nodal_depth: Depth of the solution node. Zero or None keeps the full
            flow path.

    Returns:
        Intervals ordered from deepest to shallowest
    """
    rows = [
        row
        for row in list(bha_rows or []) + list(casing_rows or [])
        if is_valid_row(row)
    ]
    if not rows:
        logger.warning("No valid rows to build flow path from")
        return []

    depths = sorted(
        {row.top for row in rows if row.top >= 0}
        | {row.bottom for row in rows if row.bottom >= 0},
        reverse=True,
    )
    if len(depths) < 2:
        logger.warning("Insufficient depth points to create intervals")
        return []

    clip = nodal_depth if _finite(nodal_depth) and nodal_depth > 0 else None

    segments = []
    for bottom, top in zip(depths[:-1], depths[1:]):
        if clip is not None:
            if top >= clip:
                continue
            bottom = min(bottom, clip)
        diameter = _narrowest_bore(rows, top, bottom)
        if diameter is None:
            continue
        segments.append(
            PipeSegment(start_depth=top, end_depth=bottom, diameter=diameter)
        )
    return segments
