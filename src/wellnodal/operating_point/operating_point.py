#!/usr/bin/env python
"""
Locate the operating point of a well as the intersection between an inflow
performance curve (IPR) and a lift performance curve (VLP).

Both curves are treated as piecewise linear in the (rate, pressure) plane.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from wellnodal import __version__, getLogger

logger = getLogger(__name__)

DESCRIPTION = """Find the operating point of a well from an inflow performance
curve and a lift performance curve.

Both input files are CSV files with the columns RATE and PRESSURE, ordered
monotonically in RATE. The operating point is the intersection between the two
piecewise linear curves. If several intersections exist, the one with the
highest positive rate is reported.
"""

EXAMPLES = """
.. code-block:: console

  operating_point ipr.csv vlp.csv --intersections all_crossings.csv
"""

# Numerical tolerances
EPSILON = 1e-10
RATE_TOLERANCE = 1e-6
PRESSURE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Point:
    """A sample on a performance curve"""

    rate: float
    pressure: float


@dataclass(frozen=True)
class Intersection:
    point: Point
    segment_index1: int
    segment_index2: int
    t1: float
    t2: float


class CurveValidationError(ValueError):
    """Raised when a curve is malformed.

    The offending curve is named in ``curve_name`` and the violated rule in
    ``rule``, one of ``type``, ``length``, ``point``, ``finite`` or
    ``monotonic``.
    """

    def __init__(self, curve_name: str, rule: str, message: str):
        self.curve_name = curve_name
        self.rule = rule
        super().__init__(f"{curve_name}: {message}")


PointLike = Union[Point, Dict[str, Any], Tuple[float, float], Sequence[float]]


def as_point(data: PointLike) -> Point:
    """Convert a mapping or a (rate, pressure) pair to a Point"""
    if isinstance(data, Point):
        return data
    if isinstance(data, dict):
        return Point(rate=data["rate"], pressure=data["pressure"])
    rate, pressure = data
    return Point(rate=rate, pressure=pressure)


def as_curve(data: Union[pd.DataFrame, Iterable[PointLike]]) -> List[Point]:
    """Convert a dataframe, or an iterable of point-like objects, to a list of
    Points.

    Dataframes must have RATE and PRESSURE columns, in any case.

    No validation is done here, see validate_curve().
    """
    if isinstance(data, pd.DataFrame):
        columns = {col.upper(): col for col in data.columns}
        if "RATE" not in columns or "PRESSURE" not in columns:
            raise ValueError(
                f"Curve dataframe must have RATE and PRESSURE, got {list(data.columns)}"
            )
        return [
            Point(rate=float(rate), pressure=float(pressure))
            for rate, pressure in zip(
                data[columns["RATE"]], data[columns["PRESSURE"]]
            )
        ]
    return [as_point(point) for point in data]


def curve_to_dataframe(curve: Sequence[Point]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "RATE": [point.rate for point in curve],
            "PRESSURE": [point.pressure for point in curve],
        }
    )


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, bool)


def validate_curve(curve: Sequence[Point], name: str) -> None:
    """Check that a curve has at least two finite points and is monotonic
    in rate, within RATE_TOLERANCE.

    Args:
        curve: Curve to check
        name: Name of the curve, used in error messages

    Raises:
        CurveValidationError: on the first violated rule
    """
    if curve is None or isinstance(curve, (str, bytes)) or not hasattr(
        curve, "__len__"
    ):
        raise CurveValidationError(name, "type", "curve must be a sequence of points")

    if len(curve) < 2:
        raise CurveValidationError(
            name, "length", f"curve must have at least 2 points, got {len(curve)}"
        )

    for idx, point in enumerate(curve):
        if (
            point is None
            or not _is_number(getattr(point, "rate", None))
            or not _is_number(getattr(point, "pressure", None))
        ):
            raise CurveValidationError(name, "point", f"invalid point at index {idx}")

    rates = np.array([point.rate for point in curve], dtype=float)
    pressures = np.array([point.pressure for point in curve], dtype=float)
    not_finite = ~(np.isfinite(rates) & np.isfinite(pressures))
    if not_finite.any():
        raise CurveValidationError(
            name,
            "finite",
            f"non-finite values at index {int(np.argmax(not_finite))}",
        )

    steps = np.diff(rates)
    increasing = not (steps < -RATE_TOLERANCE).any()
    decreasing = not (steps > RATE_TOLERANCE).any()
    if not increasing and not decreasing:
        raise CurveValidationError(name, "monotonic", "curve must be ordered by rate")


def _segment_intersection(
    p1: Point, p2: Point, q1: Point, q2: Point
) -> Optional[Tuple[Point, float, float]]:
    """Intersect the segments p1-p2 and q1-q2 using determinants.

    Returns:
        The intersection point and the interpolation parameters along
        each segment, clamped to [0, 1]. None if the segments are parallel
        or do not cross.
    """
    dx1 = p2.rate - p1.rate
    dy1 = p2.pressure - p1.pressure
    dx2 = q2.rate - q1.rate
    dy2 = q2.pressure - q1.pressure

    det = dx1 * dy2 - dy1 * dx2
    if abs(det) < EPSILON:
        # Parallel or collinear, no unique intersection
        return None

    dx = q1.rate - p1.rate
    dy = q1.pressure - p1.pressure

    t1 = (dx * dy2 - dy * dx2) / det
    t2 = (dx * dy1 - dy * dx1) / det

    if t1 < -EPSILON or t1 > 1 + EPSILON or t2 < -EPSILON or t2 > 1 + EPSILON:
        return None

    rate = p1.rate + t1 * dx1
    pressure = p1.pressure + t1 * dy1

    # Cross-check using the parameter along the second segment
    alt_rate = q1.rate + t2 * dx2
    alt_pressure = q1.pressure + t2 * dy2
    if (
        abs(rate - alt_rate) > RATE_TOLERANCE
        or abs(pressure - alt_pressure) > PRESSURE_TOLERANCE
    ):
        rate = (rate + alt_rate) / 2
        pressure = (pressure + alt_pressure) / 2

    return (
        Point(rate=rate, pressure=pressure),
        max(0.0, min(1.0, t1)),
        max(0.0, min(1.0, t2)),
    )


def find_all_intersections(
    curve1: Sequence[Point], curve2: Sequence[Point]
) -> List[Intersection]:
    """Find all crossings between two piecewise linear curves.

    Every segment of curve1 is tested against every segment of curve2.

    Returns:
        Intersections in scan order
    """
    intersections = []
    for i in range(len(curve1) - 1):
        for j in range(len(curve2) - 1):
            crossing = _segment_intersection(
                curve1[i], curve1[i + 1], curve2[j], curve2[j + 1]
            )
            if crossing is not None:
                point, t1, t2 = crossing
                intersections.append(Intersection(point, i, j, t1, t2))
    return intersections


def select_operating_point(intersections: List[Intersection]) -> Optional[Point]:
    """Pick the operating point among candidate intersections.

    The highest rate candidate with a strictly positive rate is preferred,
    otherwise the highest rate candidate regardless of sign.
    """
    if not intersections:
        return None
    candidates = sorted(intersections, key=lambda x: x.point.rate, reverse=True)
    for candidate in candidates:
        if candidate.point.rate > 0:
            return candidate.point
    return candidates[0].point


def find_operating_point(
    inflow: Sequence[Point], lift: Sequence[Point]
) -> Optional[Point]:
    """Find the operating point between an inflow and a lift curve

    Args:
        inflow: Inflow performance curve
        lift: Lift performance curve

    Returns:
        The operating point, or None if the curves do not cross

    Raises:
        CurveValidationError: if any of the curves is malformed
    """
    validate_curve(inflow, "inflow")
    validate_curve(lift, "lift")

    intersections = find_all_intersections(lift, inflow)
    logger.debug("Found %d intersection(s)", len(intersections))
    return select_operating_point(intersections)


def interpolate_pressure(
    target_rate: float, curve: Sequence[Point]
) -> Optional[float]:
    """Linear interpolation of pressure at a given rate.

    The curve may be ordered ascending or descending in rate. The bracketing
    segment is found by binary search.

    Returns:
        Interpolated pressure, None if target_rate is outside the curve
    """
    if len(curve) == 0:
        return None

    ascending = curve[-1].rate > curve[0].rate
    low_rate = min(curve[0].rate, curve[-1].rate)
    high_rate = max(curve[0].rate, curve[-1].rate)
    if target_rate < low_rate or target_rate > high_rate:
        return None
    if len(curve) == 1:
        return curve[0].pressure

    left = 0
    right = len(curve) - 1
    while left < right - 1:
        mid = (left + right) // 2
        if ascending:
            if curve[mid].rate <= target_rate:
                left = mid
            else:
                right = mid
        elif curve[mid].rate >= target_rate:
            left = mid
        else:
            right = mid

    p1 = curve[left]
    p2 = curve[right]
    if abs(p2.rate - p1.rate) < RATE_TOLERANCE:
        return (p1.pressure + p2.pressure) / 2

    t = (target_rate - p1.rate) / (p2.rate - p1.rate)
    return p1.pressure + t * (p2.pressure - p1.pressure)


def _curve_range(curve: Sequence[Point]) -> Dict[str, float]:
    rates = [point.rate for point in curve]
    pressures = [point.pressure for point in curve]
    return {
        "min_rate": min(rates),
        "max_rate": max(rates),
        "min_pressure": min(pressures),
        "max_pressure": max(pressures),
    }


def analyze_intersection(
    inflow: Sequence[Point], lift: Sequence[Point]
) -> Dict[str, Any]:
    """Diagnostic information about the intersection of two curves

    Returns:
        Dictionary with the keys operating_point, intersections,
        inflow_range and lift_range
    """
    validate_curve(inflow, "inflow")
    validate_curve(lift, "lift")
    intersections = find_all_intersections(lift, inflow)
    return {
        "operating_point": select_operating_point(intersections),
        "intersections": intersections,
        "inflow_range": _curve_range(inflow),
        "lift_range": _curve_range(lift),
    }


def intersections_to_dataframe(intersections: List[Intersection]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "RATE": item.point.rate,
                "PRESSURE": item.point.pressure,
                "LIFT_SEGMENT": item.segment_index1,
                "INFLOW_SEGMENT": item.segment_index2,
                "T_LIFT": item.t1,
                "T_INFLOW": item.t2,
            }
            for item in intersections
        ],
        columns=[
            "RATE",
            "PRESSURE",
            "LIFT_SEGMENT",
            "INFLOW_SEGMENT",
            "T_LIFT",
            "T_INFLOW",
        ],
    )


def get_parser() -> argparse.ArgumentParser:
    """Set up parser for command line utility"""
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=DESCRIPTION,
        epilog=EXAMPLES,
    )
    parser.add_argument("inflow", help="CSV file with the inflow performance curve")
    parser.add_argument("lift", help="CSV file with the lift performance curve")
    parser.add_argument(
        "--intersections",
        type=str,
        default="",
        help="Write all curve intersections to this CSV file",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Set logging level to info."
    )
    parser.add_argument(
        "--debug", action="store_true", help="Set logging level to debug."
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s (wellnodal version " + __version__ + ")",
    )
    return parser


def main() -> None:
    """Entry point from command line"""
    parser = get_parser()
    args = parser.parse_args()

    if args.verbose:
        logger.setLevel(logging.INFO)
    if args.debug:
        logger.setLevel(logging.DEBUG)

    inflow = as_curve(pd.read_csv(args.inflow))
    lift = as_curve(pd.read_csv(args.lift))
    logger.info(
        "Loaded inflow curve with %d points and lift curve with %d points",
        len(inflow),
        len(lift),
    )

    try:
        analysis = analyze_intersection(inflow, lift)
    except CurveValidationError as err:
        logger.error(str(err))
        sys.exit(1)

    if args.intersections:
        logger.info("Writing intersections to %s", args.intersections)
        intersections_to_dataframe(analysis["intersections"]).to_csv(
            args.intersections, index=False
        )

    point = analysis["operating_point"]
    if point is None:
        print("No operating point, the curves do not cross")
    else:
        print(f"Operating point: rate={point.rate:g} pressure={point.pressure:g}")


if __name__ == "__main__":
    main()
