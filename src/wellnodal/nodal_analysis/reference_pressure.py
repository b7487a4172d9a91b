"""Choose the bubble point pressure used as reference pressure for the inflow
and lift performance calculations.

The candidates are tried in order, and the first lookup giving a number wins.
If all lookups fail, the pressure is estimated from the producing GOR.
"""

import math
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from wellnodal import getLogger

logger = getLogger(__name__)

DEFAULT_METHOD = "standing"
MAX_ESTIMATED_PRESSURE = 5000.0


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _bubble_points(curve_data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    metadata = (curve_data or {}).get("metadata") or {}
    return dict(metadata.get("bubble_points") or {})


def _recommended_method(curve_data: Optional[Mapping[str, Any]]) -> Optional[str]:
    metadata = (curve_data or {}).get("metadata") or {}
    return (metadata.get("recommended_correlations") or {}).get("pb")


def from_recommended(curve_data, result) -> Optional[float]:
    method = _recommended_method(curve_data)
    if method is None:
        return None
    return _number(_bubble_points(curve_data).get(method))


def from_default_method(curve_data, result) -> Optional[float]:
    return _number(_bubble_points(curve_data).get(DEFAULT_METHOD))


def from_any_method(curve_data, result) -> Optional[float]:
    for value in _bubble_points(curve_data).values():
        if _number(value) is not None:
            return _number(value)
    return None


def from_result_metadata(curve_data, result) -> Optional[float]:
    metadata = (result or {}).get("metadata") or {}
    return _number(metadata.get("bubble_point"))


def from_first_result(curve_data, result) -> Optional[float]:
    results = (result or {}).get("results")
    if not isinstance(results, list) or not results:
        return None
    if not isinstance(results[0], Mapping):
        return None
    return _number(results[0].get("pb"))


LOOKUPS: Tuple[Tuple[str, Callable[[Any, Any], Optional[float]]], ...] = (
    ("recommended", from_recommended),
    ("default_method", from_default_method),
    ("any_method", from_any_method),
    ("result_metadata", from_result_metadata),
    ("first_result", from_first_result),
)


def estimate_from_gor(gor: float) -> float:
    return min(0.5 * gor, MAX_ESTIMATED_PRESSURE)


def select_reference_pressure(
    curve_data: Optional[Mapping[str, Any]],
    result: Optional[Mapping[str, Any]],
    computed_gor: float,
) -> Tuple[float, str]:
    """Select the reference pressure from fluid property results.

    Args:
        curve_data: Response from the fluid property curve calculation, None
            if that calculation failed
        result: Response from the fluid property calculation
        computed_gor: Producing GOR, used for the last resort estimate

    Returns:
        The pressure and the name of the lookup that produced it. The name is
        "gor_estimate" when no calculated value was available.
    """
    for source, lookup in LOOKUPS:
        value = lookup(curve_data, result)
        if value is not None:
            logger.debug("Reference pressure %s from %s", value, source)
            return value, source

    estimate = estimate_from_gor(computed_gor)
    logger.warning(
        "No calculated bubble point available, using estimate %s from GOR %s",
        estimate,
        computed_gor,
    )
    return estimate, "gor_estimate"
