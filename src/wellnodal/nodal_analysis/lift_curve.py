"""Turn a lift performance calculation result into a rate/pressure curve"""

from typing import Any, List, Mapping, Optional

import numpy as np

from wellnodal.operating_point.operating_point import Point

RATE_FRACTIONS = np.round(np.arange(1, 21) * 0.2, 10)


def build_lift_curve(
    result: Optional[Mapping[str, Any]], base_rate: float
) -> List[Point]:
    """Sample the lift curve around the base oil rate.

    The bottomhole pressure is scaled with the square root of the rate
    fraction, for fractions 0.2, 0.4, ... 4.0 of the base rate. A result
    without pressure profile or bottomhole pressure gives an empty curve.
    """
    if not result or not result.get("pressure_profile"):
        return []
    if result.get("bottomhole_pressure") is None:
        return []
    bottomhole_pressure = float(result["bottomhole_pressure"])
    rates = RATE_FRACTIONS * base_rate
    pressures = bottomhole_pressure * np.sqrt(RATE_FRACTIONS)
    return [
        Point(rate=float(rate), pressure=float(pressure))
        for rate, pressure in zip(rates, pressures)
    ]
