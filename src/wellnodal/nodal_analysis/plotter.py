"""Plot inflow and lift performance curves with their operating points"""

from typing import Dict, List, Optional, Sequence

from matplotlib import pyplot

from wellnodal.nodal_analysis.state import SensitivityResult
from wellnodal.operating_point.operating_point import Point


def _plot_curve(curve: Sequence[Point], **kwargs) -> None:
    pyplot.plot(
        [point.rate for point in curve], [point.pressure for point in curve], **kwargs
    )


def _mark(point: Optional[Point], **kwargs) -> None:
    if point is not None:
        pyplot.plot([point.rate], [point.pressure], marker="o", linestyle="", **kwargs)


def plot_nodal_analysis(
    inflow_curve: Sequence[Point],
    lift_curve: Sequence[Point],
    operating_point: Optional[Point] = None,
    comparison_curves: Optional[Dict[str, List[Point]]] = None,
    comparison_points: Optional[Dict[str, Point]] = None,
    sensitivity: Optional[SensitivityResult] = None,
) -> None:
    """Plot curves on the current pyplot figure.

    Comparison and sensitivity curves are drawn dashed.
    """
    pyplot.figure(figsize=(10, 7))
    _plot_curve(inflow_curve, label="Inflow (IPR)", color="black", linewidth=2)
    if lift_curve:
        _plot_curve(lift_curve, label="Lift (VLP)", color="tab:blue", linewidth=2)
    _mark(operating_point, color="tab:red", markersize=9, label="Operating point")

    for method, curve in (comparison_curves or {}).items():
        _plot_curve(curve, label=method, linestyle="--")
        _mark((comparison_points or {}).get(method), color="grey")

    if sensitivity is not None:
        for case in sensitivity.cases:
            _plot_curve(
                case.curve, label=f"{sensitivity.parameter}={case.value}", linestyle=":"
            )
            _mark(case.operating_point, color="grey")

    pyplot.xlabel("Rate [bbl/d]")
    pyplot.ylabel("Pressure [psi]")
    pyplot.title("Nodal analysis")
    pyplot.grid(True)
    pyplot.legend(loc="best", fontsize=8)
