import pytest
from matplotlib import pyplot

from wellnodal.nodal_analysis.plotter import plot_nodal_analysis
from wellnodal.nodal_analysis.state import SensitivityCase, SensitivityResult
from wellnodal.operating_point.operating_point import Point


def curve(*pairs):
    return [Point(rate=rate, pressure=pressure) for rate, pressure in pairs]


INFLOW = curve((0, 3000), (500, 1500), (1000, 0))
LIFT = curve((0, 1000), (500, 1500), (1000, 2000))
STEEP = curve((0, 1200), (1000, 2800))

SENSITIVITY = SensitivityResult(
    parameter="wellhead_pressure",
    values=[200],
    base_case=SensitivityCase(
        value=None, curve=LIFT, operating_point=Point(rate=500, pressure=1500)
    ),
    cases=[
        SensitivityCase(
            value=200,
            curve=curve((0, 1100), (1000, 2100)),
            operating_point=Point(rate=475, pressure=1575),
        )
    ],
)


def test_plot_nodal_analysis():
    """All curves end up in the legend of the current figure"""
    plot_nodal_analysis(
        INFLOW,
        LIFT,
        Point(rate=500, pressure=1500),
        {"gray": STEEP},
        {"gray": Point(rate=428.6, pressure=1714.3)},
        SENSITIVITY,
    )
    labels = [text.get_text() for text in pyplot.gca().get_legend().get_texts()]
    assert "Inflow (IPR)" in labels
    assert "Lift (VLP)" in labels
    assert "Operating point" in labels
    assert "gray" in labels
    assert "wellhead_pressure=200" in labels
    pyplot.close()


def test_plot_without_lift_curve():
    plot_nodal_analysis(INFLOW, [])
    labels = [text.get_text() for text in pyplot.gca().get_legend().get_texts()]
    assert labels == ["Inflow (IPR)"]
    pyplot.close()


@pytest.mark.plot
def test_plot_interactive():
    """Show a nodal analysis plot with comparison and sensitivity curves,
    interactive plot test"""
    plot_nodal_analysis(
        INFLOW,
        LIFT,
        Point(rate=500, pressure=1500),
        {"gray": STEEP},
        {"gray": Point(rate=428.6, pressure=1714.3)},
        SENSITIVITY,
    )
    print("Verify that the operating points sit on the inflow curve")
    pyplot.show()
