import pytest

from wellnodal.nodal_analysis.errors import UpstreamServiceError


def pytest_addoption(parser):
    """Add options that will be available when running `pytest` on the command line
    in this directory"""
    parser.addoption(
        "--plot",
        action="store_true",
        default=False,
        help="run tests that display plots to the screen",
    )


def pytest_collection_modifyitems(config, items):
    """Add skip markers to marked test functions skip it unless
    options are supplied on the pytest command line"""
    for item in items:
        if "plot" in item.keywords and not config.getoption("--plot"):
            item.add_marker(pytest.mark.skip(reason="need --plot option to run"))


@pytest.fixture
def plot(request):
    """Provide a fixture that tests can use to evaluate whether
    --plot was present on the command line"""
    return request.config.getoption("--plot")


def linear_inflow(reservoir_pressure=3000.0, max_rate=1000.0, steps=10):
    """Straight line inflow curve from (0, Pr) to (max_rate, 0)"""
    return [
        {
            "rate": max_rate * idx / steps,
            "pressure": reservoir_pressure * (1 - idx / steps),
        }
        for idx in range(steps + 1)
    ]


class FakeCalculationService:
    """In-memory stand-in for the fluid, inflow and lift services.

    Every call is recorded in ``calls`` as (name, payload). Set an attribute
    to an exception instance to make the corresponding call fail.
    ``lift_response`` may return a replacement lift performance response for
    a payload, or None to keep the default one.
    """

    def __init__(self):
        self.calls = []
        self.pvt_result = {"results": [{"pb": 2100.0}]}
        self.pvt_curves = {
            "metadata": {
                "bubble_points": {"standing": 2400.0, "vasquez-beggs": 2300.0},
                "recommended_correlations": {"pb": "vasquez-beggs"},
            }
        }
        self.inflow = {"ipr_curve": linear_inflow()}
        self.bottomhole_pressures = {}
        self.failing_methods = set()
        self.fail_when = None
        self.lift_response = None
        self.recommendation = {"method": "hagedorn-brown"}
        self.closed = False

    def called(self, name):
        return [payload for call, payload in self.calls if call == name]

    @staticmethod
    def _answer(answer):
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def compute_properties(self, inputs):
        self.calls.append(("compute_properties", inputs))
        return self._answer(self.pvt_result)

    async def compute_curve(self, inputs):
        self.calls.append(("compute_curve", inputs))
        return self._answer(self.pvt_curves)

    async def compute_inflow(self, inputs):
        self.calls.append(("compute_inflow", inputs))
        return self._answer(self.inflow)

    async def compute_lift_performance(
        self,
        fluid_properties,
        geometry,
        method,
        surface_pressure,
        mode="calculate",
        survey_data=None,
    ):
        self.calls.append(
            (
                "compute_lift_performance",
                {
                    "fluid_properties": fluid_properties,
                    "wellbore_geometry": geometry,
                    "method": method,
                    "surface_pressure": surface_pressure,
                    "bhp_mode": mode,
                    "survey_data": survey_data,
                },
            )
        )
        payload = self.calls[-1][1]
        failing = self.fail_when is not None and self.fail_when(payload)
        if method in self.failing_methods or failing:
            raise UpstreamServiceError(
                f"{method} diverged", status=500, endpoint="hydraulics/calculate"
            )
        if self.lift_response is not None:
            response = self.lift_response(payload)
            if response is not None:
                return response
        return {
            "pressure_profile": [{"depth": 0, "pressure": surface_pressure}],
            "bottomhole_pressure": self.bottomhole_pressures.get(method, 1500.0),
        }

    async def recommend(self, inputs):
        self.calls.append(("recommend", inputs))
        return self._answer(self.recommendation)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_service():
    return FakeCalculationService()
