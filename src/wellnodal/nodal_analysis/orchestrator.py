"""Sequence the fluid property, inflow and lift performance calculations of a
nodal analysis, and keep their results consistent.

All remote work goes through the service protocols in
wellnodal.nodal_analysis.services. Each calculation stage has a status that
moves from idle to running, and then to succeeded or failed. A failed stage
keeps the results of its last successful run.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from wellnodal import getLogger
from wellnodal.nodal_analysis.errors import (
    CurveValidationError,
    NodalAnalysisError,
    PreconditionError,
    UpstreamServiceError,
)
from wellnodal.nodal_analysis.inputs import (
    DEFAULT_PVT_CORRELATIONS,
    FluidInputs,
    LiftInputs,
)
from wellnodal.nodal_analysis.lift_curve import build_lift_curve
from wellnodal.nodal_analysis.reference_pressure import select_reference_pressure
from wellnodal.nodal_analysis.services import (
    FluidPropertyService,
    InflowService,
    LiftPerformanceService,
)
from wellnodal.nodal_analysis.state import (
    AnalysisState,
    ComparisonResult,
    FluidSnapshot,
    SensitivityCase,
    SensitivityResult,
    Stage,
)
from wellnodal.operating_point.operating_point import (
    Point,
    as_curve,
    find_operating_point,
    validate_curve,
)
from wellnodal.string_design.segments import PipeSegment

logger = getLogger(__name__)

DEPTH_STEPS = 100

SENSITIVITY_PARAMETERS = [
    "water_cut",
    "gor",
    "reservoir_pressure",
    "oil_rate",
    "water_rate",
    "gas_rate",
    "oil_gravity",
    "gas_gravity",
    "water_gravity",
    "bubble_point",
    "temperature",
    "temperature_gradient",
    "wellhead_pressure",
    "tubing_id",
    "tubing_depth",
    "inclination",
    "roughness",
]

# Varying these has no effect on a flow path given by pipe segments
GEOMETRY_PARAMETERS = ["tubing_id", "tubing_depth"]

SegmentLike = Union[PipeSegment, Dict[str, float]]


def fallback_correlation(inputs: LiftInputs) -> str:
    """Pick a lift correlation from well geometry and gas rate"""
    if inputs.inclination < 30:
        return "beggs-brill"
    if inputs.gas_rate > 1000:
        return "gray"
    return "hagedorn-brown"


def _segment_dicts(segments: Optional[Iterable[SegmentLike]]) -> List[Dict]:
    return [
        seg.model_dump() if isinstance(seg, PipeSegment) else dict(seg)
        for seg in segments or []
    ]


def _to_curve(points: Any, name: str) -> List[Point]:
    try:
        curve = as_curve(points or [])
    except (KeyError, TypeError, ValueError) as err:
        raise CurveValidationError(name, "point", f"unreadable point ({err})") from err
    validate_curve(curve, name)
    return curve


class AnalysisOrchestrator:
    """Run the stages of a nodal analysis against remote calculation services.

    Args:
        fluid_service: Fluid property (PVT) calculations
        inflow_service: Inflow performance (IPR) calculations
        lift_service: Lift performance (VLP) calculations and correlation
            recommendation
        state: Initial state, a default state if not given
    """

    def __init__(
        self,
        fluid_service: FluidPropertyService,
        inflow_service: InflowService,
        lift_service: LiftPerformanceService,
        state: Optional[AnalysisState] = None,
    ):
        self.fluid_service = fluid_service
        self.inflow_service = inflow_service
        self.lift_service = lift_service
        self.state = state or AnalysisState()

    def _require_fluid(self) -> FluidSnapshot:
        fluid = self.state.fluid
        if fluid is None:
            raise PreconditionError(
                "Fluid properties are not available, calculate them first"
            )
        if fluid.reference_pressure is None:
            raise PreconditionError(
                "Bubble point pressure is missing, calculate fluid properties first"
            )
        return fluid

    def _operating_point(self, lift_curve: Sequence[Point]) -> Optional[Point]:
        try:
            return find_operating_point(self.state.inflow_curve, lift_curve)
        except CurveValidationError as err:
            logger.warning("No operating point, invalid curve: %s", err)
            return None

    def _merged_lift_inputs(self, inputs: Optional[LiftInputs] = None) -> LiftInputs:
        """Lift inputs where values from the fluid snapshot take precedence"""
        fluid = self._require_fluid()
        inputs = inputs or self.state.lift_inputs
        return inputs.model_copy(
            update={
                "oil_rate": fluid.oil_rate,
                "water_rate": fluid.water_rate,
                "gas_rate": fluid.gas_rate,
                "oil_gravity": fluid.oil_gravity,
                "water_gravity": fluid.water_gravity,
                "gas_gravity": fluid.gas_gravity,
                "temperature": fluid.surface_temperature,
                "temperature_gradient": fluid.temperature_gradient,
                "bubble_point": fluid.reference_pressure,
                "reservoir_pressure": self.state.inflow_inputs.reservoir_pressure,
            }
        )

    @staticmethod
    def _fluid_payload(inputs: LiftInputs) -> Dict[str, float]:
        return {
            "oil_rate": inputs.oil_rate,
            "water_rate": inputs.water_rate,
            "gas_rate": inputs.gas_rate,
            "oil_gravity": inputs.oil_gravity,
            "water_gravity": inputs.water_gravity,
            "gas_gravity": inputs.gas_gravity,
            "bubble_point": inputs.bubble_point,
            "temperature_gradient": inputs.temperature_gradient,
            "surface_temperature": inputs.temperature,
        }

    @staticmethod
    def _geometry(
        inputs: LiftInputs, segments: Optional[Iterable[SegmentLike]] = None
    ) -> Dict[str, Any]:
        pipe_segments = _segment_dicts(segments)
        if not pipe_segments:
            pipe_segments = [
                {
                    "start_depth": 0.0,
                    "end_depth": inputs.tubing_depth,
                    "diameter": inputs.tubing_id,
                }
            ]
        return {
            "pipe_segments": pipe_segments,
            "deviation": max(inputs.inclination, 0),
            "roughness": inputs.roughness,
            "depth_steps": DEPTH_STEPS,
        }

    async def _lift_curve(
        self,
        inputs: LiftInputs,
        method: str,
        segments: Optional[Iterable[SegmentLike]] = None,
    ):
        result = await self.lift_service.compute_lift_performance(
            fluid_properties=self._fluid_payload(inputs),
            geometry=self._geometry(inputs, segments),
            method=method,
            surface_pressure=inputs.wellhead_pressure,
            mode="calculate",
            survey_data=[point.model_dump() for point in self.state.survey_data],
        )
        try:
            curve = build_lift_curve(result, inputs.oil_rate)
        except (AttributeError, TypeError, ValueError) as err:
            raise UpstreamServiceError(
                f"Malformed lift performance result for {method}",
                messages=[str(err)],
                endpoint="hydraulics/calculate",
            ) from err
        return curve, result

    async def calculate_inflow_curve(
        self, override_reference_pressure: Optional[float] = None
    ) -> List[Point]:
        """Calculate the inflow performance curve from the current inflow
        inputs.

        Args:
            override_reference_pressure: Bubble point pressure sent with the
                inflow inputs

        Raises:
            UpstreamServiceError: if the inflow service fails
            CurveValidationError: if the returned curve is malformed
        """
        state = self.state
        state.begin(Stage.INFLOW)
        try:
            response = await self.inflow_service.compute_inflow(
                state.inflow_inputs.to_request(override_reference_pressure)
            )
            points = response.get("inflow_curve")
            if points is None:
                points = response.get("ipr_curve")
            curve = _to_curve(points, "inflow")
        except Exception as err:
            state.fail(Stage.INFLOW, str(err))
            raise

        state.inflow_curve = curve
        state.completeness["inflow"] = True
        state.succeed(Stage.INFLOW)
        logger.info("Inflow curve with %d points", len(curve))
        return curve

    async def calculate_fluid_properties(
        self, inputs: Optional[Union[FluidInputs, Dict[str, Any]]] = None
    ) -> FluidSnapshot:
        """Calculate fluid properties and select the reference pressure.

        The inflow curve is recalculated with the selected reference pressure
        before the new fluid snapshot is stored, and a failure there fails
        this stage as well.
        """
        state = self.state
        state.begin(Stage.FLUID_PROPERTIES)
        try:
            if inputs is None:
                fluid_inputs = state.fluid_inputs
            else:
                fluid_inputs = FluidInputs.model_validate(
                    inputs.model_dump() if isinstance(inputs, FluidInputs) else inputs
                )
            update = {}
            if fluid_inputs.gor is None:
                update["gor"] = state.computed_gor
            if fluid_inputs.correlations is None:
                update["correlations"] = dict(DEFAULT_PVT_CORRELATIONS)
            fluid_inputs = fluid_inputs.model_copy(update=update)
            request = fluid_inputs.to_request()

            result = await self.fluid_service.compute_properties(request)
            try:
                curve_data = await self.fluid_service.compute_curve(request)
            except NodalAnalysisError as err:
                logger.warning("Fluid property curves not available: %s", err)
                curve_data = None

            pressure, source = select_reference_pressure(
                curve_data, result, state.computed_gor
            )
            snapshot = FluidSnapshot(
                oil_rate=state.inflow_inputs.oil_rate,
                water_rate=state.inflow_inputs.water_rate,
                gas_rate=state.inflow_inputs.gas_rate,
                oil_gravity=fluid_inputs.api,
                gas_gravity=fluid_inputs.gas_gravity,
                water_gravity=fluid_inputs.water_gravity,
                surface_temperature=fluid_inputs.temperature,
                temperature_gradient=fluid_inputs.temperature_gradient,
                reference_pressure=pressure,
                gor=state.computed_gor,
                reference_pressure_source=source,
            )

            await self.calculate_inflow_curve(pressure)
        except Exception as err:
            state.fail(Stage.FLUID_PROPERTIES, str(err))
            raise

        state.fluid_inputs = fluid_inputs
        state.pvt_results = result
        state.pvt_curves = curve_data
        state.fluid = snapshot
        state.completeness["fluid"] = True
        state.succeed(Stage.FLUID_PROPERTIES)
        logger.info("Reference pressure %s (%s)", pressure, source)
        return snapshot

    async def calculate_lift_performance_curve(
        self,
        inputs: Optional[Union[LiftInputs, Dict[str, Any]]] = None,
        segments: Optional[Iterable[SegmentLike]] = None,
    ) -> List[Point]:
        """Calculate the lift performance curve and the operating point.

        Raises:
            PreconditionError: if there is no fluid snapshot with a reference
                pressure. No remote call is made.
            UpstreamServiceError: if the lift performance service fails
        """
        state = self.state
        state.begin(Stage.LIFT_PERFORMANCE)
        try:
            if inputs is not None:
                inputs = LiftInputs.model_validate(
                    inputs.model_dump() if isinstance(inputs, LiftInputs) else inputs
                )
            merged = self._merged_lift_inputs(inputs)
            curve, result = await self._lift_curve(
                merged, state.correlation_method, segments
            )
        except Exception as err:
            state.fail(Stage.LIFT_PERFORMANCE, str(err))
            raise

        state.lift_inputs = merged
        state.lift_curve = curve
        state.lift_result = result
        state.operating_point = self._operating_point(curve)
        complete = len(curve) >= 2
        state.completeness["hydraulics"] = complete
        state.completeness["results"] = complete
        if not complete:
            logger.warning("Lift performance result without pressure profile")
        state.succeed(Stage.LIFT_PERFORMANCE)
        if state.operating_point is None:
            logger.info("No operating point found")
        else:
            logger.info(
                "Operating point: rate=%.2f pressure=%.2f",
                state.operating_point.rate,
                state.operating_point.pressure,
            )
        return curve

    async def run_correlation_comparison(
        self,
        methods: Sequence[str],
        segments: Optional[Iterable[SegmentLike]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> ComparisonResult:
        """Calculate one lift curve per correlation method.

        Methods are run one at a time. A failing method is logged and left out
        of the result. Progress is reported in percent, starting at 0 and
        ending at 100.
        """
        self._require_fluid()
        state = self.state
        state.begin(Stage.SENSITIVITY)
        segments = list(segments or [])

        curves: Dict[str, List[Point]] = {}
        points: Dict[str, Point] = {}
        try:
            merged = self._merged_lift_inputs()
            if on_progress:
                on_progress(0)
            for idx, method in enumerate(methods):
                try:
                    curve, _ = await self._lift_curve(merged, method, segments)
                except NodalAnalysisError as err:
                    logger.error("Correlation %s failed: %s", method, err)
                else:
                    if curve:
                        curves[method] = curve
                        point = self._operating_point(curve)
                        if point is not None:
                            points[method] = point
                if on_progress:
                    on_progress(round((idx + 1) / len(methods) * 100))
            if on_progress and not methods:
                on_progress(100)
        except Exception as err:
            state.fail(Stage.SENSITIVITY, str(err))
            raise

        state.comparison_curves = curves
        state.comparison_points = points
        state.succeed(Stage.SENSITIVITY)
        return ComparisonResult(curves=curves, operating_points=points)

    @staticmethod
    def _vary(inputs: LiftInputs, parameter: str, value: float) -> LiftInputs:
        if parameter == "water_cut":
            total = inputs.oil_rate + inputs.water_rate
            update = {"oil_rate": total * (1 - value), "water_rate": total * value}
        elif parameter == "gor":
            update = {"gas_rate": value * inputs.oil_rate / 1000}
        else:
            update = {parameter: value}
        return inputs.model_copy(update=update)

    async def run_sensitivity_analysis(
        self,
        parameter: str,
        values: Sequence[float],
        segments: Optional[Iterable[SegmentLike]] = None,
    ) -> SensitivityResult:
        """Calculate lift curves and operating points while varying one
        parameter.

        A base case with unchanged inputs is calculated first. Each case keeps
        its curve, operating point and the raw lift performance result.
        Failed cases are logged and left out.

        Raises:
            ValueError: for an unknown parameter
            PreconditionError: if there is no fluid snapshot
            UpstreamServiceError: if the base case fails
        """
        if parameter not in SENSITIVITY_PARAMETERS:
            raise ValueError(
                f"Unknown sensitivity parameter {parameter}, "
                f"choose from {SENSITIVITY_PARAMETERS}"
            )
        self._require_fluid()
        state = self.state
        state.begin(Stage.SENSITIVITY)
        method = state.correlation_method
        segments = list(segments or [])
        case_segments = None if parameter in GEOMETRY_PARAMETERS else segments

        try:
            base_inputs = self._merged_lift_inputs()
            base_curve, base_result = await self._lift_curve(
                base_inputs, method, segments
            )
            base_case = SensitivityCase(
                value=None,
                curve=base_curve,
                operating_point=self._operating_point(base_curve),
                result=base_result,
            )

            cases = []
            for value in values:
                modified = self._vary(base_inputs, parameter, value)
                try:
                    curve, raw = await self._lift_curve(
                        modified, method, case_segments
                    )
                except NodalAnalysisError as err:
                    logger.error("Case %s=%s failed: %s", parameter, value, err)
                    continue
                cases.append(
                    SensitivityCase(
                        value=value,
                        curve=curve,
                        operating_point=self._operating_point(curve),
                        result=raw,
                    )
                )
        except Exception as err:
            state.fail(Stage.SENSITIVITY, str(err))
            raise

        result = SensitivityResult(
            parameter=parameter, values=list(values), base_case=base_case, cases=cases
        )
        state.sensitivity = result
        state.succeed(Stage.SENSITIVITY)
        return result

    async def recommend_correlation(
        self, inputs: Optional[Union[LiftInputs, Dict[str, Any]]] = None
    ) -> str:
        """Ask the lift performance service for the best suited correlation,
        falling back to a rule of thumb if it can not answer"""
        if inputs is None:
            inputs = self.state.lift_inputs
        elif not isinstance(inputs, LiftInputs):
            inputs = LiftInputs.model_validate(inputs)
        request = {
            "fluid_properties": self._fluid_payload(inputs),
            "wellbore_geometry": {
                "depth": inputs.tubing_depth,
                "deviation": inputs.inclination,
                "tubing_id": inputs.tubing_id,
                "roughness": inputs.roughness,
            },
            "surface_pressure": inputs.wellhead_pressure,
        }
        try:
            response = await self.lift_service.recommend(request)
        except NodalAnalysisError as err:
            logger.warning("Correlation recommendation failed: %s", err)
            response = None

        if response:
            method = response.get("method") or next(iter(response.values()))
            if isinstance(method, str) and method:
                return method
        method = fallback_correlation(inputs)
        logger.info("Using correlation %s from rule of thumb", method)
        return method

    async def run_analysis(
        self,
        segments: Optional[Iterable[SegmentLike]] = None,
        fluid_inputs: Optional[Union[FluidInputs, Dict[str, Any]]] = None,
    ) -> Optional[Point]:
        """Calculate fluid properties, the inflow curve and the lift curve,
        and return the operating point"""
        await self.calculate_fluid_properties(fluid_inputs)
        await self.calculate_lift_performance_curve(segments=segments)
        return self.state.operating_point
