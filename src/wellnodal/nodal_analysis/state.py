"""Mutable state of one nodal analysis session"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from wellnodal.nodal_analysis.inputs import (
    DEFAULT_CORRELATION_METHOD,
    FluidInputs,
    InflowInputs,
    LiftInputs,
    SurveyPoint,
)
from wellnodal.operating_point.operating_point import Point


class Stage(str, Enum):
    INFLOW = "inflow"
    FLUID_PROPERTIES = "fluid_properties"
    LIFT_PERFORMANCE = "lift_performance"
    SENSITIVITY = "sensitivity"


class StageStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class FluidSnapshot:
    """Fluid values the lift performance calculation is based on"""

    oil_rate: float
    water_rate: float
    gas_rate: float
    oil_gravity: float
    gas_gravity: float
    water_gravity: float
    surface_temperature: float
    temperature_gradient: float
    reference_pressure: Optional[float]
    gor: float
    reference_pressure_source: str = ""


@dataclass
class SensitivityCase:
    value: Optional[float]
    curve: List[Point]
    operating_point: Optional[Point]
    result: Optional[Dict[str, Any]] = None


@dataclass
class SensitivityResult:
    parameter: str
    values: List[float]
    base_case: Optional[SensitivityCase]
    cases: List[SensitivityCase]


@dataclass
class AnalysisState:
    inflow_inputs: InflowInputs = field(default_factory=InflowInputs)
    fluid_inputs: FluidInputs = field(default_factory=FluidInputs)
    lift_inputs: LiftInputs = field(default_factory=LiftInputs)
    correlation_method: str = DEFAULT_CORRELATION_METHOD
    survey_data: List[SurveyPoint] = field(default_factory=list)

    fluid: Optional[FluidSnapshot] = None
    pvt_results: Optional[Dict[str, Any]] = None
    pvt_curves: Optional[Dict[str, Any]] = None
    inflow_curve: List[Point] = field(default_factory=list)
    lift_curve: List[Point] = field(default_factory=list)
    lift_result: Optional[Dict[str, Any]] = None
    operating_point: Optional[Point] = None

    comparison_curves: Dict[str, List[Point]] = field(default_factory=dict)
    comparison_points: Dict[str, Point] = field(default_factory=dict)
    sensitivity: Optional[SensitivityResult] = None

    status: Dict[Stage, StageStatus] = field(
        default_factory=lambda: {stage: StageStatus.IDLE for stage in Stage}
    )
    errors: Dict[Stage, Optional[str]] = field(
        default_factory=lambda: {stage: None for stage in Stage}
    )
    completeness: Dict[str, bool] = field(
        default_factory=lambda: {
            "inflow": False,
            "fluid": False,
            "hydraulics": False,
            "results": False,
        }
    )

    @property
    def computed_gor(self) -> float:
        return self.inflow_inputs.gor

    def begin(self, stage: Stage) -> None:
        self.status[stage] = StageStatus.RUNNING
        self.errors[stage] = None

    def succeed(self, stage: Stage) -> None:
        self.status[stage] = StageStatus.SUCCEEDED

    def fail(self, stage: Stage, message: str) -> None:
        self.status[stage] = StageStatus.FAILED
        self.errors[stage] = message

    def is_running(self, stage: Stage) -> bool:
        return self.status[stage] == StageStatus.RUNNING


@dataclass
class ComparisonResult:
    curves: Dict[str, List[Point]]
    operating_points: Dict[str, Point]
