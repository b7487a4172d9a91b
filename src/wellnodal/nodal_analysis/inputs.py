"""Input parameter sets for the nodal analysis calculations"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PVT_CORRELATIONS = {
    "pb": "standing",
    "rs": "standing",
    "bo": "standing",
    "mu": "beggs-robinson",
}

DEFAULT_CORRELATION_METHOD = "beggs-brill"


class InflowInputs(BaseModel):
    """Well test data for the inflow performance calculation.

    The field aliases are the names used by the inflow service.
    """

    model_config = ConfigDict(populate_by_name=True)

    oil_rate: float = Field(default=300.0, alias="BOPD")
    water_rate: float = Field(default=1000.0, alias="BWPD")
    gas_rate: float = Field(default=500.0, alias="MCFD")
    reservoir_pressure: float = Field(default=3000.0, alias="Pr")
    pump_intake_pressure: float = Field(default=1800.0, alias="PIP")
    steps: int = 20

    @property
    def gor(self) -> float:
        """Producing gas oil ratio in scf/bbl"""
        if self.oil_rate <= 0:
            return 0.0
        return self.gas_rate * 1000 / self.oil_rate

    def to_request(self, reference_pressure: Optional[float] = None) -> Dict[str, Any]:
        request = self.model_dump(by_alias=True)
        if reference_pressure is not None:
            request["Pb"] = reference_pressure
        return request


class FluidInputs(BaseModel):
    """Fluid description for the PVT calculation.

    Unknown keys are passed on to the fluid property service.
    """

    model_config = ConfigDict(extra="allow")

    api: float = 35.0
    gas_gravity: float = 0.7
    gor: Optional[float] = None
    temperature: float = 160.0
    pb: Optional[float] = None
    co2_frac: float = 0.0
    h2s_frac: float = 0.0
    n2_frac: float = 0.0
    ift: float = 0.0
    water_gravity: float = 1.05
    temperature_gradient: float = 0.015
    correlations: Optional[Dict[str, str]] = None
    stock_temp: Optional[float] = None
    stock_pressure: Optional[float] = None
    step_size: Optional[float] = None

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class LiftInputs(BaseModel):
    """Well and flow conditions for the lift performance calculation"""

    model_config = ConfigDict(extra="allow")

    oil_rate: float = 300.0
    water_rate: float = 1200.0
    gas_rate: float = 500.0
    reservoir_pressure: float = 3000.0
    bubble_point: float = 2500.0
    pump_intake_pressure: float = 1800.0
    oil_gravity: float = 35.0
    gas_gravity: float = 0.7
    water_gravity: float = 1.05
    temperature: float = 160.0
    tubing_id: float = 2.992
    tubing_depth: float = 8000.0
    casing_id: float = 5.5
    inclination: float = 90.0
    wellhead_pressure: float = 100.0
    temperature_gradient: float = 0.015
    roughness: float = 0.0006


class SurveyPoint(BaseModel):
    md: float
    tvd: float
    inclination: float


class ServiceSettings(BaseModel):
    """Where and how to reach the calculation services"""

    base_url: str = "http://localhost:8000/api"
    timeout: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
