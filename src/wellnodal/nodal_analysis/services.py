"""Remote calculation services used by the nodal analysis.

The orchestrator only depends on the protocols defined here.
HttpCalculationClient implements all of them against the calculation
HTTP API.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol

import httpx

from wellnodal import getLogger
from wellnodal.nodal_analysis.errors import UpstreamServiceError
from wellnodal.nodal_analysis.inputs import ServiceSettings

logger = getLogger(__name__)

PVT_DEFAULTS = {"stock_temp": 60.0, "stock_pressure": 14.7, "step_size": 25.0}
FLUID_DEFAULTS = {"water_gravity": 1.0}
GEOMETRY_DEFAULTS = {"roughness": 0.0006, "depth_steps": 100}
INFLOW_DEFAULTS = {"steps": 25}

MAX_RETRY_DELAY = 10.0


class FluidPropertyService(Protocol):
    async def compute_properties(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def compute_curve(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...


class InflowService(Protocol):
    async def compute_inflow(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...


class LiftPerformanceService(Protocol):
    async def compute_lift_performance(
        self,
        fluid_properties: Dict[str, Any],
        geometry: Dict[str, Any],
        method: str,
        surface_pressure: float,
        mode: str = "calculate",
        survey_data: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        ...

    async def recommend(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...


def _with_defaults(values: Optional[Dict[str, Any]], defaults: Dict[str, Any]):
    merged = dict(values or {})
    for key, default in defaults.items():
        if merged.get(key) is None:
            merged[key] = default
    return merged


def error_messages(response: httpx.Response) -> List[str]:
    """Extract detail messages from an error response body.

    Understands ``{"detail": "..."}`` and ``{"detail": [{"msg": "..."}]}``,
    and falls back to the reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        return [response.reason_phrase or response.text]
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return [detail]
    if isinstance(detail, list):
        return [
            str(item.get("msg", item)) if isinstance(item, dict) else str(item)
            for item in detail
        ]
    return [response.reason_phrase or str(body)]


class HttpCalculationClient:
    """Client for the fluid property, inflow and lift performance endpoints.

    Requests are retried with exponential backoff. Client errors (4xx) are
    returned to the caller at once, except request timeout (408) and rate
    limiting (429).

    Use as an async context manager, or call ``aclose()`` when done.

    Args:
        settings: Base URL, timeout and retry settings
        transport: Optional httpx transport, mainly for testing
    """

    def __init__(
        self,
        settings: Optional[ServiceSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or ServiceSettings()
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self.settings.timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "HttpCalculationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _retry_delay(self, attempt: int) -> float:
        return min(self.settings.retry_delay * 2**attempt, MAX_RETRY_DELAY)

    async def _attempt(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        try:
            response = await self._client.post(endpoint, json=payload)
        except httpx.TimeoutException as err:
            raise UpstreamServiceError(
                "Request timed out", status=408, messages=[str(err)], endpoint=endpoint
            ) from err
        except httpx.TransportError as err:
            raise UpstreamServiceError(
                "Could not connect to calculation service",
                status=503,
                messages=[str(err)],
                endpoint=endpoint,
            ) from err

        if response.is_success:
            try:
                return response.json()
            except ValueError as err:
                raise UpstreamServiceError(
                    "Invalid JSON in response",
                    status=response.status_code,
                    endpoint=endpoint,
                ) from err
        raise UpstreamServiceError(
            f"Request to {endpoint} failed",
            status=response.status_code,
            messages=error_messages(response),
            endpoint=endpoint,
        )

    async def post(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        """POST a JSON payload and return the decoded response body.

        Raises:
            UpstreamServiceError: When the last attempt failed, or at once for
                a non-retryable status.
        """
        max_retries = self.settings.max_retries
        for attempt in range(max_retries):
            logger.debug("POST %s, attempt %d/%d", endpoint, attempt + 1, max_retries)
            try:
                return await self._attempt(endpoint, payload)
            except UpstreamServiceError as err:
                if not err.retryable or attempt + 1 >= max_retries:
                    logger.error("%s", err)
                    raise
                delay = self._retry_delay(attempt)
                logger.warning("%s, retrying in %.1f s", err, delay)
                await asyncio.sleep(delay)
        raise UpstreamServiceError("No attempts made", endpoint=endpoint)

    async def compute_properties(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.post("pvt/calculate", _with_defaults(inputs, PVT_DEFAULTS))

    async def compute_curve(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.post("pvt/curves", _with_defaults(inputs, PVT_DEFAULTS))

    async def compute_inflow(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.post(
            "ipr/calculate", _with_defaults(inputs, INFLOW_DEFAULTS)
        )

    async def compute_lift_performance(
        self,
        fluid_properties: Dict[str, Any],
        geometry: Dict[str, Any],
        method: str,
        surface_pressure: float,
        mode: str = "calculate",
        survey_data: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "fluid_properties": _with_defaults(fluid_properties, FLUID_DEFAULTS),
            "wellbore_geometry": _with_defaults(geometry, GEOMETRY_DEFAULTS),
            "method": method,
            "surface_pressure": surface_pressure,
            "bhp_mode": mode,
            "target_bhp": 0,
        }
        if survey_data:
            payload["survey_data"] = survey_data
        return await self.post("hydraulics/calculate", payload)

    async def recommend(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(inputs)
        payload["fluid_properties"] = _with_defaults(
            inputs.get("fluid_properties"), FLUID_DEFAULTS
        )
        payload["wellbore_geometry"] = _with_defaults(
            inputs.get("wellbore_geometry"), GEOMETRY_DEFAULTS
        )
        return await self.post("hydraulics/recommend", payload)
