#!/usr/bin/env python
"""
Run a nodal analysis of a producing well against the remote calculation
services, and dump curves and operating points to CSV files.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import yaml
from matplotlib import pyplot
from pydantic import BaseModel, ConfigDict, Field

from wellnodal import __version__, getLogger
from wellnodal.nodal_analysis import plotter
from wellnodal.nodal_analysis.errors import NodalAnalysisError
from wellnodal.nodal_analysis.inputs import (
    DEFAULT_CORRELATION_METHOD,
    FluidInputs,
    InflowInputs,
    LiftInputs,
    ServiceSettings,
    SurveyPoint,
)
from wellnodal.nodal_analysis.orchestrator import AnalysisOrchestrator
from wellnodal.nodal_analysis.services import HttpCalculationClient
from wellnodal.nodal_analysis.state import AnalysisState, SensitivityResult
from wellnodal.operating_point.operating_point import Point, curve_to_dataframe
from wellnodal.string_design.segments import PipeSegment, merge_string_segments
from wellnodal.string_design.string_design import (
    StringDesignConfig,
    StringType,
    process_string_config,
)

logger = getLogger(__name__)

DESCRIPTION = """Nodal analysis of a producing well.

Calculates fluid properties, the inflow performance curve (IPR) and the lift
performance curve (VLP) through the calculation services, and locates the
operating point where the two curves cross. The flow path is built from the
BHA and casing strings in the config file. Optionally, lift curves are
compared across correlation methods, or a sensitivity on one parameter is
run.
"""

EPILOGUE = """YAML-file components::

 service - base_url, timeout, max_retries, retry_delay
 inflow - BOPD, BWPD, MCFD, Pr, PIP, steps
 fluid - api, gas_gravity, gor, temperature, co2_frac, h2s_frac, n2_frac,
         water_gravity, temperature_gradient, correlations, ...
 lift - tubing_id, tubing_depth, casing_id, inclination, wellhead_pressure,
        roughness, ...
 correlation_method - lift correlation, or 'auto' to ask the service.
                      Default 'beggs-brill'
 bha, casing - string definitions, see string_design
 nodal_depth - depth of the solution node, flow path below is ignored
 survey - list of md, tvd, inclination
 comparison - list of correlation methods to compare
 sensitivity - parameter and values
 output - directory for CSV files. Default 'nodal_output'
"""

EXAMPLES = """
.. code-block:: console

  nodal_analysis well.yml --output results --plotfile nodal.png
"""


class SensitivityConfig(BaseModel):
    parameter: str
    values: List[float]


class NodalAnalysisConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    inflow: InflowInputs = Field(default_factory=InflowInputs)
    fluid: FluidInputs = Field(default_factory=FluidInputs)
    lift: LiftInputs = Field(default_factory=LiftInputs)
    correlation_method: str = DEFAULT_CORRELATION_METHOD
    bha: Optional[StringDesignConfig] = None
    casing: Optional[StringDesignConfig] = None
    nodal_depth: Optional[float] = None
    survey: List[SurveyPoint] = []
    comparison: List[str] = []
    sensitivity: Optional[SensitivityConfig] = None
    output: str = "nodal_output"
    plotfile: Optional[str] = None


def build_segments(config: NodalAnalysisConfig) -> List[PipeSegment]:
    """Recalculate the component strings and merge them into a flow path"""
    bha_rows = []
    casing_rows = []
    if config.bha is not None:
        bha_rows = process_string_config(
            config.bha.model_copy(update={"string_type": StringType.BHA})
        )
    if config.casing is not None:
        casing_rows = process_string_config(
            config.casing.model_copy(update={"string_type": StringType.CASING})
        )
    return merge_string_segments(bha_rows, casing_rows, config.nodal_depth)


def points_to_dataframe(points: Dict[str, Point], key: str = "METHOD") -> pd.DataFrame:
    return pd.DataFrame(
        [
            {key: name, "RATE": point.rate, "PRESSURE": point.pressure}
            for name, point in points.items()
        ],
        columns=[key, "RATE", "PRESSURE"],
    )


def curves_to_dataframe(curves: Dict[str, List[Point]], key: str = "METHOD"):
    frames = [
        curve_to_dataframe(curve).assign(**{key: name})
        for name, curve in curves.items()
    ]
    if not frames:
        return pd.DataFrame(columns=[key, "RATE", "PRESSURE"])
    return pd.concat(frames, ignore_index=True)[[key, "RATE", "PRESSURE"]]


def sensitivity_to_dataframes(result: SensitivityResult):
    """Curves and operating points of a sensitivity run, the base case has an
    empty VALUE"""
    cases = [result.base_case] + result.cases if result.base_case else result.cases
    curves = []
    points = []
    for case in cases:
        curves.append(curve_to_dataframe(case.curve).assign(VALUE=case.value))
        points.append(
            {
                "VALUE": case.value,
                "RATE": case.operating_point.rate if case.operating_point else None,
                "PRESSURE": (
                    case.operating_point.pressure if case.operating_point else None
                ),
            }
        )
    curves_df = (
        pd.concat(curves, ignore_index=True)
        if curves
        else pd.DataFrame(columns=["VALUE", "RATE", "PRESSURE"])
    )
    curves_df.insert(0, "PARAMETER", result.parameter)
    points_df = pd.DataFrame(points, columns=["VALUE", "RATE", "PRESSURE"])
    points_df.insert(0, "PARAMETER", result.parameter)
    return curves_df, points_df


async def run_nodal_analysis(
    config: NodalAnalysisConfig,
    segments: List[PipeSegment],
    client: Optional[HttpCalculationClient] = None,
) -> AnalysisState:
    """Run all requested analysis steps and return the final state"""
    state = AnalysisState(
        inflow_inputs=config.inflow,
        fluid_inputs=config.fluid,
        lift_inputs=config.lift,
        correlation_method=config.correlation_method,
        survey_data=list(config.survey),
    )
    own_client = client is None
    if own_client:
        client = HttpCalculationClient(config.service)
    try:
        orchestrator = AnalysisOrchestrator(client, client, client, state)
        if config.correlation_method == "auto":
            state.correlation_method = await orchestrator.recommend_correlation()
            logger.info("Using recommended correlation %s", state.correlation_method)

        await orchestrator.run_analysis(segments)

        if config.comparison:
            await orchestrator.run_correlation_comparison(
                config.comparison,
                segments,
                on_progress=lambda pct: logger.info("Comparison %d%% done", pct),
            )
        if config.sensitivity is not None:
            await orchestrator.run_sensitivity_analysis(
                config.sensitivity.parameter, config.sensitivity.values, segments
            )
    finally:
        if own_client:
            await client.aclose()
    return state


def write_results(state: AnalysisState, segments: List[PipeSegment], outdir: Path):
    outdir.mkdir(parents=True, exist_ok=True)

    pd.DataFrame(
        [segment.model_dump() for segment in segments],
        columns=list(PipeSegment.model_fields),
    ).to_csv(outdir / "segments.csv", index=False)
    curve_to_dataframe(state.inflow_curve).to_csv(
        outdir / "inflow_curve.csv", index=False
    )
    curve_to_dataframe(state.lift_curve).to_csv(outdir / "lift_curve.csv", index=False)

    operating_points = {}
    if state.operating_point is not None:
        operating_points[state.correlation_method] = state.operating_point
    operating_points.update(state.comparison_points)
    points_to_dataframe(operating_points).to_csv(
        outdir / "operating_points.csv", index=False
    )

    if state.comparison_curves:
        curves_to_dataframe(state.comparison_curves).to_csv(
            outdir / "comparison_curves.csv", index=False
        )
    if state.sensitivity is not None:
        curves_df, points_df = sensitivity_to_dataframes(state.sensitivity)
        curves_df.to_csv(outdir / "sensitivity_curves.csv", index=False)
        points_df.to_csv(outdir / "sensitivity_points.csv", index=False)
    logger.info("Results written to %s", outdir)


def get_parser() -> argparse.ArgumentParser:
    """Set up parser for command line utility"""
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=DESCRIPTION,
        epilog=EPILOGUE + EXAMPLES,
    )
    parser.add_argument("config", help="Config file in YAML format")
    parser.add_argument(
        "-o", "--output", type=str, help="Directory for CSV output files"
    )
    parser.add_argument("--base-url", type=str, help="URL of the calculation services")
    parser.add_argument(
        "--method", type=str, help="Lift correlation method, or 'auto'"
    )
    parser.add_argument("--plotfile", type=str, help="Filename for a PNG plot")
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
        logging.getLogger("wellnodal").setLevel(logging.INFO)
    if args.debug:
        logging.getLogger("wellnodal").setLevel(logging.DEBUG)

    yaml_config: dict = yaml.safe_load(Path(args.config).read_text(encoding="utf8"))
    merged_config = dict(yaml_config or {})
    if args.output:
        merged_config["output"] = args.output
    if args.method:
        merged_config["correlation_method"] = args.method
    if args.plotfile:
        merged_config["plotfile"] = args.plotfile
    if args.base_url:
        merged_config["service"] = {
            **(merged_config.get("service") or {}),
            "base_url": args.base_url,
        }
    config = NodalAnalysisConfig(**merged_config)

    segments = build_segments(config)
    logger.info("Flow path with %d segments", len(segments))

    try:
        state = asyncio.run(run_nodal_analysis(config, segments))
    except NodalAnalysisError as err:
        logger.error("Nodal analysis failed: %s", err)
        sys.exit(1)
    write_results(state, segments, Path(config.output))

    if state.operating_point is None:
        print("No operating point, the curves do not cross")
    else:
        print(
            f"Operating point: rate={state.operating_point.rate:g} "
            f"pressure={state.operating_point.pressure:g}"
        )

    if config.plotfile:
        plotter.plot_nodal_analysis(
            state.inflow_curve,
            state.lift_curve,
            state.operating_point,
            state.comparison_curves,
            state.comparison_points,
            state.sensitivity,
        )
        logger.info("Dumping plot to %s", config.plotfile)
        pyplot.savefig(config.plotfile)


if __name__ == "__main__":
    main()
