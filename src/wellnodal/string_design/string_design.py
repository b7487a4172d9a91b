#!/usr/bin/env python
"""
Depth bookkeeping for downhole component strings (casing and bottom hole
assembly).

Rows are kept in a dense ordered list. Pending user edits (drafts) are kept in
a side map keyed by row id, and are applied and recomputed in one pass by
recalculate().
"""

import argparse
import logging
import math
import sys
import uuid
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import pandas as pd
import yaml
from pydantic import BaseModel, ConfigDict, Field

from wellnodal import __version__, getLogger

logger = getLogger(__name__)

DESCRIPTION = """Recalculate top and bottom depths of a casing or bottom hole
assembly (BHA) component string.

Reads a YAML file with the ordered component rows and optional draft edits
keyed by row id, recomputes a consistent depth layout and writes it as CSV.
Physical inconsistencies (OD smaller than ID, overlapping components that do
not fit inside each other) are reported as warnings.
"""

EPILOGUE = """YAML-file components::

 string_type - 'bha' or 'casing'. Default 'bha'
 initial_top - depth where the string starts. Default 0
 average_joint_length - average length of a tubing joint. Default 30
 rows - ordered list of components, each with the keys
        id, top, bottom, count, length, outer_diameter (od),
        inner_diameter, component_type (type) and description (desc)
 drafts - mapping from row id to edits (top, bottom, count, length,
          od, id, type, desc)
"""

DEFAULT_AVERAGE_JOINT_LENGTH = 30.0

CASING_TYPES = ["Casing Joint", "Casing Pup Joint"]

BHA_TYPES = [
    "Anchor/Catcher",
    "Bull Plug",
    "Centralizer",
    "Cross Over",
    "Cup Packer",
    "ESP",
    "Fish",
    "Float Collar",
    "Float Shoe",
    "Gas Lift Bumper Spring Assembly",
    "Gas Lift Mandrel",
    "Gas Lift Orifice",
    "Gas Separator",
    "Jet Pump",
    "Marker Joint",
    "Mechanical Seating Nipple",
    "On/Off Tool",
    "Packer",
    "Perforated Joint",
    "Perforated Sub",
    "Profile Nipple",
    "Pump Seating Nipple",
    "Rod Pump Gas Anchor",
    "Sand Screen",
    "Sand Separator",
    "Shear Tool",
    "Slotted Joint",
    "Slotted Seating Nipple",
    "Slotted Sub",
    "Toe Sleeve",
    "Tubing Hanger",
    "Tubing Pup Joint",
    "Tubing",
]


class StringType(str, Enum):
    BHA = "bha"
    CASING = "casing"


def new_row_id() -> str:
    return uuid.uuid4().hex[:12]


class ComponentRow(BaseModel):
    """One physical segment of a component string.

    ``length`` is the length per unit, except for tubing rows in a BHA
    string where it is the total tubing run and ``count`` the number of
    joints.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_row_id)
    top: float = 0.0
    bottom: float = 0.0
    count: int = 1
    length: float = 0.0
    outer_diameter: float = Field(default=0.0, alias="od")
    inner_diameter: float = 0.0
    component_type: str = Field(default="", alias="type")
    description: str = Field(default="", alias="desc")


class DraftOverride(BaseModel):
    """Pending edit of one row. Fields left as None are not edited.

    The short field names used by the editing table are accepted, where
    ``id`` is the inner diameter of the component and not the row id.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    top: Optional[float] = None
    bottom: Optional[float] = None
    count: Optional[float] = None
    length: Optional[float] = None
    outer_diameter: Optional[float] = Field(default=None, alias="od")
    inner_diameter: Optional[float] = Field(default=None, alias="id")
    component_type: Optional[str] = Field(default=None, alias="type")
    description: Optional[str] = Field(default=None, alias="desc")


DraftLike = Union[DraftOverride, Mapping]


def safe_number(value, default: float, field: str = "field") -> float:
    """Return value as a float, or default if it is missing, not a number,
    not finite or negative"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if math.isnan(number) or math.isinf(number) or number < 0:
        if value is not None:
            logger.warning(
                "Invalid value for %s: %s, using default: %s", field, value, default
            )
        return default
    return number


def safe_count(value) -> int:
    return int(safe_number(value, 1, "count"))


def is_tubing(component_type: Optional[str]) -> bool:
    return (component_type or "").strip().lower() == "tubing"


def _as_draft(draft: Optional[DraftLike]) -> DraftOverride:
    if draft is None:
        return DraftOverride()
    if isinstance(draft, DraftOverride):
        return draft
    return DraftOverride(**draft)


def _merge(row: ComponentRow, draft: DraftOverride) -> Dict:
    """Merge a draft onto the editable fields of a row, with numeric
    safety applied to all numbers"""

    def pick(name):
        value = getattr(draft, name)
        return getattr(row, name) if value is None else value

    return {
        "top": safe_number(pick("top"), 0.0, f"{row.id}.top"),
        "count": safe_count(pick("count")),
        "length": safe_number(pick("length"), 0.0, f"{row.id}.length"),
        "outer_diameter": safe_number(
            pick("outer_diameter"), 0.0, f"{row.id}.outer_diameter"
        ),
        "inner_diameter": safe_number(
            pick("inner_diameter"), 0.0, f"{row.id}.inner_diameter"
        ),
        "component_type": pick("component_type") or "",
        "description": pick("description") or "",
    }


def recalculate(
    rows: List[ComponentRow],
    initial_top: float,
    drafts: Optional[Mapping[str, DraftLike]] = None,
    string_type: Union[StringType, str] = StringType.BHA,
    average_joint_length: Optional[float] = None,
) -> List[ComponentRow]:
    """Recompute top, bottom, length and count for every row of a string.

    Rows are processed in list order. Any pending draft for a row is merged
    before its depths are computed, and the bottom of each row becomes the
    starting point for the next.

    Args:
        rows: Ordered component rows
        initial_top: Depth where the string starts
        drafts: Pending edits keyed by row id
        string_type: "bha" rows are contiguous, "casing" rows may telescope
            inside the previous row
        average_joint_length: Joint length used to count tubing joints

    Returns:
        New list of rows. The input is not modified.
    """
    if not rows:
        return []

    string_type = StringType(string_type)
    drafts = drafts or {}
    initial_top = safe_number(initial_top, 0.0, "initial_top")
    joint_length = safe_number(
        average_joint_length, DEFAULT_AVERAGE_JOINT_LENGTH, "average_joint_length"
    )
    if joint_length <= 0:
        joint_length = DEFAULT_AVERAGE_JOINT_LENGTH

    last_bottom = initial_top
    result: List[ComponentRow] = []

    for idx, row in enumerate(rows):
        draft = _as_draft(drafts.get(row.id))
        merged = _merge(row, draft)

        if idx == 0:
            top = max(merged["top"], initial_top)
        elif string_type == StringType.CASING and (
            result[-1].inner_diameter > merged["outer_diameter"]
        ):
            # Telescoped inside the previous component
            top = merged["top"]
        else:
            top = last_bottom

        count = merged["count"]
        length = merged["length"]
        tubing = string_type == StringType.BHA and is_tubing(merged["component_type"])

        if draft.bottom is not None:
            bottom = safe_number(draft.bottom, top, f"{row.id}.bottom")
            if tubing or string_type == StringType.CASING:
                length = max(bottom - top, 0.0)
            elif count > 0:
                length = max((bottom - top) / count, 0.0)
        elif tubing:
            bottom = top + length
        else:
            bottom = top + count * length

        if tubing:
            count = math.ceil(length / joint_length)

        if bottom < top:
            logger.warning(
                "Row %s: bottom %s above top %s, clamping to top", row.id, bottom, top
            )
            bottom = top

        last_bottom = bottom
        result.append(
            row.model_copy(
                update={
                    **merged,
                    "top": top,
                    "bottom": bottom,
                    "length": length,
                    "count": count,
                }
            )
        )

    return result


def validate(rows: List[ComponentRow]) -> List[str]:
    """Check the physical consistency of a string.

    Flags rows with an outer diameter smaller than the inner diameter, and
    rows overlapping an earlier row in the list unless one of the two
    components fits inside the bore of the other.

    Only earlier rows in list order are compared, so overlaps are only
    detected reliably when the rows are ordered by depth.

    Both nestings are accepted: a later component inside the earlier one,
    as for a telescoped casing, and a later component containing it.

    Returns:
        List of messages, empty if no problems are found
    """
    messages = []
    for idx, row in enumerate(rows):
        if row.outer_diameter < row.inner_diameter:
            messages.append(
                f"Row {idx + 1}: OD ({row.outer_diameter}) < ID ({row.inner_diameter})"
            )
        for jdx, other in enumerate(rows[:idx]):
            if not row.top < other.bottom:
                continue
            fits_inside = other.inner_diameter >= row.outer_diameter
            contains = row.inner_diameter >= other.outer_diameter
            if not (fits_inside or contains):
                messages.append(
                    f"Row {idx + 1} overlaps with Row {jdx + 1} but ID "
                    f"{other.inner_diameter} < OD {row.outer_diameter}"
                )
    return messages


class ComponentString:
    """An ordered component string with its editing operations"""

    def __init__(
        self,
        string_type: Union[StringType, str] = StringType.BHA,
        initial_top: float = 0.0,
        average_joint_length: Optional[float] = None,
        rows: Optional[List[ComponentRow]] = None,
    ):
        self.string_type = StringType(string_type)
        self.initial_top = safe_number(initial_top, 0.0, "initial_top")
        self.average_joint_length = average_joint_length
        self.rows: List[ComponentRow] = list(rows or [])

    def add_row(self, **fields) -> ComponentRow:
        """Append a row starting at the bottom of the string"""
        top = self.rows[-1].bottom if self.rows else self.initial_top
        defaults = {"top": top, "bottom": top, "count": 1, "length": 0.0}
        defaults.update(fields)
        row = ComponentRow(**defaults)
        self.rows.append(row)
        return row

    def remove_row(self, row_id: str) -> None:
        self.rows = [row for row in self.rows if row.id != row_id]

    def recalculate(
        self, drafts: Optional[Mapping[str, DraftLike]] = None
    ) -> List[ComponentRow]:
        return recalculate(
            self.rows,
            self.initial_top,
            drafts,
            self.string_type,
            self.average_joint_length,
        )

    def apply_drafts(
        self, drafts: Optional[Mapping[str, DraftLike]] = None
    ) -> List[str]:
        """Recalculate with drafts and commit the result.

        Returns:
            Validation messages for the committed rows
        """
        self.rows = self.recalculate(drafts)
        return validate(self.rows)


class StringDesignConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    string_type: StringType = StringType.BHA
    initial_top: float = 0.0
    average_joint_length: Optional[float] = None
    rows: List[ComponentRow] = []
    drafts: Dict[str, DraftOverride] = {}
    output: Optional[str] = "-"


def rows_to_dataframe(rows: List[ComponentRow]) -> pd.DataFrame:
    return pd.DataFrame(
        [row.model_dump() for row in rows],
        columns=list(ComponentRow.model_fields),
    )


def process_string_config(
    config: Union[dict, StringDesignConfig],
) -> List[ComponentRow]:
    """Recalculate the string described by a configuration, and log
    validation messages as warnings"""
    if isinstance(config, dict):
        config = StringDesignConfig(**config)

    rows = recalculate(
        config.rows,
        config.initial_top,
        config.drafts,
        config.string_type,
        config.average_joint_length,
    )
    for message in validate(rows):
        logger.warning(message)
    return rows


def get_parser() -> argparse.ArgumentParser:
    """Set up parser for command line utility"""
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=DESCRIPTION,
        epilog=EPILOGUE,
    )
    parser.add_argument("config", help="Config file in YAML format")
    parser.add_argument(
        "-o", "--output", type=str, default="", help="CSV file to write, - for stdout"
    )
    parser.add_argument(
        "--string-type",
        type=str,
        choices=[item.value for item in StringType],
        help="Override the string type from the config file",
    )
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

    yaml_config: dict = yaml.safe_load(Path(args.config).read_text(encoding="utf8"))

    cli_config: dict = {}
    if args.output:
        cli_config["output"] = args.output
    if args.string_type:
        cli_config["string_type"] = args.string_type

    merged_config = dict(yaml_config or {})
    merged_config.update(cli_config)
    config = StringDesignConfig(**merged_config)

    if args.verbose:
        logger.setLevel(logging.INFO)
    if args.debug:
        logger.setLevel(logging.DEBUG)

    rows = process_string_config(config)
    logger.info("Recalculated %d %s rows", len(rows), config.string_type.value)

    dframe = rows_to_dataframe(rows)
    if config.output == "-":
        dframe.to_csv(sys.stdout, index=False)
    else:
        logger.info("Writing rows to %s", config.output)
        dframe.to_csv(config.output, index=False)


if __name__ == "__main__":
    main()
