import io
import math
from pathlib import Path

import pandas as pd
import pytest
import yaml
from pydantic import ValidationError

from wellnodal.string_design import string_design
from wellnodal.string_design.string_design import (
    ComponentRow,
    ComponentString,
    DraftOverride,
    StringDesignConfig,
    StringType,
    process_string_config,
    recalculate,
    safe_number,
    validate,
)


def bottoms(rows):
    return [row.bottom for row in rows]


def tops(rows):
    return [row.top for row in rows]


@pytest.fixture(name="bha_rows")
def fixture_bha_rows():
    return [
        ComponentRow(id="hanger", top=0, count=2, length=15, type="Tubing Hanger"),
        ComponentRow(id="pup", count=1, length=10, type="Tubing Pup Joint"),
    ]


@pytest.fixture(name="casing_rows")
def fixture_casing_rows():
    return [
        ComponentRow(
            id="surface", top=0, count=1, length=1000, od=9.625, inner_diameter=8.835
        ),
        ComponentRow(
            id="production", top=0, count=1, length=7000, od=7, inner_diameter=6.276
        ),
    ]


def test_bha_rows_are_contiguous(bha_rows):
    rows = recalculate(bha_rows, 0)
    assert bottoms(rows) == [30, 40]
    assert tops(rows) == [0, 30]


def test_initial_top(bha_rows):
    """The string can not start above the initial top"""
    rows = recalculate(bha_rows, 100)
    assert tops(rows) == [100, 130]
    assert bottoms(rows) == [130, 140]


def test_first_row_keeps_deeper_top(bha_rows):
    rows = recalculate(bha_rows, 0, drafts={"hanger": {"top": 250}})
    assert tops(rows) == [250, 280]


def test_recalculate_does_not_modify_input(bha_rows):
    rows = recalculate(bha_rows, 100)
    assert bha_rows[0].top == 0
    assert bha_rows[0].bottom == 0
    assert [row.id for row in rows] == ["hanger", "pup"]
    assert rows[0] is not bha_rows[0]


def test_recalculate_is_idempotent(bha_rows, casing_rows):
    tubing = ComponentRow(id="tubing", count=1, length=950, type="Tubing")
    for rows, string_type in [
        (bha_rows + [tubing], "bha"),
        (casing_rows, "casing"),
    ]:
        first = recalculate(rows, 10, string_type=string_type)
        assert recalculate(first, 10, string_type=string_type) == first

    drafted = recalculate(bha_rows, 0, drafts={"pup": {"bottom": 55}})
    assert recalculate(drafted, 0) == drafted


def test_empty_string():
    assert recalculate([], 0) == []


def test_draft_bottom_bha():
    """A bottom edit is authoritative, length per unit is derived from it"""
    rows = [ComponentRow(id="a", top=0, count=2, length=15)]
    result = recalculate(rows, 0, drafts={"a": DraftOverride(bottom=50)})
    assert result[0].bottom == 50
    assert result[0].length == 25
    assert result[0].count == 2


def test_draft_bottom_casing(casing_rows):
    """Casing rows store the raw span as length"""
    rows = [casing_rows[0].model_copy(update={"count": 3})]
    result = recalculate(
        rows, 0, drafts={"surface": {"bottom": 1200}}, string_type="casing"
    )
    assert result[0].bottom == 1200
    assert result[0].length == 1200


def test_draft_fields_short_names(bha_rows):
    rows = recalculate(
        bha_rows,
        0,
        drafts={"pup": {"od": 4.5, "id": 3.958, "type": "Packer", "desc": "set at 30"}},
    )
    assert rows[1].outer_diameter == 4.5
    assert rows[1].inner_diameter == 3.958
    assert rows[1].component_type == "Packer"
    assert rows[1].description == "set at 30"


def test_draft_count(bha_rows):
    rows = recalculate(bha_rows, 0, drafts={"hanger": {"count": 4}})
    assert bottoms(rows) == [60, 70]


def test_casing_telescoping(casing_rows):
    """A liner narrower than the bore above keeps its own top"""
    liner = ComponentRow(
        id="liner", top=6500, count=1, length=1500, od=4.5, inner_diameter=3.958
    )
    rows = recalculate(casing_rows + [liner], 0, string_type=StringType.CASING)
    assert tops(rows) == [0, 0, 6500]
    assert bottoms(rows) == [1000, 7000, 8000]


def test_casing_not_telescoped(casing_rows):
    """A component as wide as the bore above continues from its bottom"""
    rows = recalculate(casing_rows, 0, string_type="casing")
    assert casing_rows[0].inner_diameter > casing_rows[1].outer_diameter
    assert rows[1].top == 0

    wide = casing_rows[1].model_copy(update={"outer_diameter": 9.625})
    rows = recalculate([casing_rows[0], wide], 0, string_type="casing")
    assert rows[1].top == 1000


def test_bha_ignores_telescoping(casing_rows):
    """BHA rows always continue from the previous bottom"""
    rows = recalculate(casing_rows, 0, string_type="bha")
    assert rows[1].top == 1000


@pytest.mark.parametrize(
    "average, expected_count",
    [(None, 32), (0, 32), (-3, 32), (40, 24), (31.67, 30)],
)
def test_tubing_joint_count(average, expected_count):
    rows = [ComponentRow(id="tubing", top=0, count=1, length=950, type="tubing")]
    result = recalculate(rows, 0, average_joint_length=average)
    assert result[0].count == expected_count
    assert result[0].bottom == 950


def test_tubing_draft_bottom():
    rows = [
        ComponentRow(id="hanger", top=0, count=1, length=1, type="Tubing Hanger"),
        ComponentRow(id="tubing", count=1, length=950, type="Tubing"),
    ]
    result = recalculate(rows, 0, drafts={"tubing": {"bottom": 3001}})
    assert result[1].top == 1
    assert result[1].bottom == 3001
    assert result[1].length == 3000
    assert result[1].count == 100


def test_tubing_only_counted_in_bha():
    rows = [ComponentRow(id="tubing", top=0, count=2, length=950, type="Tubing")]
    result = recalculate(rows, 0, string_type="casing")
    assert result[0].count == 2
    assert result[0].bottom == 1900


def test_numeric_safety(caplog):
    """Bad numbers are replaced by defaults and logged, never raised"""
    rows = [
        ComponentRow(id="a", top=0, count=1, length=10),
        ComponentRow(id="b", count=1, length=10),
    ]
    result = recalculate(
        rows,
        math.nan,
        drafts={
            "a": DraftOverride(length=math.inf, count=-2),
            "b": DraftOverride(length=math.nan, od=-1),
        },
    )
    assert tops(result) == [0, 0]
    assert bottoms(result) == [0, 0]
    assert result[0].count == 1
    assert result[1].outer_diameter == 0
    assert "Invalid value" in caplog.text


def test_bottom_clamped_to_top(caplog):
    rows = [ComponentRow(id="a", top=100, count=1, length=10)]
    result = recalculate(rows, 0, drafts={"a": {"bottom": 50}})
    assert result[0].bottom == 100
    assert result[0].length == 0
    assert "clamping" in caplog.text


def test_safe_number():
    assert safe_number("12.5", 0) == 12.5
    assert safe_number(None, 3) == 3
    assert safe_number("abc", 1) == 1
    assert safe_number(-0.1, 0) == 0


def test_draft_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        DraftOverride(depth=10)


def test_validate_valid_string(casing_rows):
    rows = recalculate(casing_rows, 0, string_type="casing")
    assert validate(rows) == []

    contiguous = recalculate(
        [ComponentRow(id="a", top=0, length=10, od=7, inner_diameter=6)]
        + [ComponentRow(id="b", length=10, od=7, inner_diameter=6)],
        0,
    )
    assert validate(contiguous) == []


def test_validate_od_smaller_than_id():
    rows = [ComponentRow(id="a", top=0, bottom=10, od=4, inner_diameter=5)]
    assert validate(rows) == ["Row 1: OD (4.0) < ID (5.0)"]


def test_validate_overlap():
    rows = [
        ComponentRow(id="a", top=0, bottom=100, od=7, inner_diameter=6),
        ComponentRow(id="b", top=50, bottom=150, od=6.5, inner_diameter=5),
    ]
    assert validate(rows) == ["Row 2 overlaps with Row 1 but ID 6.0 < OD 6.5"]


def test_validate_nested_overlap():
    """Overlapping components are fine when one fits inside the other"""
    inside = [
        ComponentRow(id="a", top=0, bottom=100, od=7, inner_diameter=6),
        ComponentRow(id="b", top=50, bottom=150, od=5.5, inner_diameter=4.9),
    ]
    assert validate(inside) == []
    outside = [
        ComponentRow(id="a", top=0, bottom=100, od=5.5, inner_diameter=4.9),
        ComponentRow(id="b", top=50, bottom=150, od=7, inner_diameter=6),
    ]
    assert validate(outside) == []


def test_component_string_editing():
    string = ComponentString(string_type="bha", initial_top=20)
    first = string.add_row(length=10, count=3)
    assert first.top == 20
    assert len(first.id) == 12

    string.apply_drafts()
    second = string.add_row(length=5)
    assert second.top == 50
    assert second.id != first.id

    string.remove_row("unknown")
    assert len(string.rows) == 2

    messages = string.apply_drafts({second.id: {"count": 2}})
    assert messages == []
    assert bottoms(string.rows) == [50, 60]

    string.remove_row(first.id)
    assert [row.id for row in string.rows] == [second.id]
    string.apply_drafts()
    assert tops(string.rows) == [50]


def test_process_string_config(caplog):
    rows = process_string_config(
        {
            "string_type": "casing",
            "rows": [
                {"id": "a", "top": 0, "length": 100, "od": 4, "inner_diameter": 5},
            ],
        }
    )
    assert rows[0].bottom == 100
    assert "OD (4.0) < ID (5.0)" in caplog.text


def test_config_rejects_unknown_keys():
    with pytest.raises(ValidationError):
        StringDesignConfig(rows=[], tally=[])


CONFIG = {
    "string_type": "bha",
    "initial_top": 0,
    "average_joint_length": 31.5,
    "rows": [
        {"id": "hanger", "top": 0, "count": 1, "length": 1, "type": "Tubing Hanger"},
        {"id": "tubing", "length": 6300, "type": "Tubing", "od": 2.875},
        {"id": "psn", "length": 1.1, "type": "Pump Seating Nipple"},
    ],
    "drafts": {"psn": {"desc": "SN at EOT"}},
}


def test_main(tmp_path, mocker):
    """Test the command line tool writing to a file"""
    Path(tmp_path / "string.yml").write_text(yaml.dump(CONFIG), encoding="utf8")
    mocker.patch(
        "sys.argv",
        [
            "string_design",
            str(tmp_path / "string.yml"),
            "-o",
            str(tmp_path / "rows.csv"),
        ],
    )
    string_design.main()

    dframe = pd.read_csv(tmp_path / "rows.csv")
    assert list(dframe["id"]) == ["hanger", "tubing", "psn"]
    assert list(dframe["top"]) == [0, 1, 6301]
    assert list(dframe["count"]) == [1, 200, 1]
    assert dframe["bottom"].iloc[-1] == pytest.approx(6302.1)
    assert dframe["description"].iloc[-1] == "SN at EOT"


def test_main_stdout(tmp_path, mocker, capsys):
    """Without an output option, CSV is written to stdout"""
    Path(tmp_path / "string.yml").write_text(yaml.dump(CONFIG), encoding="utf8")
    mocker.patch(
        "sys.argv",
        ["string_design", str(tmp_path / "string.yml"), "--string-type", "casing"],
    )
    string_design.main()
    dframe = pd.read_csv(io.StringIO(capsys.readouterr().out))
    assert len(dframe) == 3
    # Tubing joints are not counted in a casing string
    assert dframe["count"].iloc[1] == 1
