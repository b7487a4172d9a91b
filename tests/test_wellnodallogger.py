import logging

import wellnodal


def test_wellnodallogger_name():
    """Test that the wellnodal logger can compute a correct name for itself"""
    assert wellnodal.getLogger().name == "wellnodal"
    assert wellnodal.getLogger("").name == "wellnodal"
    assert (
        wellnodal.getLogger("wellnodal.string_design").name
        == "wellnodal.string_design"
    )
    assert (
        wellnodal.getLogger("wellnodal.string_design.string_design").name
        == "wellnodal.string_design"
    )
    assert (
        wellnodal.getLogger("wellnodal.string_design.string_design.string_design").name
        == "wellnodal.string_design"
    )
    assert (
        wellnodal.getLogger("wellnodal.string_design.segments").name
        == "wellnodal.string_design.segments"
    )


def test_handlers_added_once():
    """Asking twice for the same logger must not duplicate output"""
    first = wellnodal.getLogger("test_handlers_once")
    second = wellnodal.getLogger("test_handlers_once")
    assert first is second
    assert len(second.handlers) == 2


def test_default_logger_levels(capsys):
    """Verify that the intended usage of this logger have expected results"""

    # Scripts should start with this:
    logger = wellnodal.getLogger("test_levels")

    logger.debug("This DEBUG is not to be seen")
    captured = capsys.readouterr()
    assert "DEBUG" not in captured.out
    assert "DEBUG" not in captured.err

    logger.info("This INFO is not to be seen by default")
    captured = capsys.readouterr()
    assert "INFO" not in captured.out
    assert "INFO" not in captured.err

    logger.warning("This WARNING is to be seen")
    captured = capsys.readouterr()
    assert "WARNING" in captured.out
    assert "WARNING" not in captured.err

    logger.error("This ERROR should only be in stderr")
    captured = capsys.readouterr()
    assert "ERROR" not in captured.out
    assert "ERROR" in captured.err


def test_script_verbose_mode(capsys):
    """Some scripts accept a --verbose option, which usually
    mean that logging should be at INFO level"""
    logger = wellnodal.getLogger("test_verbose")
    logger.setLevel(logging.INFO)

    logger.info("This INFO is to be seen")
    captured = capsys.readouterr()
    assert "INFO" in captured.out


def test_script_debug_mode(capsys):
    """The --debug option sets the level to DEBUG"""
    logger = wellnodal.getLogger("test_debug")
    logger.setLevel(logging.DEBUG)

    logger.debug("This DEBUG is to be seen")
    captured = capsys.readouterr()
    assert "DEBUG" in captured.out
