import logging
import sys

try:
    from importlib import metadata

    __version__ = metadata.version(__name__)
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"


def getLogger(module_name="wellnodal"):
    # pylint: disable=invalid-name
    """Provides a unified logger for wellnodal tools.

    Tools in wellnodal are encouraged to use logging.info() instead of
    print().

    The logger name will typically be "wellnodal.nodal_analysis" for the command
    line tool nodal_analysis.

    Tools can set the level of the entire logger, through the setLevel()
    function. The default level is WARNING. Command line tools accept a
    --verbose argparse option to set the log level to INFO, and a --debug
    option to set it to DEBUG.

    Logging output is split by logging levels (split between WARNING and ERROR)
    to stdout and stderr, each log occurs in only one of the streams. CSV output
    sent to stdout by the command line tools is therefore only clean at the
    default log level.

    Args:
        module_name (str): A suggested name for the logger, usually
            __name__ should be supplied

    Returns:
        A logger object
    """
    if not module_name:
        return getLogger("wellnodal")

    compressed_name = []
    for elem in module_name.split("."):
        if len(compressed_name) == 0 or elem != compressed_name[-1]:
            compressed_name.append(elem)

    logger = logging.getLogger(".".join(compressed_name))
    if logger.handlers:
        return logger

    formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.addFilter(lambda record: record.levelno >= logging.ERROR)
    stderr_handler.setFormatter(formatter)

    logger.addHandler(stdout_handler)
    logger.addHandler(stderr_handler)

    return logger
