"""
The common module is our ugly grab bag of common toys: the version, the base errors, and the logging
setup shared by the CLI and the library functions.
"""

import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path
from typing import TypeVar

import appdirs

with (Path(__file__).parent / ".version").open("r") as fp:
    VERSION = fp.read().strip()

T = TypeVar("T")


class RomtagError(Exception):
    pass


class RomtagExpectedError(RomtagError):
    """These errors are printed without traceback."""

    pass


class StorageError(RomtagExpectedError):
    """The cache directory could not be written to. Fatal for the whole run."""

    pass


def uniq(xs: list[T]) -> list[T]:
    rv: list[T] = []
    seen: set[T] = set()
    for x in xs:
        if x not in seen:
            rv.append(x)
            seen.add(x)
    return rv


ILLEGAL_FS_CHARS_REGEX = re.compile(r'[:\?<>\\*\|"\/\s]+')


def sanitize_dirname(name: str) -> str:
    """Replace characters that are illegal (or annoying) in a directory name."""
    return ILLEGAL_FS_CHARS_REGEX.sub("_", name).strip("_") or "_"


# The file handler writes tab-separated lines so that the run log can be grepped and cut.
RUN_LOG_FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"

__logging_initialized: set[str | None] = set()


def log_file_path() -> Path:
    # appdirs by default has Unix log to $XDG_CACHE_HOME, but I'd rather write logs to $XDG_STATE_HOME.
    log_home = Path(appdirs.user_state_dir("romtag"))
    if appdirs.system == "darwin":
        log_home = Path(appdirs.user_log_dir("romtag"))
    return log_home / "romtag.log"


def initialize_logging(logger_name: str | None = None) -> None:
    if logger_name in __logging_initialized:
        return
    __logging_initialized.add(logger_name)

    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)

    log_despite_testing = os.environ.get("LOG_TEST", False)

    # Pytest captures logging output on its own, so by default, we do not attach our own handlers.
    if "pytest" not in sys.modules or log_despite_testing:  # pragma: no cover
        log_file = log_file_path()
        log_file.parent.mkdir(parents=True, exist_ok=True)

        # Only hard failures reach the terminal unless --verbose lowers this handler's level.
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        stream_handler.setLevel(logging.ERROR)
        stream_handler.set_name("romtag-stderr")
        logger.addHandler(stream_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=10,
        )
        file_handler.setFormatter(logging.Formatter(RUN_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)


def set_verbose(logger_name: str | None = None) -> None:
    """Echo everything, including debug logging, to stderr."""
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        if handler.get_name() == "romtag-stderr":
            handler.setLevel(logging.DEBUG)
