"""Logging configuration for repowatch."""

import logging
import sys

# Third-party loggers that drown out cycle output below WARNING
NOISY_LOGGERS = ("urllib3", "github", "apscheduler")

_HANDLER_NAME = "repowatch-console"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logger with console output.

    Safe to call more than once: the console handler is replaced, not
    duplicated. At DEBUG the HTTP and scheduler libraries log at DEBUG too,
    otherwise they are held at WARNING.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
