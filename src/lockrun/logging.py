"""Logging configuration for lockrun CLI."""

import logging
import sys
from enum import IntEnum
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler


class LogLevel(IntEnum):
    """Log level enumeration."""

    NORMAL = logging.WARNING
    VERBOSE = logging.INFO
    DEBUG = logging.DEBUG


def configure_logging(
    verbosity: int = 0,
    no_color: bool = False,
    stream: TextIO | None = None,
) -> Console:
    """Configure logging based on CLI options.

    lockrun stays silent by default: the wrapped command owns stdout and
    stderr. Timing reports are emitted at INFO and only shown with -v.

    Args:
        verbosity: Number of -v flags (0=warnings only, 1=timing, 2+=debug)
        no_color: Disable colored output
        stream: Output stream for logs (defaults to the current sys.stderr)

    Returns:
        Configured Rich console for diagnostics
    """
    if verbosity >= 2:
        level = LogLevel.DEBUG
    elif verbosity >= 1:
        level = LogLevel.VERBOSE
    else:
        level = LogLevel.NORMAL

    console = Console(
        file=stream if stream is not None else sys.stderr,
        no_color=no_color,
        highlight=False,
        soft_wrap=True,
    )

    handler = RichHandler(
        console=console,
        show_time=verbosity >= 2,
        show_path=verbosity >= 2,
        show_level=verbosity >= 2,
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    return console
