"""Logging setup for the command line.

Library modules only create loggers; handlers are installed here, once,
by the CLI.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_CONFIGURED = False


def configure_logging(level: str | int = "INFO", *, console: Console | None = None) -> None:
    """Route ``fragments.*`` logs through a rich handler on stderr."""
    global _CONFIGURED
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("fragments")
    root.setLevel(level)
    if _CONFIGURED:
        return
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    _CONFIGURED = True
