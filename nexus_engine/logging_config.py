"""Logging configuration for the console and CLI."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "WARNING", console: Optional[Console] = None) -> None:
    """Route all log records through a rich handler on stderr."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console or Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        ],
        force=True,
    )

    # pandas pulls in numexpr, which logs its thread count at INFO
    logging.getLogger("numexpr").setLevel(logging.WARNING)
