from __future__ import annotations

import logging

from uvicorn.logging import DefaultFormatter


def configure_logging(level: int = logging.INFO, use_colors: bool | None = True) -> None:
    """Route all records through a single uvicorn-styled stderr handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(DefaultFormatter(fmt="%(levelprefix)s %(message)s", use_colors=use_colors))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
