"""Console logging setup for the CLI and scripts."""

import logging

from rich.logging import RichHandler

from gallery_ingest.config import LOG_LEVEL


def setup_logging(level: str | None = None) -> None:
    """Route the root logger through a single RichHandler.

    Safe to call more than once; later calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
