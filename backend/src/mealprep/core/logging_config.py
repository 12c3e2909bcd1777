from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a single stream handler to the ``mealprep`` logger tree.

    Safe to call more than once: later calls only adjust the level.
    """
    global _configured

    root = logging.getLogger("mealprep")
    root.setLevel(level if isinstance(level, int) else level.upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
