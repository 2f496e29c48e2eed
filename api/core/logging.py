"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)` with event-style messages:
`listing_created listing_id=... owner_id=...`.
"""

from __future__ import annotations

import logging

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level or config.log_level())

    # Uvicorn reload re-imports main; don't stack handlers.
    if any(getattr(h, "_listings_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._listings_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
