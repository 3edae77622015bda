"""Logging helpers for the assets worker."""

from __future__ import annotations

import logging

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "info") -> None:
    """Configure default logging if no handlers are present.

    ``disabled`` silences every record.
    """
    token = str(level or "info").strip().lower()
    if token == "disabled":
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(_LEVELS.get(token, logging.INFO))
        return
    logging.basicConfig(
        level=_LEVELS.get(token, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler()],
    )
