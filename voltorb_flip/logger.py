"""Logging helpers shared by the solver, the game engine and the CLI."""

import logging
from typing import Optional


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure root logging with a compact formatter.

    Args:
        level: Root logger level (e.g. logging.DEBUG to trace enumerations).
    """
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a namespaced logger for the package."""
    return logging.getLogger(name or "voltorb_flip")
