"""Logging setup shared by the CLI commands."""

import logging


def configure_logging(level: str) -> None:
    """Send perch's log records to stderr at *level* (``"info"``, ``"debug"``...)."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
