"""Logging configuration for the command line."""
import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr so stdout stays clean for the summary."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
