"""Lightweight logging setup for the CLI."""

import logging
import sys


def configure_logging(level: int = logging.INFO) -> None:
    # Configure root logger once; log lines go to stderr so command output stays clean.
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # keyring backends are chatty at DEBUG
    logging.getLogger("keyring").setLevel(max(level, logging.INFO))
