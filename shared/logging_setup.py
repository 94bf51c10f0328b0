"""Process-wide logging setup shared by the component entry points."""

import logging
import os
import sys


def setup_logging(component: str, level: str = "INFO", log_file: str | None = None) -> None:
    """Log to stderr, and additionally to *log_file* when one is given."""
    fmt = f"%(asctime)s [{component}] %(levelname)s %(name)s: %(message)s"
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        handlers=handlers,
        force=True,
    )
