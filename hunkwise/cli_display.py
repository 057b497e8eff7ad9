"""
CLI logging — file logger for verbose output; the terminal only shows
summaries.
"""

import logging
import os
from datetime import datetime

# Package logger; module loggers under ``hunkwise.*`` propagate here.
log = logging.getLogger("hunkwise")


def setup_logger(log_dir: str = ".hunkwise/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here.

    Only the first call attaches a handler; later calls reuse it.
    """
    if any(isinstance(h, logging.FileHandler) for h in log.handlers):
        return log

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"hunkwise_{timestamp}.log")

    log.setLevel(logging.DEBUG)

    # File handler: captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    log.addHandler(fh)

    return log
