"""
utils.py
--------
Logging, timing decorator, and small numeric helpers shared across modules.
"""

import os
import math
import logging
import time
import functools
from datetime import datetime
from numbers import Real
from pathlib import Path
from typing import Optional

from realestate_mc.config import CONFIG


def get_logger(name: str, log_dir: Optional[str] = None,
               level: Optional[str] = None) -> logging.Logger:
    """
    Return a named logger writing to stdout and, optionally, a daily file.

    Parameters
    ----------
    name    : Logger name (typically the module __name__).
    log_dir : Directory for log files. Falls back to CONFIG.logging.log_dir;
              when both are unset only the console handler is attached.
    level   : Logging level string ("DEBUG", "INFO", "WARNING", "ERROR").

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:          # avoid duplicate handlers on re-import
        return logger

    level = level or CONFIG.logging.level
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    log_dir = log_dir or CONFIG.logging.log_dir
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = os.path.join(
            log_dir, f"realestate_mc_{datetime.now().strftime('%Y%m%d')}.log"
        )
        fh = logging.FileHandler(log_file)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def timeit(func):
    """Decorator that logs the execution time of any function."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        t0 = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - t0
        logger.debug("%s completed in %.3f s", func.__qualname__, elapsed)
        return result
    return wrapper


def is_number(value) -> bool:
    """True for finite real numbers; bools and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(float(value))


def clean_float(value) -> Optional[float]:
    """Convert to float, mapping None/NaN/inf to None."""
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def format_currency(value: float, decimals: int = 2) -> str:
    """Format a float as a USD currency string."""
    return f"${value:,.{decimals}f}"
