import logging
import sys
from typing import Optional

from ta_engine.core.config import settings

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a console handler to the package logger (once)."""
    logger = logging.getLogger("ta_engine")
    logger.setLevel((level or settings.log_level).upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    return logger
