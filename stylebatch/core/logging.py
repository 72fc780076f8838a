"""
Logging configuration
"""

import logging
import sys
from typing import Optional

from stylebatch.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the application"""
    log_level = (level or settings.LOG_LEVEL).upper()

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(getattr(h, "_stylebatch", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._stylebatch = True
        root.addHandler(handler)

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
