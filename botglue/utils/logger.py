import logging
import sys
from typing import Optional

from ..config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False

def setup_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Configure the root handler once (stderr) and return a named logger"""
    global _configured
    
    numeric_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    
    if not _configured:
        logging.basicConfig(
            level=numeric_level,
            format=LOG_FORMAT,
            stream=sys.stderr,
        )
        _configured = True
    
    logger = logging.getLogger(name or "botglue")
    logger.setLevel(numeric_level)
    return logger
