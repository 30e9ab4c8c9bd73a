"""Logging configuration for the chime detector."""
import logging
import sys
from chimewatch.core.config import settings


def setup_logging(level: str = None) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


logger = logging.getLogger("chimewatch")
