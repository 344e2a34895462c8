"""Process-wide logging setup."""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    from stock_audit.config import settings

    level = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(max(logging.getLevelName(level), logging.WARNING))
