import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from config.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_FILENAME = "telemetry_relay.log"


def setup_logging(name: str = None, level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure root logger with console + rotating file handler.
    Returns a logger for `name`.
    """
    level_name = (level or getattr(config, "LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        # console handler
        ch = logging.StreamHandler()
        ch.setLevel(numeric_level)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(ch)

        # rotating file handler
        target_dir = Path(log_dir or getattr(config, "LOG_DIR", "logs"))
        target_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            str(target_dir / LOG_FILENAME), maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        fh.setLevel(numeric_level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(fh)

    root.setLevel(numeric_level)
    return logging.getLogger(name)
