import logging
import sys

from app.config import settings


def setup_logging():
    """Configure the root logger once for the whole process."""
    log = logging.getLogger()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    log.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Uvicorn may have installed its own handlers before us
    if log.hasHandlers():
        log.handlers.clear()
    log.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    log.info("Logging configured at %s", logging.getLevelName(level))
