"""
Logging for the EcoTrack API.

Records go to the console and, when ``LOG_FILE`` is set, to a file as
well.  pymongo logs every command and heartbeat at DEBUG, so its loggers
are held at WARNING unless the service itself runs at DEBUG.
"""

import logging
from pathlib import Path

from config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
STORE_LOGGERS = ("pymongo",)


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    for name in STORE_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    root = logging.getLogger()
    if root.handlers:
        # already configured, e.g. by uvicorn or a test runner
        return
    root.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(Path(settings.log_file).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
