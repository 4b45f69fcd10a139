# catalog/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List

_configured = False

# Chatty library loggers held at WARNING unless LOG_LEVEL is DEBUG
_NOISY_LOGGERS = ("urllib3", "requests")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _build_handlers(level: int, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if _env_flag("LOG_TO_STDOUT", "true"):
        handlers.append(logging.StreamHandler(sys.stdout))

    if _env_flag("LOG_TO_FILE", "true"):
        log_file = os.getenv("LOG_FILE", "/data/catalog_repair.log")
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file,
                    maxBytes=int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024))),
                    backupCount=int(os.getenv("LOG_BACKUPS", "3")),
                )
            )
        except OSError as e:
            logging.getLogger(__name__).warning("Failed to initialize file logging: %s", e)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging():
    global _configured
    if _configured:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate handlers when embedded in something that configured logging
    if not root.handlers:
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        for handler in _build_handlers(level, formatter):
            root.addHandler(handler)

    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
