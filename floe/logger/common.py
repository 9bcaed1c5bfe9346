import logging
import os
import sys
import threading

LOG_LEVEL = os.getenv("FLOE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] [%(threadName)s] %(message)s"


class CustomFormatter(logging.Formatter):
    """Colors level, logger and thread names; plain text when ``color`` is off."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m\033[97m",
    }
    NAME_COLOR = "\033[34m"
    THREAD_COLOR = "\033[35m"
    RESET = "\033[0m"

    def __init__(self, fmt=None, datefmt=None, color: bool = True):
        super().__init__(fmt, datefmt)
        self.color = color

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.color and color else text

    def format(self, record):
        # Copy so other handlers (pytest caplog, uvicorn access) see the plain record
        record = logging.makeLogRecord(record.__dict__)
        level = record.levelname.strip()
        record.levelname = self._paint(f"{level:<7}", self.LEVEL_COLORS.get(level, ""))
        record.name = self._paint(record.name, self.NAME_COLOR)
        record.threadName = self._paint(threading.current_thread().name, self.THREAD_COLOR)
        return super().format(record)


handler = logging.StreamHandler()
handler.setFormatter(CustomFormatter(LOG_FORMAT, color=sys.stderr.isatty()))
logger = logging.getLogger("floe")
logger.setLevel(LOG_LEVEL)
logger.handlers.clear()
logger.addHandler(handler)


def uvicorn_log_config(level: str = LOG_LEVEL) -> dict:
    """dictConfig for uvicorn that routes its loggers and ours through CustomFormatter."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "custom": {
                "()": CustomFormatter,
                "fmt": LOG_FORMAT,
                "color": sys.stdout.isatty(),
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "custom",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
            "floe": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {"handlers": ["default"], "level": level},
    }
