"""
Logging for Bouncer.

Every module logger is a child of the ``bouncer`` logger, which owns the two
handlers shared by the whole process:

* console - coloured through prompt_toolkit, level set from ``log_level``
  in the config via :func:`set_console_level`
* file    - ``logs/bouncer_<start time>.log``, always DEBUG, rotated at 5 MB

Messages carry a bracketed component tag, e.g. ``[LEDGER] Issued ...``.
"""

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from datetime import datetime
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()

ROOT_LOGGER_NAME = "bouncer"

LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[38;5;88m",
}
RESET_COLOR = "\033[0m"

NOISY_LOGGERS = ("discord", "aiohttp", "aiosqlite", "websockets")

_console_handler: logging.Handler | None = None


class ColorFormatter(logging.Formatter):
    """Wraps each formatted record in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        color = LOG_COLORS.get(record.levelname, "")
        message = super().format(record)
        return f"{color}{message}{RESET_COLOR}" if color else message


class PromptToolkitHandler(logging.Handler):
    """Console handler writing through ``print_formatted_text`` so ANSI colours render everywhere."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def new_log_filepath(now: datetime | None = None) -> Path:
    """Path of a fresh log file named after ``now``; one file per bot start."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    return LOGS_DIR / f"bouncer_{stamp}.log"


def _configure_root() -> logging.Logger:
    global _console_handler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    root.setLevel(logging.DEBUG)

    plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    _console_handler = PromptToolkitHandler()
    _console_handler.setFormatter(ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain)
    _console_handler.setLevel(logging.INFO)
    root.addHandler(_console_handler)

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(new_log_filepath(), maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(plain)
    file_handler.setLevel(logging.DEBUG)
    root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)

    return root


def get_logger(logger_name: str) -> logging.Logger:
    """Return ``bouncer.<logger_name>``, configuring the shared handlers on first use."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{logger_name}")


def set_console_level(level: str | int) -> None:
    """Change the console threshold of every Bouncer logger; the log file is unaffected."""
    _configure_root()
    if _console_handler is not None:
        _console_handler.setLevel(level)


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` replacement; Ctrl+C still goes to the default hook."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.getLogger(ROOT_LOGGER_NAME).critical(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )


sys.excepthook = handle_exception
