"""
System Update - Logging Setup
Tagged, coloured console output mirrored uncoloured into the per-run log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from colorama import Fore, Style, init as colorama_init

logger = logging.getLogger(__name__)

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

HEADER_RULE = "=" * 32

_colorama_ready = False

_LEVEL_COLORS = {
    logging.DEBUG: Fore.WHITE,
    logging.INFO: Fore.CYAN,
    SUCCESS: Fore.GREEN,
    logging.WARNING: Fore.YELLOW + Style.BRIGHT,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class TaggedFormatter(logging.Formatter):
    """
    Formats records as "[LEVEL] message".

    Records logged with extra={"raw": True} (command output) are written
    as-is; extra={"header": True} marks banner lines, which carry no tag.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if getattr(record, "raw", False):
            return message
        if getattr(record, "header", False):
            return self.colorize_header(message)
        text = f"{self.colorize_tag(record.levelno, f'[{record.levelname}]')} {message}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def colorize_tag(self, levelno: int, tag: str) -> str:
        return tag

    def colorize_header(self, message: str) -> str:
        return message


class ColorFormatter(TaggedFormatter):
    """TaggedFormatter with colorama colours, for the terminal."""

    def colorize_tag(self, levelno: int, tag: str) -> str:
        color = _LEVEL_COLORS.get(levelno, "")
        return f"{color}{tag}{Style.RESET_ALL}"

    def colorize_header(self, message: str) -> str:
        return f"{Fore.BLUE}{message}{Style.RESET_ALL}"


def _install(root_logger: logging.Logger, handler: logging.Handler) -> None:
    handler.system_update = True
    root_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove and close the handlers installed by setup_logging."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "system_update", False):
            root_logger.removeHandler(handler)
            handler.close()


def setup_logging(log_file: Optional[Path] = None, level: int = logging.INFO) -> Optional[Path]:
    """
    Configure the root logger with a stdout console handler and a log file handler.

    Args:
        log_file: Per-run log file; opened in append mode.
        level: Root logger level.

    Returns:
        The log file path actually in use, or None if it could not be opened.
    """
    global _colorama_ready
    if not _colorama_ready:
        colorama_init()
        _colorama_ready = True
    reset_logging()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorFormatter())
    _install(root_logger, console_handler)

    if log_file is None:
        return None

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    except OSError as e:
        logger.warning(f"Cannot write log file {log_file}: {e}")
        logger.warning("Continuing with terminal output only")
        return None

    file_handler.setFormatter(TaggedFormatter())
    _install(root_logger, file_handler)
    return log_file


def log_success(log: logging.Logger, message: str) -> None:
    log.log(SUCCESS, message)


def log_header(log: logging.Logger, title: str) -> None:
    """Write a banner section header."""
    for line in (HEADER_RULE, title, HEADER_RULE):
        log.info(line, extra={"header": True})


def log_blank(log: logging.Logger) -> None:
    log.info("", extra={"raw": True})
