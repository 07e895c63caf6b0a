"""Console logging formatter for cluster utilities."""

import logging
import re
from datetime import datetime
from pathlib import Path

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

COMPONENT_COLORS = {
    "gpcluster.services.dispatcher": COLORS["bright_cyan"],
    "gpcluster.dispatch": COLORS["bright_cyan"],
    "gpcluster.services.pool": COLORS["bright_magenta"],
    "gpcluster.services": COLORS["bright_blue"],
    "gpcluster.config": COLORS["green"],
    "default": COLORS["white"],
}

# Timestamp layout used by the database's admin utilities
TIMESTAMP_FORMAT = "%Y%m%d:%H:%M:%S"

LOG_FILE_DATE_FORMAT = "%Y%m%d"

_SSH_TARGET = re.compile(r"(\w+@[\w.\-]+:\d+)")
_POOL_SIZE = re.compile(r"(pool_size=\d+(?:/\d+)?)")
_DURATION = re.compile(r"(\d+\.?\d*m?s)\b")


class ColorfulFormatter(logging.Formatter):
    """Formatter producing ``timestamp | LEVEL | component | message`` lines."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        return datetime.fromtimestamp(record.created).strftime(TIMESTAMP_FORMAT)

    def _format_level(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = LEVEL_COLORS.get(level, COLORS["white"])
        return self._colorize(f"{level:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith("gpcluster."):
            name = name[len("gpcluster."):]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<20}", color)

    def _highlight_message(self, message: str) -> str:
        """Highlight SSH targets, pool sizes and durations."""
        if not self.use_colors:
            return message
        message = _SSH_TARGET.sub(
            f"{COLORS['bright_magenta']}\\1{COLORS['reset']}", message
        )
        message = _POOL_SIZE.sub(f"{COLORS['cyan']}\\1{COLORS['reset']}", message)
        return _DURATION.sub(f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        sep = self._colorize("|", COLORS["dim"])
        message = self._highlight_message(record.getMessage())
        line = (
            f"{timestamp} {sep} {self._format_level(record)} {sep} "
            f"{self._format_component(record)} {sep} {message}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def log_file_path(
    log_dir: str | Path, program: str = "gpcluster", now: datetime | None = None
) -> Path:
    """Daily log file for a program, e.g. ``~/gpAdminLogs/gpcluster_20240131.log``."""
    day = (now or datetime.now()).strftime(LOG_FILE_DATE_FORMAT)
    return Path(log_dir).expanduser() / f"{program}_{day}.log"
