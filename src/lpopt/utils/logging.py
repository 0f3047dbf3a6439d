"""
Logging helpers for lpopt.

All modules obtain their logger through :meth:`LpoLogger.get_logger` so that a
single verbosity switch (``LogLevel``) controls the whole package.  The level
can be set programmatically, through the CLI flags, or through the
``LPOPT_LOG_LEVEL`` environment variable.
"""

import logging
import os
import sys
from enum import Enum

from tqdm import tqdm


class LogLevel(Enum):
    """Verbosity levels understood by lpopt."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


class Colors:
    """ANSI colour codes used by the console formatter."""

    BLUE = "\033[34m"
    GREEN = "\033[32m"
    RED = "\033[31m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"
    MAGENTA = "\033[35m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class Symbols:
    """Unicode markers prefixed to console messages."""

    CHECK = "✓"
    CROSS = "✗"
    ROCKET = "🚀"
    GEAR = "⚙"
    INFO = "ℹ"
    WARNING = "⚠"
    SCISSORS = "✂"


_LEVEL_MAP = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


class SimpleFormatter(logging.Formatter):
    """Colour the message according to its level, no timestamps."""

    COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.CYAN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED + Colors.BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, Colors.RESET)
        return f"{color}{record.getMessage()}{Colors.RESET}"


class LpoLogger:
    """Package-wide logger registry keyed by module name."""

    _current_level: LogLevel = LogLevel.NORMAL
    _loggers: dict[str, logging.Logger] = {}

    @classmethod
    def set_level(cls, level: LogLevel) -> None:
        cls._current_level = level
        for logger in cls._loggers.values():
            cls._configure_logger(logger)

    @classmethod
    def get_level(cls) -> LogLevel:
        return cls._current_level

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if name not in cls._loggers:
            logger = logging.getLogger(name)
            cls._configure_logger(logger)
            cls._loggers[name] = logger
        return cls._loggers[name]

    @classmethod
    def _effective_level(cls) -> LogLevel:
        env_level = os.getenv("LPOPT_EFFECTIVE_LOG_LEVEL")
        if env_level and env_level.upper() in LogLevel.__members__:
            return LogLevel[env_level.upper()]
        return cls._current_level

    @classmethod
    def _configure_logger(cls, logger: logging.Logger) -> None:
        logger.setLevel(_LEVEL_MAP[cls._effective_level()])
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(SimpleFormatter())
            logger.addHandler(handler)
        logger.propagate = False

    # Message helpers --------------------------------------------------------

    @classmethod
    def progress(cls, message: str, symbol: str = Symbols.GEAR) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("lpopt").info(f"{symbol} {message}")

    @classmethod
    def success(cls, message: str, symbol: str = Symbols.CHECK) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("lpopt").info(
                f"{Colors.GREEN}{symbol} {message}{Colors.RESET}"
            )

    @classmethod
    def detail(cls, message: str, prefix: str = "  ") -> None:
        if cls._current_level.value >= LogLevel.VERBOSE.value:
            cls.get_logger("lpopt").info(f"{prefix}{message}")

    @classmethod
    def debug(cls, message: str, logger_name: str = "lpopt") -> None:
        if cls._current_level.value >= LogLevel.DEBUG.value:
            cls.get_logger(logger_name).debug(message)

    @classmethod
    def warning(cls, message: str, symbol: str = Symbols.WARNING) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("lpopt").warning(f"{symbol} {message}")

    @classmethod
    def error(cls, message: str, symbol: str = Symbols.CROSS) -> None:
        # Errors are shown at every level, QUIET included.
        cls.get_logger("lpopt").error(f"{symbol} {message}")

    @classmethod
    def info(cls, message: str, symbol: str = Symbols.INFO) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("lpopt").info(f"{symbol} {message}")


class ProgressTracker:
    """tqdm progress bar over a fixed list of pipeline steps."""

    def __init__(self, steps: list[str]):
        self.steps = steps
        self.current = 0
        self.pbar = None
        if LpoLogger.get_level().value >= LogLevel.NORMAL.value:
            self.pbar = tqdm(
                total=len(steps),
                desc=f"{Colors.BLUE}{Symbols.ROCKET} Pipeline{Colors.RESET}",
                bar_format="{desc}: {percentage:3.0f}%|{bar:30}| {n_fmt}/{total_fmt}",
            )

    def advance(self, message: str | None = None, status: str = "success") -> None:
        if self.pbar is None:
            return
        if message:
            symbol = Symbols.CHECK if status == "success" else Symbols.CROSS
            color = Colors.GREEN if status == "success" else Colors.RED
            self.pbar.write(f"{color}{symbol} {message}{Colors.RESET}")
        self.pbar.update(1)
        self.current += 1

    def close(self) -> None:
        if self.pbar is None:
            return
        self.pbar.write(f"{Colors.GREEN}{Symbols.CHECK} Pipeline finished{Colors.RESET}")
        self.pbar.close()


def suppress_third_party_logs() -> None:
    """Keep chatty dependencies at WARNING."""
    for name in ("pulp", "urllib3", "matplotlib", "numba", "gurobipy"):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(level: LogLevel | None = None) -> None:
    """Configure lpopt logging.

    If *level* is None the ``LPOPT_LOG_LEVEL`` environment variable is used,
    falling back to NORMAL.  The effective level is exported as
    ``LPOPT_EFFECTIVE_LOG_LEVEL`` so subprocesses inherit it.
    """
    if level is None:
        env_level = os.getenv("LPOPT_LOG_LEVEL", "normal").upper()
        level = LogLevel.__members__.get(env_level, LogLevel.NORMAL)

    os.environ["LPOPT_EFFECTIVE_LOG_LEVEL"] = level.name
    LpoLogger.set_level(level)
    suppress_third_party_logs()


def log_progress(message: str) -> None:
    LpoLogger.progress(message, Symbols.GEAR)


def log_success(message: str) -> None:
    LpoLogger.success(message, Symbols.CHECK)


def log_detail(message: str) -> None:
    LpoLogger.detail(message, "  ")


def log_warning(message: str) -> None:
    LpoLogger.warning(message, Symbols.WARNING)


def log_error(message: str) -> None:
    LpoLogger.error(message, Symbols.CROSS)


def log_debug(message: str, logger_name: str = "lpopt") -> None:
    LpoLogger.debug(message, logger_name)


def log_info(message: str) -> None:
    LpoLogger.info(message, Symbols.INFO)
