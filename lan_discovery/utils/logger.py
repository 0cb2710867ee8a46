"""
Logging system with colored output for LAN discovery operations.

This module provides a Logger class that supports colored console output
using colorama, different log levels with distinct colors, and progress
indicators for long-running scans. Loggers are shared per name so that a
single call to set_log_level() reaches the scanners, the resolver and the
orchestrator alike.
"""

import sys
import threading
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Sequence
from colorama import Fore, Style, init

# Initialize colorama for cross-platform colored output
init(autoreset=True)

# Worker threads log concurrently; one line must never interleave with another.
_output_lock = threading.Lock()


class LogLevel(Enum):
    """Enumeration for different log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}


class Logger:
    """
    Logger class with colored console output and progress indicators.

    Provides structured logging with different levels, colors, and formatting
    utilities for scan progress and discovered-host tables.
    """

    # Color mapping for different log levels
    LEVEL_COLORS = {
        LogLevel.DEBUG: Fore.CYAN,
        LogLevel.INFO: Fore.GREEN,
        LogLevel.WARNING: Fore.YELLOW,
        LogLevel.ERROR: Fore.RED,
    }

    # Symbol mapping for different log levels
    LEVEL_SYMBOLS = {
        LogLevel.DEBUG: "🔍",
        LogLevel.INFO: "ℹ️",
        LogLevel.WARNING: "⚠️",
        LogLevel.ERROR: "❌",
    }

    def __init__(self, name: str = "LanDiscovery", min_level: LogLevel = LogLevel.INFO):
        """
        Initialize the Logger.

        Args:
            name: Name of the logger (default: "LanDiscovery")
            min_level: Minimum log level to display (default: INFO)
        """
        self.name = name
        self.min_level = min_level
        self._progress_active = False

    def _should_log(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.min_level]

    def _format_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _emit(self, line: str, error: bool = False) -> None:
        with _output_lock:
            print(line, file=sys.stderr if error else sys.stdout, flush=True)

    @staticmethod
    def _format_details(details: Dict[str, object]) -> str:
        if not details:
            return ""
        joined = " | ".join(f"{k}={v}" for k, v in details.items())
        return f" {Style.DIM}({joined}){Style.RESET_ALL}"

    def _log(self, level: LogLevel, message: str, **kwargs) -> None:
        """
        Internal logging method that handles formatting and output.

        Args:
            level: Log level
            message: Message to log
            **kwargs: Additional context rendered as key=value pairs
        """
        if not self._should_log(level):
            return

        color = self.LEVEL_COLORS[level]
        symbol = self.LEVEL_SYMBOLS[level]
        formatted_message = (
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{color}{symbol} {level.value:<7}{Style.RESET_ALL} "
            f"{Style.DIM}{self.name}:{Style.RESET_ALL} {message}"
            f"{self._format_details(kwargs)}"
        )
        self._emit(formatted_message, error=level == LogLevel.ERROR)

    def debug(self, message: str, **kwargs) -> None:
        """Log a debug message."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log a warning message."""
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs) -> None:
        """
        Log an error message.

        Args:
            message: Error message
            exception: Optional exception object for additional context
            **kwargs: Additional context information
        """
        if exception:
            kwargs["exception"] = f"{type(exception).__name__}: {exception}"
        self._log(LogLevel.ERROR, message, **kwargs)

    def success(self, message: str, **kwargs) -> None:
        """
        Log a success message (formatted as INFO with special styling).

        Args:
            message: Success message
            **kwargs: Additional context information
        """
        if not self._should_log(LogLevel.INFO):
            return

        formatted_message = (
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{Fore.GREEN}✅ SUCCESS {Style.RESET_ALL} "
            f"{Style.BRIGHT}{message}{Style.RESET_ALL}"
            f"{self._format_details(kwargs)}"
        )
        self._emit(formatted_message)

    def section(self, title: str) -> None:
        """
        Log a section header for organizing output.

        Args:
            title: Section title
        """
        if not self._should_log(LogLevel.INFO):
            return

        separator = "=" * 60
        self._emit(
            f"\n{Fore.BLUE}{Style.BRIGHT}{separator}\n"
            f"  {title.upper()}\n"
            f"{separator}{Style.RESET_ALL}\n"
        )

    def progress_start(self, message: str) -> None:
        """
        Start a progress indicator for a long-running scan.

        Args:
            message: Progress message to display
        """
        self._progress_active = True
        self._progress_line(message)

    def progress_update(self, message: str, percentage: Optional[float] = None) -> None:
        """
        Update the current progress indicator.

        Args:
            message: Updated progress message
            percentage: Optional completion percentage shown before the message
        """
        if not self._progress_active:
            return
        if percentage is not None:
            message = f"{percentage:5.1f}% {message}"
        self._progress_line(message)

    def progress_end(self, final_message: Optional[str] = None) -> None:
        """
        End the current progress indicator.

        Args:
            final_message: Optional final message to display
        """
        if not self._progress_active:
            return

        self._progress_active = False
        if final_message:
            self.success(final_message)

    def _progress_line(self, message: str) -> None:
        if not self._should_log(LogLevel.INFO):
            return
        self._emit(
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{Fore.BLUE}⏳ PROGRESS{Style.RESET_ALL} {message}"
        )

    def table_header(self, headers: Sequence[str], widths: Sequence[int]) -> None:
        """
        Print a formatted table header.

        Args:
            headers: List of header names
            widths: List of column widths
        """
        if not self._should_log(LogLevel.INFO):
            return

        header_row = " | ".join(f"{header:<{width}}" for header, width in zip(headers, widths))
        separator = "-+-".join("-" * width for width in widths)
        self._emit(f"{Style.BRIGHT}{header_row}{Style.RESET_ALL}\n{Style.DIM}{separator}{Style.RESET_ALL}")

    def table_row(self, values: Sequence[object], widths: Sequence[int], highlight: bool = False) -> None:
        """
        Print a formatted table row.

        Args:
            values: List of values to display; long values are truncated to the column
            widths: List of column widths
            highlight: Whether to highlight this row
        """
        if not self._should_log(LogLevel.INFO):
            return

        cells = []
        for value, width in zip(values, widths):
            text = "-" if value is None else str(value)
            if len(text) > width:
                text = text[: max(width - 1, 0)] + "…"
            cells.append(f"{text:<{width}}")
        row = " | ".join(cells)
        self._emit(f"{Style.BRIGHT}{row}{Style.RESET_ALL}" if highlight else row)

    def scan_target(self, base_ip: str, start: int, end: int, ports: Sequence[int], provider: str) -> None:
        """
        Display the scan target in a formatted block.

        Args:
            base_ip: First three octets of the scanned range
            start: First host octet
            end: Last host octet
            ports: Ports probed on every live host
            provider: Name of the probe provider in use
        """
        if not self._should_log(LogLevel.INFO):
            return

        port_list = ", ".join(str(p) for p in ports)
        self._emit(
            f"\n{Fore.CYAN}{Style.BRIGHT}🌐 SCAN TARGET{Style.RESET_ALL}\n"
            f"  Range:    {Style.BRIGHT}{base_ip}.{start} - {base_ip}.{end}{Style.RESET_ALL}"
            f" ({end - start + 1} hosts)\n"
            f"  Ports:    {Style.BRIGHT}{port_list}{Style.RESET_ALL}\n"
            f"  Provider: {Style.BRIGHT}{provider}{Style.RESET_ALL}\n"
        )


_loggers: Dict[str, Logger] = {}
_loggers_lock = threading.Lock()
_global_level = LogLevel.INFO


def get_logger(name: str = "LanDiscovery") -> Logger:
    """
    Get the shared logger instance for a name, creating it on first use.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    with _loggers_lock:
        instance = _loggers.get(name)
        if instance is None:
            instance = Logger(name, _global_level)
            _loggers[name] = instance
        return instance


def set_log_level(level: LogLevel) -> None:
    """
    Set the log level for every logger, present and future.

    Args:
        level: Minimum log level to display
    """
    global _global_level
    with _loggers_lock:
        _global_level = level
        for instance in _loggers.values():
            instance.min_level = level


# Global logger instance
logger = get_logger()
