"""
Error handling and tool validation for the LAN discovery engine.

This module provides the exception hierarchy raised by the engine, a
centralized ErrorHandler that counts and logs failures with troubleshooting
suggestions, PATH-based detection of the external tools the probe and lookup
strategies depend on, and a retry decorator with linear backoff.
"""

import functools
import shutil
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .logger import Logger, get_logger


class ErrorType(Enum):
    """Enumeration for different types of errors."""
    CONFIGURATION_ERROR = "configuration_error"
    CONCURRENCY_ERROR = "concurrency_error"
    PROBE_ERROR = "probe_error"
    RESOLUTION_ERROR = "resolution_error"
    CACHE_ERROR = "cache_error"
    TOOL_MISSING_ERROR = "tool_missing_error"
    LISTENER_ERROR = "listener_error"


class ErrorSeverity(Enum):
    """Enumeration for error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """
    Context information for error handling.

    Attributes:
        error_type: Type of error that occurred
        severity: Severity level of the error
        operation: Operation that was being performed when error occurred
        component: Component/module where error occurred
        additional_info: Additional context information (ip, channel, tool_name...)
    """
    error_type: ErrorType
    severity: ErrorSeverity
    operation: str
    component: str
    additional_info: Dict[str, Any] = field(default_factory=dict)


class DiscoveryError(Exception):
    """Base exception class for the LAN discovery engine."""

    def __init__(self, message: str, error_context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.error_context = error_context


class ConfigurationError(DiscoveryError):
    """Raised when a scan request fails validation. Fatal for the scan."""

    def __init__(self, message: str, errors: Optional[List[str]] = None,
                 error_context: Optional[ErrorContext] = None):
        super().__init__(message, error_context)
        self.errors = list(errors or [])


class ConcurrencyConflictError(DiscoveryError):
    """Raised when a scan is requested while another one is in flight."""
    pass


class ProbeFailure(DiscoveryError):
    """A liveness probe or port scan failed for one host."""
    pass


class ResolutionChannelFailure(DiscoveryError):
    """One identity evidence channel failed or timed out."""
    pass


class CacheFailure(DiscoveryError):
    """The result cache could not be read or written."""
    pass


class ToolMissingError(DiscoveryError):
    """An external tool required by a provider is not installed."""
    pass


# Error types the engine recovers from locally; everything else aborts the operation.
RECOVERABLE_ERRORS = {
    ErrorType.PROBE_ERROR,
    ErrorType.RESOLUTION_ERROR,
    ErrorType.CACHE_ERROR,
    ErrorType.LISTENER_ERROR,
}


class ErrorHandler:
    """
    Centralized error handling.

    Counts failures per type, logs them at a level derived from their
    severity and prints troubleshooting suggestions for the failures a user
    has to fix by hand (bad configuration, missing tools).
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initialize the ErrorHandler.

        Args:
            logger: Logger instance for error reporting
        """
        self.logger = logger or get_logger("ErrorHandler")
        self.error_statistics: Dict[ErrorType, int] = {error_type: 0 for error_type in ErrorType}
        self._lock = threading.Lock()

    def handle_error(self, error: Exception, context: ErrorContext) -> bool:
        """
        Handle an error based on its type and context.

        Args:
            error: The exception that occurred
            context: Error context information

        Returns:
            bool: True if the engine recovers and carries on, False if the
            failure is fatal for the current operation
        """
        with self._lock:
            self.error_statistics[context.error_type] += 1

        self._log_error(error, context)

        if context.error_type == ErrorType.CONFIGURATION_ERROR:
            self._suggest_configuration_fixes(error)
        elif context.error_type == ErrorType.TOOL_MISSING_ERROR:
            self._suggest_tool_installation(context.additional_info.get("tool_name", "unknown"))
        elif context.error_type == ErrorType.CONCURRENCY_ERROR:
            self.logger.info("  • Wait for the running scan to finish or cancel it first")

        return context.error_type in RECOVERABLE_ERRORS

    def get_error_summary(self) -> Dict[str, int]:
        """
        Get the number of handled errors per type, omitting types never seen.

        Returns:
            Mapping of error type value to count
        """
        with self._lock:
            return {error_type.value: count
                    for error_type, count in self.error_statistics.items() if count}

    def _log_error(self, error: Exception, context: ErrorContext) -> None:
        error_msg = f"Error in {context.component}.{context.operation}: {error}"
        details = {k: v for k, v in context.additional_info.items() if v is not None}

        if context.severity == ErrorSeverity.CRITICAL:
            self.logger.error(error_msg, exception=error, **details)
        elif context.severity == ErrorSeverity.HIGH:
            self.logger.error(error_msg, **details)
        elif context.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(error_msg, **details)
        else:
            self.logger.debug(error_msg, **details)

    def _suggest_configuration_fixes(self, error: Exception) -> None:
        """Provide configuration error solutions."""
        for problem in getattr(error, "errors", []):
            self.logger.info(f"  • {problem}")
        self.logger.info("Configuration error solutions:")
        self.logger.info("  • Base IP must be three dotted octets, e.g. 192.168.1")
        self.logger.info("  • Host range must satisfy 1 <= start <= end <= 254")
        self.logger.info("  • Ports must be integers between 1 and 65535")
        self.logger.info("  • Check YAML syntax and indentation of discovery_config.yml")

    def _suggest_tool_installation(self, tool_name: str) -> None:
        """Provide tool installation suggestions."""
        suggestions = {
            "nmap": [
                "Ubuntu/Debian: sudo apt-get install nmap",
                "CentOS/RHEL: sudo yum install nmap",
                "macOS: brew install nmap",
                "Windows: Download from https://nmap.org/download.html",
            ],
            "ping": [
                "Ubuntu/Debian: sudo apt-get install iputils-ping",
                "CentOS/RHEL: sudo yum install iputils",
            ],
            "arp": [
                "Ubuntu/Debian: sudo apt-get install net-tools",
                "CentOS/RHEL: sudo yum install net-tools",
            ],
            "nmblookup": [
                "Ubuntu/Debian: sudo apt-get install samba-common-bin",
                "macOS: brew install samba",
            ],
            "avahi-resolve-address": [
                "Ubuntu/Debian: sudo apt-get install avahi-utils",
            ],
        }

        if tool_name in suggestions:
            self.logger.info(f"Installation suggestions for {tool_name}:")
            for suggestion in suggestions[tool_name]:
                self.logger.info(f"  • {suggestion}")
        else:
            self.logger.info(f"Please install {tool_name} using your system's package manager")


class ToolValidator:
    """
    Detects which external tools are installed.

    Lookups are memoized: providers and lookup strategies are chosen once at
    startup, so the answer for a tool never changes during a process.
    """

    def __init__(self, error_handler: Optional[ErrorHandler] = None,
                 which: Callable[[str], Optional[str]] = shutil.which):
        """
        Initialize the ToolValidator.

        Args:
            error_handler: ErrorHandler used to report missing tools
            which: PATH lookup function, replaceable in tests
        """
        self.error_handler = error_handler or ErrorHandler()
        self.logger = self.error_handler.logger
        self._which = which
        self._paths: Dict[str, Optional[str]] = {}

    def find(self, tool_name: str) -> Optional[str]:
        """Return the absolute path of a tool, or None when it is not on PATH."""
        if tool_name not in self._paths:
            path = self._which(tool_name)
            self._paths[tool_name] = path
            if path:
                self.logger.debug(f"Found {tool_name} at: {path}")
        return self._paths[tool_name]

    def is_available(self, tool_name: str) -> bool:
        return self.find(tool_name) is not None

    def validate_tools(self, tool_names: Iterable[str], report_missing: bool = True) -> Tuple[bool, List[str]]:
        """
        Validate a group of external tools.

        Args:
            tool_names: Tools to check
            report_missing: Whether to report each missing tool through the error handler

        Returns:
            Tuple of (all_available, missing_tools)
        """
        missing_tools = [name for name in tool_names if not self.is_available(name)]

        if report_missing:
            for tool_name in missing_tools:
                context = ErrorContext(
                    error_type=ErrorType.TOOL_MISSING_ERROR,
                    severity=ErrorSeverity.MEDIUM,
                    operation="tool_availability_check",
                    component="ToolValidator",
                    additional_info={"tool_name": tool_name},
                )
                self.error_handler.handle_error(
                    ToolMissingError(f"Tool {tool_name} not found in PATH"), context
                )

        return not missing_tools, missing_tools


def with_retry(max_retries: int = 1, delay: float = 0.3, error_types: Tuple = (Exception,)):
    """
    Decorator for adding retry logic with linear backoff to functions.

    The n-th retry waits ``delay * n`` seconds.

    Args:
        max_retries: Maximum number of retry attempts
        delay: Base delay in seconds between attempts
        error_types: Tuple of exception types to catch and retry

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except error_types as e:
                    if attempt == max_retries:
                        raise
                    get_logger("Retry").debug(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_retries + 1}), retrying",
                        error=f"{type(e).__name__}: {e}",
                    )
                    time.sleep(delay * (attempt + 1))
            return None

        return wrapper
    return decorator
