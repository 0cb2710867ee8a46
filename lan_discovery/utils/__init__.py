"""
Utility functions and helper classes.
"""

from .logger import Logger, LogLevel, logger, set_log_level, get_logger
from .error_handler import (
    ErrorHandler, ToolValidator, ErrorContext, ErrorType, ErrorSeverity,
    DiscoveryError, ConfigurationError, ConcurrencyConflictError, ProbeFailure,
    ResolutionChannelFailure, CacheFailure, ToolMissingError, with_retry
)
from .network_validator import NetworkValidator, ValidationResult, validate
from .events import EventEmitter
from . import network_utils

__all__ = [
    'Logger',
    'LogLevel',
    'logger',
    'set_log_level',
    'get_logger',
    'ErrorHandler',
    'ToolValidator',
    'ErrorContext',
    'ErrorType',
    'ErrorSeverity',
    'DiscoveryError',
    'ConfigurationError',
    'ConcurrencyConflictError',
    'ProbeFailure',
    'ResolutionChannelFailure',
    'CacheFailure',
    'ToolMissingError',
    'with_retry',
    'NetworkValidator',
    'ValidationResult',
    'validate',
    'EventEmitter',
    'network_utils'
]
