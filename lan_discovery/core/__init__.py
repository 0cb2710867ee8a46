"""
Core components for LAN discovery functionality.
"""

from .data_models import (
    ScanState,
    ScanStatus,
    ScanRequest,
    ProbeResult,
    DeviceIdentity,
    HostResult,
    ScanProgress,
    ScanMetadata,
    ScanResult
)
from .result_cache import CacheEntry, CacheStats, ResultCache

__all__ = [
    'ScanState',
    'ScanStatus',
    'ScanRequest',
    'ProbeResult',
    'DeviceIdentity',
    'HostResult',
    'ScanProgress',
    'ScanMetadata',
    'ScanResult',
    'CacheEntry',
    'CacheStats',
    'ResultCache'
]
