"""
Configuration module for the LAN discovery engine.
Provides configuration loading and validation for scans, caches, resolution and probing.
"""

from .config_loader import (
    ConfigLoader, DiscoveryConfig, ScanConfig, CacheConfig, ResolverConfig, ProbeConfig
)

__all__ = ['ConfigLoader', 'DiscoveryConfig', 'ScanConfig', 'CacheConfig', 'ResolverConfig', 'ProbeConfig']
