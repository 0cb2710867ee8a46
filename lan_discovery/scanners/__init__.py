"""
Probe providers for the LAN discovery engine.

This package contains the probe provider interface, the ping/socket and nmap
implementations, and the capability-based selection of one of them.
"""

from .base_scanner import BaseScanner
from .host_prober import HostProber, guess_os_from_ttl
from .port_scanner import PortScanner, SERVICE_NAMES, map_services
from .socket_scanner import SocketScanner
from .nmap_scanner import NMAPScanner
from .scanner_factory import select_scanner

__all__ = [
    'BaseScanner',
    'HostProber',
    'guess_os_from_ttl',
    'PortScanner',
    'SERVICE_NAMES',
    'map_services',
    'SocketScanner',
    'NMAPScanner',
    'select_scanner'
]
