"""
Base scanner interface for the LAN discovery engine.

A scanner is the probe provider the orchestrator drives: it answers whether
a host is alive, which TCP ports are open on it and which operating system
it likely runs. Concrete providers (plain sockets and ping, or nmap) are
interchangeable; the orchestrator only ever sees this interface.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.data_models import ProbeResult
from .host_prober import guess_os_from_ttl


class BaseScanner(ABC):
    """
    Abstract base class for all probe providers.

    Implementations must never raise from ``probe`` or ``scan_ports`` for
    network-level failures: an unreachable host is a dead ProbeResult and a
    port that cannot be reached is simply not open.
    """

    name = "base"

    def __init__(self, logger=None):
        """
        Initialize the base scanner.

        Args:
            logger: Logger instance for outputting probe diagnostics
        """
        self.logger = logger

    @abstractmethod
    def probe(self, ip: str, timeout_ms: int) -> ProbeResult:
        """
        Check whether a host answers within the timeout.

        Args:
            ip: Address to probe
            timeout_ms: Probe budget in milliseconds

        Returns:
            ProbeResult; ``alive`` is False on timeout or any failure
        """
        pass

    @abstractmethod
    def scan_ports(self, ip: str, ports: Sequence[int], timeout_ms: int) -> List[int]:
        """
        Find which of the given TCP ports accept connections.

        Args:
            ip: Address to scan
            ports: Ports to try
            timeout_ms: Host budget in milliseconds

        Returns:
            Open ports in ascending order, possibly empty
        """
        pass

    def guess_os(self, probe_result: ProbeResult) -> Optional[str]:
        """Guess the operating system of a live host from its reply TTL."""
        return guess_os_from_ttl(probe_result.ttl)

    def is_available(self) -> bool:
        """Whether the provider's external dependencies are present."""
        return True

    def _log_warning(self, message: str) -> None:
        """Log a warning message if logger is available."""
        if self.logger:
            self.logger.warning(message)

    def _log_debug(self, message: str) -> None:
        """Log a debug message if logger is available."""
        if self.logger:
            self.logger.debug(message)
