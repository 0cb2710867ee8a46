"""
Probe provider built on the system ping command and plain TCP sockets.
"""

from typing import List, Optional, Sequence

from ..core.data_models import ProbeResult
from ..utils.logger import Logger, get_logger
from .base_scanner import BaseScanner
from .host_prober import HostProber
from .port_scanner import PortScanner


class SocketScanner(BaseScanner):
    """
    Default probe provider: ping for liveness and TTL, connect() for ports.
    """

    name = "socket"

    def __init__(self, logger: Optional[Logger] = None, host_prober: Optional[HostProber] = None,
                 port_scanner: Optional[PortScanner] = None, port_workers: int = 32):
        super().__init__(logger or get_logger("SocketScanner"))
        self.host_prober = host_prober or HostProber(logger=self.logger)
        self.port_scanner = port_scanner or PortScanner(max_workers=port_workers, logger=self.logger)

    def probe(self, ip: str, timeout_ms: int) -> ProbeResult:
        return self.host_prober.probe(ip, timeout_ms)

    def scan_ports(self, ip: str, ports: Sequence[int], timeout_ms: int) -> List[int]:
        return self.port_scanner.scan_ports(ip, ports, timeout_ms)
