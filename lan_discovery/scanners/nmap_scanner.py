"""
Probe provider backed by nmap through the python-nmap bindings.

Liveness uses a ping scan (``-sn``) and ports a TCP connect scan (``-sT``),
neither of which needs root privileges. python-nmap stores the last result
on the PortScanner object, so every call builds its own instance.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import nmap

from ..core.data_models import ProbeResult
from ..utils.error_handler import ToolValidator
from ..utils.logger import Logger, get_logger
from .base_scanner import BaseScanner


class NMAPScanner(BaseScanner):
    """
    NMAP-based probe provider.

    nmap does not report the TTL of its ping replies through python-nmap, so
    hosts probed by this provider get no TTL-based OS guess.
    """

    name = "nmap"

    def __init__(self, logger: Optional[Logger] = None, tool_validator: Optional[ToolValidator] = None,
                 scanner_factory: Callable[[], Any] = nmap.PortScanner):
        """
        Initialize the NMAP scanner.

        Args:
            logger: Logger instance for outputting scan diagnostics
            tool_validator: Used to check that the nmap binary is installed
            scanner_factory: Builds a python-nmap PortScanner, replaceable in tests
        """
        super().__init__(logger or get_logger("NMAPScanner"))
        self.tool_validator = tool_validator or ToolValidator()
        self._scanner_factory = scanner_factory

    def is_available(self) -> bool:
        return self.tool_validator.is_available("nmap")

    def probe(self, ip: str, timeout_ms: int) -> ProbeResult:
        arguments = f"-sn -n --max-retries 1 --host-timeout {max(timeout_ms, 100)}ms"
        started = time.monotonic()
        host_data = self._run_scan(ip, arguments)
        elapsed_ms = round((time.monotonic() - started) * 1000, 2)

        if host_data.get("status", {}).get("state") != "up":
            return ProbeResult.dead()
        return ProbeResult(alive=True, latency_ms=elapsed_ms)

    def scan_ports(self, ip: str, ports: Sequence[int], timeout_ms: int) -> List[int]:
        unique_ports = sorted(set(ports or ()))
        if not unique_ports:
            return []

        port_list = ",".join(str(port) for port in unique_ports)
        arguments = (
            f"-sT -Pn -n --max-retries 1 "
            f"--max-rtt-timeout {max(timeout_ms // 2, 50)}ms "
            f"--host-timeout {max(timeout_ms * 2, 1000)}ms"
        )
        host_data = self._run_scan(ip, arguments, ports=port_list)

        open_ports = [
            int(port) for port, info in host_data.get("tcp", {}).items()
            if info.get("state") == "open" and int(port) in unique_ports
        ]
        return sorted(open_ports)

    def _run_scan(self, ip: str, arguments: str, ports: Optional[str] = None) -> Dict[str, Any]:
        """
        Run one nmap scan and return the host's section of the result.

        Any nmap failure is logged and reported as an empty section, which
        callers read as a dead host or no open ports.
        """
        try:
            scanner = self._scanner_factory()
            scan_result = scanner.scan(hosts=ip, ports=ports, arguments=arguments)
        except nmap.PortScannerError as e:
            self._log_warning(f"nmap scan failed for {ip}: {e}")
            return {}
        except Exception as e:
            self._log_debug(f"nmap scan error for {ip}: {type(e).__name__}: {e}")
            return {}

        return (scan_result or {}).get("scan", {}).get(ip, {})
