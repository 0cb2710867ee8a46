"""
Concurrent TCP connect port scanning.

A port is open when a TCP connection can be established to it; the
connection is closed immediately without sending any payload.
"""

import socket
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Sequence

from ..utils.logger import Logger, get_logger

SERVICE_NAMES: Dict[int, str] = {
    20: "FTP-Data",
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    67: "DHCP",
    68: "DHCP",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    445: "SMB",
    993: "IMAPS",
    995: "POP3S",
    1433: "MSSQL",
    3306: "MySQL",
    3389: "RDP",
    5432: "PostgreSQL",
    5984: "CouchDB",
    8080: "HTTP-Alt",
    8443: "HTTPS-Alt",
    27017: "MongoDB",
}

UNKNOWN_SERVICE = "Unknown"


def map_services(ports: Iterable[int]) -> Dict[int, str]:
    """
    Label open ports with well-known service names.

    Args:
        ports: Open ports

    Returns:
        Mapping of port to service name; unmapped ports are "Unknown"
    """
    return {port: SERVICE_NAMES.get(port, UNKNOWN_SERVICE) for port in ports}


class PortScanner:
    """
    TCP connect scanner probing the ports of one host concurrently.
    """

    def __init__(self, max_workers: int = 32, logger: Optional[Logger] = None):
        """
        Initialize the PortScanner.

        Args:
            max_workers: Upper bound of simultaneous connection attempts per host
            logger: Logger instance for scan diagnostics
        """
        self.max_workers = max(1, max_workers)
        self.logger = logger or get_logger("PortScanner")

    def scan_ports(self, ip: str, ports: Sequence[int], timeout_ms: int) -> List[int]:
        """
        Try one TCP connection per port.

        Each attempt is capped at half of ``timeout_ms``. Refused, filtered,
        timed out and otherwise failing ports are simply left out.

        Args:
            ip: Address to scan
            ports: Ports to try
            timeout_ms: Host budget in milliseconds

        Returns:
            Open ports in ascending order; never raises
        """
        unique_ports = sorted(set(ports or ()))
        if not unique_ports:
            return []

        connect_timeout = max(timeout_ms / 2, 1) / 1000
        open_ports = []

        try:
            with ThreadPoolExecutor(max_workers=min(len(unique_ports), self.max_workers),
                                    thread_name_prefix="port-scan") as executor:
                future_to_port = {
                    executor.submit(self._check_port, ip, port, connect_timeout): port
                    for port in unique_ports
                }
                for future in as_completed(future_to_port):
                    port = future_to_port[future]
                    try:
                        if future.result():
                            open_ports.append(port)
                    except Exception as e:
                        self.logger.debug(f"Port check failed for {ip}:{port}: {e}")
        except RuntimeError as e:
            # raised by the executor when the interpreter is shutting down
            self.logger.debug(f"Port scan aborted for {ip}: {e}")

        open_ports.sort()
        if open_ports:
            self.logger.debug(f"Open ports on {ip}: {open_ports}")
        return open_ports

    @staticmethod
    def _check_port(ip: str, port: int, timeout: float) -> bool:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                return sock.connect_ex((ip, port)) == 0
        except (OSError, OverflowError):
            return False
