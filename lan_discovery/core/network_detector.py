"""
Local network detection for the LAN discovery engine.

Finds the IPv4 interface the machine most likely uses for its LAN and turns
it into a default scan target (base IP and host range). Interfaces are read
with psutil; when none qualifies, the address the kernel would route
outbound traffic from is used instead.
"""

import ipaddress
import socket
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import psutil

from ..utils.logger import Logger, get_logger
from ..utils.network_utils import scan_range_for

# Interface names tried first, in order of preference
PREFERRED_INTERFACES = ("Wi-Fi", "Ethernet", "en0", "eth0", "wlan0")

_VIRTUAL_KEYWORDS = (
    "virtualbox", "vmware", "hyper-v", "docker", "vethernet", "veth", "br-", "virbr",
    "wi-fi direct", "teredo", "isatap", "bluetooth", "tun", "tap", "utun", "zt",
)


@dataclass(frozen=True)
class LocalNetwork:
    """
    A local IPv4 network the machine is attached to.

    Attributes:
        interface: Interface name ("auto-detected" for the socket fallback)
        address: Address of this machine on the interface
        netmask: Dotted decimal netmask
        cidr: Network in CIDR notation
        base_ip: First three octets of the address
        start_range: First host octet worth scanning
        end_range: Last host octet worth scanning
    """
    interface: str
    address: str
    netmask: str
    cidr: str
    base_ip: str
    start_range: int
    end_range: int


class NetworkDetector:
    """
    Detects the local network configuration.
    """

    def __init__(self, logger: Optional[Logger] = None,
                 interface_addresses: Callable[[], Dict[str, list]] = psutil.net_if_addrs,
                 interface_stats: Callable[[], Dict[str, object]] = psutil.net_if_stats):
        """
        Initialize the NetworkDetector.

        Args:
            logger: Logger instance
            interface_addresses: Source of per-interface addresses (psutil.net_if_addrs)
            interface_stats: Source of per-interface status (psutil.net_if_stats)
        """
        self.logger = logger or get_logger("NetworkDetector")
        self._interface_addresses = interface_addresses
        self._interface_stats = interface_stats

    def detect_local_network(self) -> Optional[LocalNetwork]:
        """
        Pick the most likely LAN network.

        Returns:
            LocalNetwork, or None when no usable IPv4 address exists
        """
        networks = self.get_all_networks()
        if networks:
            selected = max(networks, key=self._score)
            self.logger.debug(f"Selected interface {selected.interface}", address=selected.address,
                              network=selected.cidr)
            return selected

        self.logger.warning("No usable interface found with psutil, using socket fallback")
        return self._detect_via_socket()

    def get_all_networks(self) -> List[LocalNetwork]:
        """List every up, non-loopback, non-link-local IPv4 network."""
        try:
            addresses = self._interface_addresses()
            stats = self._interface_stats()
        except (OSError, RuntimeError) as e:
            self.logger.warning(f"Unable to read network interfaces: {e}")
            return []

        networks = []
        for name, entries in addresses.items():
            status = stats.get(name)
            if status is not None and not getattr(status, "isup", True):
                continue
            for entry in entries:
                if entry.family != socket.AF_INET or not entry.netmask:
                    continue
                if not self._is_usable_address(entry.address):
                    continue
                network = self._build_network(name, entry.address, entry.netmask)
                if network:
                    networks.append(network)
        return networks

    def _build_network(self, interface: str, address: str, netmask: str) -> Optional[LocalNetwork]:
        try:
            base_ip, start, end = scan_range_for(address, netmask)
            cidr = str(ipaddress.IPv4Network(f"{address}/{netmask}", strict=False))
        except ValueError as e:
            self.logger.debug(f"Skipping {interface} ({address}/{netmask}): {e}")
            return None
        return LocalNetwork(interface=interface, address=address, netmask=netmask, cidr=cidr,
                            base_ip=base_ip, start_range=start, end_range=end)

    @staticmethod
    def _is_usable_address(address: str) -> bool:
        try:
            ip = ipaddress.IPv4Address(address)
        except ValueError:
            return False
        return not (ip.is_loopback or ip.is_link_local or ip.is_multicast or ip.is_unspecified)

    @staticmethod
    def _score(network: LocalNetwork) -> Tuple[int, int]:
        name = network.interface.lower()
        score = 0
        if any(keyword in name for keyword in _VIRTUAL_KEYWORDS):
            score -= 100
        if network.interface in PREFERRED_INTERFACES:
            score += 60 - PREFERRED_INTERFACES.index(network.interface) * 5
        elif name.startswith(("eth", "en", "wl")) or "ethernet" in name or "wi-fi" in name:
            score += 30
        if ipaddress.IPv4Address(network.address).is_private:
            score += 20
        # wider networks rank first among equals
        return score, -int(network.cidr.rsplit("/", 1)[1])

    def _detect_via_socket(self) -> Optional[LocalNetwork]:
        try:
            # connect() on a UDP socket only selects the route, no packet is sent
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                address = s.getsockname()[0]
        except OSError as e:
            self.logger.error("Socket fallback failed", exception=e)
            return None

        if not self._is_usable_address(address):
            return None
        return self._build_network("auto-detected", address, "255.255.255.0")
