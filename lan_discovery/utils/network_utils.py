"""
Network utility functions for address and hardware-address handling.

This module provides helper functions for IPv4 checks, the /24 arithmetic
the scanner works in (base IP plus host octet), and MAC address parsing.
"""

import ipaddress
import re
from typing import Optional, Tuple

_MAC_PATTERN = re.compile(r"(?<![0-9A-Fa-f])((?:[0-9A-Fa-f]{1,2}[:-]){5}[0-9A-Fa-f]{1,2})(?![0-9A-Fa-f])")

# Entries the neighbor table reports for hosts that never answered ARP
_PLACEHOLDER_MACS = {"00:00:00:00:00:00", "FF:FF:FF:FF:FF:FF"}


def is_valid_ip(ip_address: str) -> bool:
    """
    Check if a string represents a valid IPv4 address.

    Args:
        ip_address: String to validate as IPv4 address

    Returns:
        bool: True if valid IPv4 address, False otherwise
    """
    try:
        ipaddress.IPv4Address(ip_address)
        return True
    except (ipaddress.AddressValueError, ValueError):
        return False


def split_ip(ip_address: str) -> Tuple[str, int]:
    """
    Split an IPv4 address into its base (first three octets) and host octet.

    Args:
        ip_address: Dotted IPv4 address, e.g. "192.168.1.20"

    Returns:
        Tuple of (base_ip, host_octet), e.g. ("192.168.1", 20)

    Raises:
        ValueError: If the address is not a valid IPv4 address
    """
    if not is_valid_ip(ip_address):
        raise ValueError(f"Invalid IPv4 address: {ip_address}")
    base_ip, _, host = ip_address.rpartition(".")
    return base_ip, int(host)


def last_octet(ip_address: str) -> Optional[int]:
    """Host octet of an IPv4 address, or None when the address is invalid."""
    try:
        return split_ip(ip_address)[1]
    except ValueError:
        return None


def scan_range_for(ip_address: str, netmask: str) -> Tuple[str, int, int]:
    """
    Compute the scannable host range of the /24 slice containing an address.

    Networks wider than /24 are clamped to the /24 holding the address;
    narrower networks keep their own bounds.

    Args:
        ip_address: Address of the local interface
        netmask: Netmask of the local interface

    Returns:
        Tuple of (base_ip, start, end) with 1 <= start <= end <= 254
    """
    base_ip, _ = split_ip(ip_address)
    network = ipaddress.IPv4Network(f"{ip_address}/{netmask}", strict=False)
    if network.prefixlen <= 24:
        return base_ip, 1, 254

    first = int(str(network.network_address).rsplit(".", 1)[1]) + 1
    last = int(str(network.broadcast_address).rsplit(".", 1)[1]) - 1
    start, end = max(1, first), min(254, last)
    if start > end:
        # /31 and /32 have no host range of their own
        _, host = split_ip(ip_address)
        start = end = min(max(host, 1), 254)
    return base_ip, start, end


def normalize_mac(mac_address: str) -> Optional[str]:
    """
    Normalize a MAC address to upper-case colon-separated form.

    Accepts ':' or '-' separators and single-digit octets as printed by
    BSD arp ("0:1b:63:a:b:c").

    Args:
        mac_address: MAC address in any common notation

    Returns:
        Normalized MAC, or None when the input is not a MAC address
    """
    if not mac_address:
        return None
    parts = re.split(r"[:-]", mac_address.strip())
    if len(parts) != 6 or not all(re.fullmatch(r"[0-9A-Fa-f]{1,2}", part) for part in parts):
        return None
    return ":".join(part.zfill(2).upper() for part in parts)


def extract_mac(text: str) -> Optional[str]:
    """
    Find the first real MAC address in command output.

    Broadcast and all-zero placeholders are skipped.

    Args:
        text: Output of arp, ip neigh or similar

    Returns:
        Normalized MAC, or None when none is present
    """
    for match in _MAC_PATTERN.finditer(text or ""):
        mac = normalize_mac(match.group(1))
        if mac and mac not in _PLACEHOLDER_MACS:
            return mac
    return None


def mac_prefix(mac_address: str) -> Optional[str]:
    """Organizationally unique identifier (first three octets) of a MAC address."""
    mac = normalize_mac(mac_address)
    return mac[:8] if mac else None
