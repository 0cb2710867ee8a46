"""
Evidence lookup strategies used by the device resolver.

Each strategy answers one question about an address (its DNS name, its
hardware address, its NetBIOS/mDNS name, the vendor of a hardware address).
Platform differences are settled once, when the strategy is built from the
tools found on the machine; a platform without a usable tool gets the Null
variant of the strategy, which always answers None.
"""

import platform
import socket
import subprocess
from typing import Callable, List, Optional, Sequence

import requests

from ..utils.error_handler import ResolutionChannelFailure, ToolValidator, with_retry
from ..utils.network_utils import extract_mac, mac_prefix, normalize_mac

# Best-effort prefix table; a complete vendor database is out of scope.
VENDOR_BY_OUI = {
    "00:00:0C": "Cisco Systems",
    "00:03:93": "Apple",
    "00:05:69": "VMware",
    "00:09:5B": "Netgear",
    "00:0C:29": "VMware",
    "00:0D:3A": "Microsoft",
    "00:12:FB": "Samsung Electronics",
    "00:14:6C": "Netgear",
    "00:15:5D": "Microsoft Hyper-V",
    "00:16:3E": "Xensource",
    "00:17:88": "Philips Lighting",
    "00:1A:11": "Google",
    "00:1B:63": "Apple",
    "00:50:56": "VMware",
    "00:E0:4C": "Realtek Semiconductor",
    "08:00:27": "Oracle VirtualBox",
    "18:FE:34": "Espressif",
    "24:0A:C4": "Espressif",
    "3C:07:54": "Apple",
    "3C:5A:B4": "Google",
    "44:65:0D": "Amazon Technologies",
    "50:C7:BF": "TP-Link",
    "52:54:00": "QEMU Virtual NIC",
    "A4:77:33": "LG Electronics",
    "B8:27:EB": "Raspberry Pi Foundation",
    "DC:A6:32": "Raspberry Pi Trading",
    "E4:5F:01": "Raspberry Pi Trading",
    "F4:F2:6D": "TP-Link",
}

LOCALLY_ADMINISTERED = "Locally Administered"


def _run_command(runner: Callable[..., subprocess.CompletedProcess], cmd: Sequence[str],
                 timeout_s: float) -> str:
    """
    Run a lookup command and return its combined output.

    Raises:
        ResolutionChannelFailure: If the command times out or cannot be started
    """
    try:
        result = runner(list(cmd), capture_output=True, text=True, timeout=timeout_s)
    except subprocess.TimeoutExpired as e:
        raise ResolutionChannelFailure(f"{cmd[0]} timed out after {timeout_s:.1f}s") from e
    except OSError as e:
        raise ResolutionChannelFailure(f"{cmd[0]} could not be executed: {e}") from e
    return (result.stdout or "") + (result.stderr or "")


class ReverseDNSLookup:
    """Hostname from a PTR lookup, retried once after a short pause."""

    name = "DNS"

    def __init__(self, resolver: Callable[[str], tuple] = socket.gethostbyaddr):
        self._resolver = resolver

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        try:
            hostname = self._lookup_with_retry(ip)
        except (socket.herror, socket.gaierror):
            # no PTR record: not a failure, just no evidence
            return None
        if not hostname or hostname == ip:
            return None
        return hostname

    @with_retry(max_retries=1, delay=0.3, error_types=(socket.timeout, TimeoutError))
    def _lookup_with_retry(self, ip: str) -> str:
        return self._resolver(ip)[0]


class NullNeighborLookup:
    """Neighbor table lookup for platforms without arp or ip."""

    name = "ARP"

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        return None


class ArpCommandLookup:
    """
    Hardware address from the system neighbor table.

    The table only holds hosts the machine recently talked to, which is
    always the case for a host that just answered a ping.
    """

    name = "ARP"

    def __init__(self, commands: List[List[str]],
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        """
        Args:
            commands: Command prefixes tried in order; the address is appended
            runner: Function with the signature of subprocess.run
        """
        self.commands = commands
        self._run = runner

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        last_error: Optional[ResolutionChannelFailure] = None
        for prefix in self.commands:
            try:
                output = _run_command(self._run, prefix + [ip], timeout_s)
            except ResolutionChannelFailure as e:
                last_error = e
                continue
            mac = extract_mac(output)
            if mac:
                return mac
        if last_error is not None:
            raise last_error
        return None


def create_neighbor_lookup(tool_validator: ToolValidator, system: Optional[str] = None):
    """Pick the neighbor table commands available on this machine."""
    system = (system or platform.system()).lower()
    commands = []
    if system == "windows":
        if tool_validator.is_available("arp"):
            commands.append(["arp", "-a"])
    else:
        if system == "linux" and tool_validator.is_available("ip"):
            commands.append(["ip", "neigh", "show"])
        if tool_validator.is_available("arp"):
            commands.append(["arp", "-n"])
    return ArpCommandLookup(commands) if commands else NullNeighborLookup()


class NullNameService:
    """Name service lookup for platforms without NetBIOS or mDNS tools."""

    name = "NameService"

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        return None


class NetBIOSLookup:
    """
    Workstation name from a NetBIOS node status query.

    Both ``nbtstat -A`` (Windows) and ``nmblookup -A`` (Samba) list the
    registered names; the unique ``<00>`` entry is the machine name.
    """

    name = "NetBIOS"

    def __init__(self, command: List[str],
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.command = command
        self._run = runner

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        output = _run_command(self._run, self.command + [ip], timeout_s)
        return self.parse(output)

    @staticmethod
    def parse(output: str) -> Optional[str]:
        for line in output.splitlines():
            if "<00>" not in line or "GROUP" in line.upper():
                continue
            candidate = line.strip().split()[0] if line.strip() else ""
            if candidate and not candidate.startswith("<"):
                return candidate
        return None


class MDNSLookup:
    """Hostname from a multicast DNS reverse query through avahi."""

    name = "mDNS"

    def __init__(self, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self._run = runner

    def lookup(self, ip: str, timeout_s: float) -> Optional[str]:
        output = _run_command(self._run, ["avahi-resolve-address", ip], timeout_s)
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == ip:
                return parts[1].rstrip(".")
        return None


def create_name_service(tool_validator: ToolValidator, system: Optional[str] = None):
    """Pick the platform name service lookup available on this machine."""
    system = (system or platform.system()).lower()
    if system == "windows" and tool_validator.is_available("nbtstat"):
        return NetBIOSLookup(["nbtstat", "-A"])
    if tool_validator.is_available("nmblookup"):
        return NetBIOSLookup(["nmblookup", "-A"])
    if tool_validator.is_available("avahi-resolve-address"):
        return MDNSLookup()
    return NullNameService()


class MacVendorsApiLookup:
    """
    Vendor name from an HTTP MAC vendor service (api.macvendors.com style:
    ``GET <url><mac>`` answers the vendor as plain text, 404 when unknown).
    """

    name = "OUI"

    def __init__(self, url: str = "https://api.macvendors.com/", timeout_s: float = 3.0,
                 session: Optional[requests.Session] = None):
        self.url = url if url.endswith("/") else url + "/"
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def lookup(self, mac: str, timeout_s: float) -> Optional[str]:
        try:
            response = self.session.get(self.url + mac, timeout=min(self.timeout_s, timeout_s))
        except requests.RequestException as e:
            raise ResolutionChannelFailure(f"Vendor service unreachable: {e}") from e
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ResolutionChannelFailure(f"Vendor service answered HTTP {response.status_code}")
        vendor = response.text.strip()
        return vendor or None


class OUIVendorLookup:
    """
    Vendor from the local prefix table, falling back to an external lookup.

    Randomized and virtual interfaces carry locally administered addresses,
    which no vendor owns; they are reported as such instead of being sent to
    the external service.
    """

    name = "OUI"

    def __init__(self, table: Optional[dict] = None, external: Optional[MacVendorsApiLookup] = None):
        self.table = VENDOR_BY_OUI if table is None else table
        self.external = external

    def lookup(self, mac: str, timeout_s: float) -> Optional[str]:
        prefix = mac_prefix(mac)
        if prefix is None:
            return None
        vendor = self.table.get(prefix)
        if vendor:
            return vendor
        if int(prefix[:2], 16) & 0x02:
            return LOCALLY_ADMINISTERED
        if self.external is not None:
            return self.external.lookup(normalize_mac(mac), timeout_s)
        return None


def create_vendor_lookup(external_lookup: bool = False, api_url: str = "https://api.macvendors.com/",
                         api_timeout_s: float = 3.0) -> OUIVendorLookup:
    external = MacVendorsApiLookup(api_url, api_timeout_s) if external_lookup else None
    return OUIVendorLookup(external=external)
