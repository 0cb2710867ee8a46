"""
In-process fakes shared by the test suite.
"""

import subprocess
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from lan_discovery.core.data_models import DeviceIdentity, ProbeResult
from lan_discovery.scanners.base_scanner import BaseScanner


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    """Build the value a subprocess.run replacement returns."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScanner(BaseScanner):
    """
    Probe provider answering from a fixed table.

    Args:
        alive: Mapping of live address to reply TTL
        open_ports: Mapping of address to its open ports
        probe_delay: Seconds every probe takes
        on_probe: Called with the address before every probe
    """

    name = "fake"

    def __init__(self, alive: Optional[Dict[str, Optional[int]]] = None,
                 open_ports: Optional[Dict[str, Iterable[int]]] = None,
                 probe_delay: float = 0.0, on_probe: Optional[Callable[[str], None]] = None):
        super().__init__()
        self.alive = dict(alive or {})
        self.open_ports = {ip: list(ports) for ip, ports in (open_ports or {}).items()}
        self.probe_delay = probe_delay
        self.on_probe = on_probe
        self.probed: List[str] = []
        self.port_scanned: List[str] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    def probe(self, ip: str, timeout_ms: int) -> ProbeResult:
        with self._lock:
            self.probed.append(ip)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.on_probe:
                self.on_probe(ip)
            if self.probe_delay:
                time.sleep(self.probe_delay)
        finally:
            with self._lock:
                self._in_flight -= 1

        if ip not in self.alive:
            return ProbeResult.dead()
        return ProbeResult(alive=True, latency_ms=1.5, ttl=self.alive[ip])

    def scan_ports(self, ip: str, ports: Sequence[int], timeout_ms: int) -> List[int]:
        with self._lock:
            self.port_scanned.append(ip)
        return [port for port in self.open_ports.get(ip, []) if port in ports]


class FakeResolver:
    """Device resolver returning a DNS-only identity for every address."""

    def __init__(self, failing: Iterable[str] = ()):
        self.failing = set(failing)
        self.resolved: List[str] = []
        self.budgets: List[Optional[int]] = []
        self._lock = threading.Lock()

    def resolve_device_info(self, ip: str, budget_ms: Optional[int] = None) -> DeviceIdentity:
        with self._lock:
            self.resolved.append(ip)
            self.budgets.append(budget_ms)
        if ip in self.failing:
            raise RuntimeError(f"resolver exploded for {ip}")
        octet = ip.rsplit(".", 1)[1]
        return DeviceIdentity(ip=ip, hostname=f"host-{octet}.lan", confidence=30, sources=("DNS",))


class StaticLookup:
    """Lookup strategy answering a fixed value, or raising a fixed error."""

    def __init__(self, value: Optional[str] = None, error: Optional[Exception] = None, name: str = "static",
                 block: Optional[threading.Event] = None):
        self.value = value
        self.error = error
        self.name = name
        self.block = block
        self.calls: List[str] = []

    def lookup(self, key: str, timeout_s: float) -> Optional[str]:
        self.calls.append(key)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return self.value


def which_from(available: Iterable[str]) -> Callable[[str], Optional[str]]:
    """shutil.which replacement that finds only the given tools."""
    tools = set(available)
    return lambda name: f"/usr/bin/{name}" if name in tools else None
