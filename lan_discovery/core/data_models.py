"""
Core data models and enums for the LAN discovery engine.

This module defines the data structures used throughout a scan: the
request, per-host probe outcomes, resolved device identities, progress
snapshots and the final result. Every record can be flattened with
``to_dict()`` so that an external key-value store can persist it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..utils.error_handler import ConfigurationError


DEFAULT_SCAN_PORTS: Tuple[int, ...] = (20, 21, 22, 23, 25, 53, 80, 443, 445, 3389)
DEFAULT_TIMEOUT_MS = 2000
DEFAULT_CONCURRENCY_LIMIT = 15


class ScanState(Enum):
    """Lifecycle states of the scan orchestrator."""
    IDLE = "idle"
    VALIDATING = "validating"
    SCANNING = "scanning"
    CACHE_HIT = "cache_hit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScanStatus(Enum):
    """Final status recorded on a scan result."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# External callers use camelCase keys; both spellings are accepted.
_REQUEST_KEY_ALIASES = {
    "baseIp": "base_ip",
    "startRange": "start_range",
    "endRange": "end_range",
    "timeoutMs": "timeout_ms",
    "timeout": "timeout_ms",
    "concurrencyLimit": "concurrency_limit",
}


@dataclass(frozen=True)
class ScanRequest:
    """
    A request to scan one slice of a /24 network.

    Attributes:
        base_ip: First three dotted octets, e.g. "192.168.1"
        start_range: First host octet to scan (inclusive)
        end_range: Last host octet to scan (inclusive)
        ports: TCP ports probed on every live host
        timeout_ms: Per-host probe budget in milliseconds
        concurrency_limit: Number of hosts probed concurrently (batch size)
    """
    base_ip: str
    start_range: int
    end_range: int
    ports: Tuple[int, ...] = DEFAULT_SCAN_PORTS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT

    def __post_init__(self):
        # addresses and cache keys are built from base_ip verbatim
        if isinstance(self.base_ip, str):
            object.__setattr__(self, "base_ip", self.base_ip.strip())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> "ScanRequest":
        """
        Build a request from a mapping using snake_case or camelCase keys.

        Args:
            data: Request fields
            defaults: Values used for optional fields missing from ``data``

        Returns:
            ScanRequest (not yet validated)

        Raises:
            ConfigurationError: If ``data`` is not a mapping, a required key is
                missing, or ports is not a sequence
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Scan request must be a mapping",
                                     errors=[f"Unsupported request type: {type(data).__name__}"])

        fields: Dict[str, Any] = dict(defaults or {})
        for key, value in data.items():
            fields[_REQUEST_KEY_ALIASES.get(key, key)] = value

        missing = [name for name in ("base_ip", "start_range", "end_range") if name not in fields]
        if missing:
            raise ConfigurationError("Scan request is incomplete",
                                     errors=[f"Missing required field: {name}" for name in missing])

        ports = fields.get("ports", DEFAULT_SCAN_PORTS)
        if isinstance(ports, (str, bytes)) or not hasattr(ports, "__iter__"):
            raise ConfigurationError("Scan request is invalid", errors=["Ports must be a list of integers"])

        known = {"base_ip", "start_range", "end_range", "timeout_ms", "concurrency_limit"}
        kwargs = {name: value for name, value in fields.items() if name in known}
        return cls(ports=tuple(ports), **kwargs)

    @property
    def range_key(self) -> Tuple[str, int, int]:
        """Cache key identifying the scanned range."""
        return (self.base_ip, self.start_range, self.end_range)

    @property
    def host_count(self) -> int:
        return self.end_range - self.start_range + 1

    def ip_addresses(self) -> List[str]:
        """List every address of the range in ascending order."""
        return [f"{self.base_ip}.{octet}" for octet in range(self.start_range, self.end_range + 1)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_ip": self.base_ip,
            "start_range": self.start_range,
            "end_range": self.end_range,
            "ports": list(self.ports),
            "timeout_ms": self.timeout_ms,
            "concurrency_limit": self.concurrency_limit,
        }


@dataclass(frozen=True)
class ProbeResult:
    """
    Outcome of a single liveness probe.

    Attributes:
        alive: Whether the host answered within the timeout
        latency_ms: Round-trip time, when measured
        ttl: Time-to-live of the reply packet, when reported
    """
    alive: bool
    latency_ms: Optional[float] = None
    ttl: Optional[int] = None

    @classmethod
    def dead(cls) -> "ProbeResult":
        return cls(alive=False)


@dataclass(frozen=True)
class DeviceIdentity:
    """
    Best-known identity of a device, assembled from independent evidence channels.

    Attributes:
        ip: Address the identity belongs to
        hostname: Name from reverse DNS or a platform name service
        mac_address: Hardware address from the neighbor table
        vendor: Manufacturer derived from the MAC prefix
        description: Human readable description
        device_type: Coarse category ("Router", "Printer", "Apple Device"...)
        confidence: Sum of the weights of the channels that produced data
        sources: Names of the channels that produced data
    """
    ip: str
    hostname: Optional[str] = None
    mac_address: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    device_type: str = "Unknown"
    confidence: int = 0
    sources: Tuple[str, ...] = ()

    @classmethod
    def empty(cls, ip: str) -> "DeviceIdentity":
        """Identity with no evidence at all."""
        return cls(ip=ip)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "hostname": self.hostname,
            "mac_address": self.mac_address,
            "vendor": self.vendor,
            "description": self.description,
            "device_type": self.device_type,
            "confidence": self.confidence,
            "sources": list(self.sources),
        }


@dataclass(frozen=True)
class HostResult:
    """
    Everything learned about one live host.

    Only reachable hosts produce a HostResult, so ``alive`` is always True.
    """
    ip: str
    alive: bool = True
    latency_ms: Optional[float] = None
    open_ports: Tuple[int, ...] = ()
    services: Mapping[int, str] = field(default_factory=dict)
    os_guess: Optional[str] = None
    identity: Optional[DeviceIdentity] = None

    def __post_init__(self):
        # cached results are shared with every caller
        object.__setattr__(self, "services", MappingProxyType(dict(self.services)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "alive": self.alive,
            "latency_ms": self.latency_ms,
            "open_ports": list(self.open_ports),
            "services": {str(port): name for port, name in self.services.items()},
            "os_guess": self.os_guess,
            "identity": self.identity.to_dict() if self.identity else None,
        }


@dataclass(frozen=True)
class ScanProgress:
    """
    Snapshot emitted after every completed host.

    Attributes:
        completed: Hosts finished so far (alive or not)
        total: Hosts in the range
        current_ip: Address that just completed
        elapsed_ms: Time since the scan started
        estimated_remaining_ms: Remaining time at the current throughput
        hosts_per_second: Current throughput
    """
    completed: int
    total: int
    current_ip: str
    elapsed_ms: float
    estimated_remaining_ms: float
    hosts_per_second: float

    @property
    def percentage(self) -> float:
        if not self.total:
            return 100.0
        return round(self.completed / self.total * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "total": self.total,
            "current_ip": self.current_ip,
            "percentage": self.percentage,
            "elapsed_ms": self.elapsed_ms,
            "estimated_remaining_ms": self.estimated_remaining_ms,
            "hosts_per_second": self.hosts_per_second,
        }


@dataclass(frozen=True)
class ScanMetadata:
    """
    Metadata about the scan execution.

    Attributes:
        started_at: When the scan was started
        duration_ms: Wall-clock duration of the scan
        hosts_scanned: Addresses actually probed (fewer than the range when cancelled)
        hosts_alive: Live hosts found
        status: Whether the scan ran to completion
        range_key: (base_ip, start, end) of the request
        provider: Name of the probe provider used
    """
    started_at: datetime
    duration_ms: float
    hosts_scanned: int
    hosts_alive: int
    status: ScanStatus
    range_key: Tuple[str, int, int]
    provider: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "hosts_scanned": self.hosts_scanned,
            "hosts_alive": self.hosts_alive,
            "status": self.status.value,
            "range_key": list(self.range_key),
            "provider": self.provider,
        }


@dataclass(frozen=True)
class ScanResult:
    """
    Complete result of a scan: live hosts in input-IP order plus metadata.

    This is the value stored in the range cache.
    """
    hosts: Tuple[HostResult, ...]
    metadata: ScanMetadata

    @property
    def cancelled(self) -> bool:
        return self.metadata.status == ScanStatus.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hosts": [host.to_dict() for host in self.hosts],
            "metadata": self.metadata.to_dict(),
        }
