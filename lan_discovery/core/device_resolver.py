"""
Device identity resolution.

An identity is assembled from independent evidence channels queried in
parallel: reverse DNS, the platform name service (NetBIOS or mDNS), the
neighbor table (hardware address) and the vendor of that hardware address.
Each channel that produces data adds its weight to the identity's
confidence; a channel that fails or times out simply contributes nothing.

Device categories are derived from the evidence by ordered keyword rules,
the same way the discovery classifier matched manufacturer patterns.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..utils.error_handler import (
    ErrorContext, ErrorHandler, ErrorSeverity, ErrorType, ResolutionChannelFailure, ToolValidator
)
from ..utils.logger import Logger, get_logger
from ..utils.network_utils import last_octet
from .data_models import DeviceIdentity
from .lookup_strategies import (
    LOCALLY_ADMINISTERED, ReverseDNSLookup, create_name_service, create_neighbor_lookup, create_vendor_lookup
)
from .result_cache import CacheStats, ResultCache

# Confidence contributed by each evidence channel that produced data
HOSTNAME_WEIGHT = 30
NAME_SERVICE_WEIGHT = 25
MAC_WEIGHT = 20
VENDOR_WEIGHT = 10
DESCRIPTION_WEIGHT = 15
DEVICE_TYPE_BONUS = 5

UNKNOWN_DEVICE_TYPE = "Unknown"
GATEWAY_DEVICE_TYPE = "Router/Gateway"
GATEWAY_OCTETS = (1, 254)

DNS_SOURCE = "DNS"
ARP_SOURCE = "ARP"
OUI_SOURCE = "OUI"
HEURISTIC_SOURCE = "Heuristic"


@dataclass(frozen=True)
class DeviceTypeRule:
    """
    Maps any of a set of keywords to a device type.

    Attributes:
        device_type: Category assigned when the rule matches
        keywords: Lower-case substrings searched for in the evidence
    """
    device_type: str
    keywords: Tuple[str, ...]

    def matches(self, text: Optional[str]) -> bool:
        if not text:
            return False
        text = text.lower()
        return any(keyword in text for keyword in self.keywords)


# Rules are evaluated in order; the first match wins.
HOSTNAME_RULES = (
    DeviceTypeRule("Router", ("router", "gateway")),
    DeviceTypeRule("Printer", ("printer", "print")),
    DeviceTypeRule("Camera", ("camera", "cam")),
    DeviceTypeRule("Phone", ("phone", "iphone", "android")),
)

VENDOR_RULES = (
    DeviceTypeRule("Apple Device", ("apple",)),
    DeviceTypeRule("Samsung Device", ("samsung",)),
    DeviceTypeRule("Network Device", ("cisco", "tp-link", "netgear", "ubiquiti", "mikrotik")),
)

VENDOR_DESCRIPTION_RULES = (
    DeviceTypeRule("Apple Device", ("apple",)),
    DeviceTypeRule("Samsung Device", ("samsung",)),
    DeviceTypeRule("Microsoft Device", ("microsoft",)),
    DeviceTypeRule("Google Device", ("google",)),
    DeviceTypeRule("Amazon Device", ("amazon",)),
    DeviceTypeRule("Mobile Device", ("huawei", "xiaomi")),
    DeviceTypeRule("Virtual Device", (LOCALLY_ADMINISTERED.lower(), "vmware", "virtualbox", "qemu", "hyper-v",
                                      "xensource")),
    DeviceTypeRule("Network Device", ("tp-link", "cisco", "realtek", "intel", "belkin", "netgear")),
)


def is_gateway_address(ip: str) -> bool:
    return last_octet(ip) in GATEWAY_OCTETS


def classify_device_type(hostname: Optional[str], vendor: Optional[str], ip: str) -> str:
    """
    Categorize a device from its evidence.

    Priority: hostname keywords, then vendor keywords, then the address
    position (.1 and .254 are conventionally gateways).

    Returns:
        Device type, "Unknown" when nothing matches
    """
    for rule in HOSTNAME_RULES:
        if rule.matches(hostname):
            return rule.device_type
    for rule in VENDOR_RULES:
        if rule.matches(vendor):
            return rule.device_type
    if is_gateway_address(ip):
        return GATEWAY_DEVICE_TYPE
    return UNKNOWN_DEVICE_TYPE


def describe_device(ip: str, vendor: Optional[str]) -> Optional[str]:
    """
    Heuristic description for devices without a hostname.

    Returns:
        "Router/Gateway" for gateway addresses, otherwise a description
        derived from the vendor, or None when neither is known
    """
    if is_gateway_address(ip):
        return GATEWAY_DEVICE_TYPE
    if not vendor:
        return None
    for rule in VENDOR_DESCRIPTION_RULES:
        if rule.matches(vendor):
            return rule.device_type
    return f"{vendor} Device"


class DeviceResolver:
    """
    Resolves the most probable identity of a device, with caching.

    Lookup strategies are injected or, when omitted, built from the tools
    available on this machine.
    """

    def __init__(self, reverse_dns=None, name_service=None, neighbor_lookup=None, vendor_lookup=None,
                 cache: Optional[ResultCache] = None, channel_timeout_ms: int = 3000,
                 batch_concurrency: int = 10, tool_validator: Optional[ToolValidator] = None,
                 error_handler: Optional[ErrorHandler] = None, logger: Optional[Logger] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the DeviceResolver.

        Args:
            reverse_dns: Hostname lookup by PTR record
            name_service: NetBIOS or mDNS hostname lookup
            neighbor_lookup: Hardware address lookup
            vendor_lookup: Vendor lookup by hardware address
            cache: Identity cache keyed by IP (600 s TTL by default)
            channel_timeout_ms: Budget shared by the parallel channels of one resolution
            batch_concurrency: Default chunk size of resolve_batch
            tool_validator: Tool detection used to build the default strategies
            error_handler: Receives channel failures
            logger: Logger instance
            clock: Monotonic time source
        """
        self.logger = logger or get_logger("DeviceResolver")
        self.error_handler = error_handler or ErrorHandler(self.logger)
        tool_validator = tool_validator or ToolValidator(self.error_handler)

        self.reverse_dns = reverse_dns or ReverseDNSLookup()
        self.name_service = name_service or create_name_service(tool_validator)
        self.neighbor_lookup = neighbor_lookup or create_neighbor_lookup(tool_validator)
        self.vendor_lookup = vendor_lookup or create_vendor_lookup()
        self.cache = cache if cache is not None else ResultCache(default_ttl=600, name="identity")
        self.channel_timeout_ms = channel_timeout_ms
        self.batch_concurrency = max(1, batch_concurrency)
        self._clock = clock

    @classmethod
    def from_config(cls, resolver_config, cache_config, tool_validator: Optional[ToolValidator] = None,
                    logger: Optional[Logger] = None) -> "DeviceResolver":
        """Build a resolver from the 'resolver' and 'cache' configuration sections."""
        return cls(
            vendor_lookup=create_vendor_lookup(resolver_config.external_vendor_lookup,
                                               resolver_config.vendor_api_url,
                                               resolver_config.vendor_api_timeout),
            cache=ResultCache(default_ttl=cache_config.identity_ttl, name="identity"),
            channel_timeout_ms=resolver_config.channel_timeout_ms,
            batch_concurrency=resolver_config.batch_concurrency,
            tool_validator=tool_validator,
            logger=logger,
        )

    def resolve_device_info(self, ip: str, budget_ms: Optional[int] = None) -> DeviceIdentity:
        """
        Resolve the identity of one device.

        Args:
            ip: Address of the device
            budget_ms: Time the caller can spend on this device; the
                resolution never runs longer than this or channel_timeout_ms

        Returns:
            DeviceIdentity; confidence 0 and no sources when every channel
            came back empty. Never raises for channel failures.
        """
        cached = self.cache.get(ip)
        if cached is not None:
            return cached

        timeout_ms = self.channel_timeout_ms if budget_ms is None else min(self.channel_timeout_ms, budget_ms)
        identity = self._resolve(ip, timeout_ms / 1000)
        self.cache.set(ip, identity)
        self.logger.debug(f"Resolved {ip}", confidence=identity.confidence,
                          sources=",".join(identity.sources) or "none")
        return identity

    def resolve_batch(self, ips: Sequence[str], max_concurrency: Optional[int] = None) -> List[DeviceIdentity]:
        """
        Resolve many devices, ``max_concurrency`` at a time.

        Returns:
            One identity per input address, in input order; an address whose
            resolution failed gets an empty identity
        """
        chunk_size = max(1, max_concurrency or self.batch_concurrency)
        identities: List[DeviceIdentity] = []
        if not ips:
            return identities

        with ThreadPoolExecutor(max_workers=chunk_size, thread_name_prefix="resolve-batch") as executor:
            for start in range(0, len(ips), chunk_size):
                chunk = list(ips[start:start + chunk_size])
                futures = [executor.submit(self.resolve_device_info, ip) for ip in chunk]
                for ip, future in zip(chunk, futures):
                    try:
                        identities.append(future.result())
                    except Exception as e:
                        self._report_failure(ip, "resolve_batch", e)
                        identities.append(DeviceIdentity.empty(ip))
        return identities

    def clear_cache(self) -> None:
        self.cache.clear()
        self.logger.debug("Identity cache cleared")

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def _resolve(self, ip: str, timeout_s: float) -> DeviceIdentity:
        executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="resolve")
        try:
            deadline = self._clock() + timeout_s
            futures = {
                "neighbor_table": executor.submit(self.neighbor_lookup.lookup, ip, timeout_s),
                "reverse_dns": executor.submit(self.reverse_dns.lookup, ip, timeout_s),
                "name_service": executor.submit(self.name_service.lookup, ip, timeout_s),
            }
            # the vendor lookup starts as soon as the MAC is known and shares the deadline
            mac = self._settle(ip, "neighbor_table", futures.pop("neighbor_table"), deadline)
            if mac:
                futures["vendor"] = executor.submit(self.vendor_lookup.lookup, mac,
                                                    max(0.0, deadline - self._clock()))
            evidence = {channel: self._settle(ip, channel, future, deadline)
                        for channel, future in futures.items()}
        finally:
            # a hung lookup must not hold the resolution past its budget
            executor.shutdown(wait=False, cancel_futures=True)

        return self._build_identity(ip, evidence["reverse_dns"], evidence["name_service"], mac,
                                    evidence.get("vendor"))

    def _settle(self, ip: str, channel: str, future: Future, deadline: float) -> Optional[str]:
        try:
            return future.result(timeout=max(0.0, deadline - self._clock()))
        except FutureTimeoutError:
            self._report_failure(ip, channel, ResolutionChannelFailure(f"{channel} lookup timed out"))
        except Exception as e:
            self._report_failure(ip, channel, e)
        return None

    def _build_identity(self, ip: str, dns_name: Optional[str], service_name: Optional[str],
                        mac: Optional[str], vendor: Optional[str]) -> DeviceIdentity:
        confidence = 0
        sources: List[str] = []

        hostname = None
        if dns_name:
            hostname = dns_name
            confidence += HOSTNAME_WEIGHT
            sources.append(DNS_SOURCE)
        elif service_name:
            hostname = service_name
            confidence += NAME_SERVICE_WEIGHT
            sources.append(self.name_service.name)

        if mac:
            confidence += MAC_WEIGHT
            sources.append(ARP_SOURCE)
        if vendor:
            confidence += VENDOR_WEIGHT
            sources.append(OUI_SOURCE)

        description = None
        if not hostname:
            description = describe_device(ip, vendor)
            if description:
                confidence += DESCRIPTION_WEIGHT
                sources.append(HEURISTIC_SOURCE)

        device_type = classify_device_type(hostname, vendor, ip)
        if device_type != UNKNOWN_DEVICE_TYPE:
            confidence += DEVICE_TYPE_BONUS

        return DeviceIdentity(
            ip=ip,
            hostname=hostname,
            mac_address=mac,
            vendor=vendor,
            description=description,
            device_type=device_type,
            confidence=confidence,
            sources=tuple(sources),
        )

    def _report_failure(self, ip: str, channel: str, error: Exception) -> None:
        context = ErrorContext(
            error_type=ErrorType.RESOLUTION_ERROR,
            severity=ErrorSeverity.LOW,
            operation=channel,
            component="DeviceResolver",
            additional_info={"ip": ip},
        )
        self.error_handler.handle_error(error, context)
