"""
Scan Orchestrator for the LAN discovery engine.

This module provides the ScanOrchestrator class that runs a range scan end
to end: request validation, range cache lookup, batched host probing with
per-host port scanning and identity resolution, progress reporting,
cooperative cancellation and write-through caching of the result.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Union

from ..config.config_loader import DiscoveryConfig
from ..scanners.base_scanner import BaseScanner
from ..scanners.port_scanner import map_services
from ..scanners.scanner_factory import select_scanner
from ..utils.error_handler import (
    CacheFailure, ConcurrencyConflictError, ConfigurationError, ErrorContext, ErrorHandler,
    ErrorSeverity, ErrorType, ProbeFailure, ToolValidator
)
from ..utils.events import EventEmitter
from ..utils.logger import Logger, get_logger
from ..utils.network_validator import NetworkValidator
from .data_models import (
    DeviceIdentity, HostResult, ProbeResult, ScanMetadata, ScanProgress, ScanRequest, ScanResult,
    ScanState, ScanStatus
)
from .device_resolver import DeviceResolver
from .result_cache import CacheStats, ResultCache

EVENT_PROGRESS = "progress"
EVENT_HOST_DISCOVERED = "host-discovered"
EVENT_CACHE_HIT = "cache-hit"
EVENT_CACHE_ERROR = "cache-error"
EVENT_SCAN_COMPLETE = "scan-complete"
EVENT_SCAN_CANCELLED = "scan-cancelled"

_BUSY_STATES = {ScanState.VALIDATING, ScanState.SCANNING}


class CancellationToken:
    """Cooperative cancellation flag owned by exactly one scan."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class ScanOrchestrator(EventEmitter):
    """
    Orchestrates range scans.

    One scan may be in flight per instance. Hosts are probed in batches of
    ``concurrency_limit``; a batch completes entirely before the next one
    starts, and cancellation is observed between batches. Listeners
    registered with ``on()`` receive these events:

    - ``progress`` (ScanProgress) after every completed host
    - ``host-discovered`` (HostResult) for every live host
    - ``cache-hit`` (range_key, ScanResult) when a cached result is served
    - ``cache-error`` (CacheFailure) when the range cache fails
    - ``scan-complete`` (ScanResult) after a full scan
    - ``scan-cancelled`` (ScanResult) with the partial result of a cancelled scan
    """

    def __init__(
        self,
        scanner: Optional[BaseScanner] = None,
        resolver: Optional[DeviceResolver] = None,
        range_cache: Optional[ResultCache] = None,
        validator: Optional[NetworkValidator] = None,
        config: Optional[DiscoveryConfig] = None,
        logger: Optional[Logger] = None,
        error_handler: Optional[ErrorHandler] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the scan orchestrator.

        Args:
            scanner: Probe provider; selected from the installed tools when omitted
            resolver: Device identity resolver
            range_cache: Cache of finished scans keyed by range
            validator: Scan request validator
            config: Engine configuration (defaults when omitted)
            logger: Logger instance
            error_handler: Receives every recovered and fatal failure
            clock: Monotonic time source for durations and progress
            sleep: Used for the pause between batches
        """
        self.config = config or DiscoveryConfig()
        self.logger = logger or get_logger("ScanOrchestrator")
        self.error_handler = error_handler or ErrorHandler(self.logger)
        super().__init__(self.error_handler)

        tool_validator = ToolValidator(self.error_handler)
        self.scanner = scanner or select_scanner(self.config.probe.provider, tool_validator,
                                                 port_workers=self.config.scan.port_workers)
        self.resolver = resolver or DeviceResolver.from_config(self.config.resolver, self.config.cache,
                                                               tool_validator=tool_validator)
        if range_cache is None:
            range_cache = ResultCache(default_ttl=self.config.cache.range_ttl, name="range")
        self.range_cache = range_cache
        self.validator = validator or NetworkValidator()
        self.batch_pause_s = self.config.scan.batch_pause_ms / 1000

        self._clock = clock
        self._sleep = sleep
        self._state = ScanState.IDLE
        self._state_lock = threading.Lock()
        self._token: Optional[CancellationToken] = None

    @property
    def state(self) -> ScanState:
        with self._state_lock:
            return self._state

    @property
    def is_scanning(self) -> bool:
        return self.state in _BUSY_STATES

    @property
    def provider_name(self) -> str:
        return getattr(self.scanner, "name", type(self.scanner).__name__)

    def scan_network(self, request: Union[ScanRequest, Mapping[str, Any]]) -> ScanResult:
        """
        Scan a host range.

        Args:
            request: ScanRequest, or a mapping with the same fields in
                snake_case or camelCase

        Returns:
            ScanResult with live hosts in ascending address order. A cached
            result is returned as-is; a cancelled scan returns the hosts found
            so far with status CANCELLED.

        Raises:
            ConcurrencyConflictError: If a scan is already in flight
            ConfigurationError: If the request is invalid; no probe is issued
        """
        with self._state_lock:
            busy = self._state in _BUSY_STATES
            if not busy:
                self._state = ScanState.VALIDATING
                token = CancellationToken()
                self._token = token
        if busy:
            conflict = ConcurrencyConflictError("Scan in progress")
            self._report(ErrorType.CONCURRENCY_ERROR, "scan_network", conflict, severity=ErrorSeverity.MEDIUM)
            raise conflict

        try:
            scan_request = self._validate(request)

            cached = self._read_cache(scan_request.range_key)
            if cached is not None:
                self._set_state(ScanState.CACHE_HIT)
                self.logger.info("Serving cached scan result", range=self._describe_range(scan_request))
                self.emit(EVENT_CACHE_HIT, scan_request.range_key, cached)
                return cached

            self._set_state(ScanState.SCANNING)
            result = self._perform_scan(scan_request, token)
        except BaseException:
            self._set_state(ScanState.FAILED)
            raise

        if result.cancelled:
            self._set_state(ScanState.CANCELLED)
            self.logger.warning(f"Scan cancelled after {result.metadata.hosts_scanned} host(s)",
                                alive=result.metadata.hosts_alive)
            self.emit(EVENT_SCAN_CANCELLED, result)
        else:
            self._write_cache(scan_request.range_key, result)
            self._set_state(ScanState.COMPLETED)
            self.logger.info(f"Scan completed: {result.metadata.hosts_alive} live host(s) "
                             f"of {result.metadata.hosts_scanned}",
                             duration_ms=result.metadata.duration_ms)
            self.emit(EVENT_SCAN_COMPLETE, result)
        return result

    def cancel_scan(self) -> bool:
        """
        Request cancellation of the scan in flight.

        In-flight probes finish; no further batch starts.

        Returns:
            True if a running scan was signalled, False when idle
        """
        with self._state_lock:
            token = self._token if self._state in _BUSY_STATES else None
        if token is None:
            self.logger.debug("No scan in progress to cancel")
            return False
        token.cancel()
        self.logger.warning("Scan cancellation requested")
        return True

    def clear_cache(self) -> None:
        self.range_cache.clear()
        self.logger.info("Range cache cleared")

    def get_cache_stats(self) -> CacheStats:
        return self.range_cache.stats()

    def _set_state(self, state: ScanState) -> None:
        with self._state_lock:
            self._state = state

    def _validate(self, request: Union[ScanRequest, Mapping[str, Any]]) -> ScanRequest:
        try:
            if not isinstance(request, ScanRequest):
                request = ScanRequest.from_dict(request, defaults=self.config.request_defaults())

            validation = self.validator.validate_scan_request(request)
            if not validation.is_valid:
                raise ConfigurationError("Invalid scan configuration: " + "; ".join(validation.errors),
                                         errors=validation.errors)
        except ConfigurationError as e:
            context = ErrorContext(
                error_type=ErrorType.CONFIGURATION_ERROR,
                severity=ErrorSeverity.HIGH,
                operation="scan_network",
                component="ScanOrchestrator",
            )
            e.error_context = context
            self.error_handler.handle_error(e, context)
            raise
        return request

    def _perform_scan(self, request: ScanRequest, token: CancellationToken) -> ScanResult:
        ips = request.ip_addresses()
        total = len(ips)
        batch_size = request.concurrency_limit
        hosts: Dict[int, HostResult] = {}
        completed = 0
        cancelled = False

        started_at = datetime.now()
        start = self._clock()
        self.logger.info(f"Scanning {self._describe_range(request)}", hosts=total, batch_size=batch_size,
                         provider=self.provider_name)

        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="host-scan") as executor:
            for batch_start in range(0, total, batch_size):
                if token.is_cancelled:
                    cancelled = True
                    break

                batch = ips[batch_start:batch_start + batch_size]
                future_to_index = {
                    executor.submit(self._scan_host, ip, request): batch_start + offset
                    for offset, ip in enumerate(batch)
                }
                for future in as_completed(future_to_index):
                    index = future_to_index[future]
                    host = self._collect(future, ips[index], "scan_host", ErrorType.PROBE_ERROR, None)
                    completed += 1
                    if host is not None:
                        hosts[index] = host
                        self.emit(EVENT_HOST_DISCOVERED, host)
                    self.emit(EVENT_PROGRESS, self._progress(completed, total, ips[index], start))

                more_batches = batch_start + batch_size < total
                if more_batches and self.batch_pause_s > 0 and not token.is_cancelled:
                    self._sleep(self.batch_pause_s)

        metadata = ScanMetadata(
            started_at=started_at,
            duration_ms=round((self._clock() - start) * 1000, 1),
            hosts_scanned=completed,
            hosts_alive=len(hosts),
            status=ScanStatus.CANCELLED if cancelled else ScanStatus.COMPLETED,
            range_key=request.range_key,
            provider=self.provider_name,
        )
        return ScanResult(hosts=tuple(hosts[index] for index in sorted(hosts)), metadata=metadata)

    def _scan_host(self, ip: str, request: ScanRequest) -> Optional[HostResult]:
        """
        Probe one host; for a live host, scan its ports and resolve its
        identity concurrently.

        Returns:
            HostResult, or None for a dead host
        """
        try:
            probe = self.scanner.probe(ip, request.timeout_ms)
        except Exception as e:
            failure = ProbeFailure(f"Liveness probe of {ip} failed: {e}")
            failure.__cause__ = e
            self._report(ErrorType.PROBE_ERROR, "probe", failure, ip)
            return None
        if not probe.alive:
            return None

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="host-detail") as executor:
            ports_future = executor.submit(self.scanner.scan_ports, ip, request.ports, request.timeout_ms)
            identity_future = executor.submit(self.resolver.resolve_device_info, ip,
                                              budget_ms=request.timeout_ms)
            os_guess = self._guess_os(probe, ip)
            open_ports = self._collect(ports_future, ip, "scan_ports", ErrorType.PROBE_ERROR, [])
            identity = self._collect(identity_future, ip, "resolve_device_info", ErrorType.RESOLUTION_ERROR,
                                     DeviceIdentity.empty(ip))

        open_ports = tuple(sorted(set(open_ports)))
        return HostResult(
            ip=ip,
            latency_ms=probe.latency_ms,
            open_ports=open_ports,
            services=map_services(open_ports),
            os_guess=os_guess,
            identity=identity,
        )

    def _guess_os(self, probe: ProbeResult, ip: str) -> Optional[str]:
        try:
            return self.scanner.guess_os(probe)
        except Exception as e:
            self._report(ErrorType.PROBE_ERROR, "guess_os", e, ip)
            return None

    def _collect(self, future: Future, ip: str, operation: str, error_type: ErrorType, default: Any) -> Any:
        try:
            return future.result()
        except Exception as e:
            self._report(error_type, operation, e, ip)
            return default

    def _progress(self, completed: int, total: int, ip: str, start: float) -> ScanProgress:
        elapsed_s = self._clock() - start
        hosts_per_second = completed / elapsed_s if elapsed_s > 0 else 0.0
        remaining_s = (total - completed) / hosts_per_second if hosts_per_second > 0 else 0.0
        return ScanProgress(
            completed=completed,
            total=total,
            current_ip=ip,
            elapsed_ms=round(elapsed_s * 1000, 1),
            estimated_remaining_ms=round(remaining_s * 1000, 1),
            hosts_per_second=round(hosts_per_second, 2),
        )

    def _read_cache(self, key: Hashable) -> Optional[ScanResult]:
        try:
            return self.range_cache.get(key)
        except Exception as e:
            self._cache_fault("read", e)
            return None

    def _write_cache(self, key: Hashable, result: ScanResult) -> None:
        try:
            self.range_cache.set(key, result)
        except Exception as e:
            self._cache_fault("write", e)

    def _cache_fault(self, operation: str, error: Exception) -> None:
        failure = CacheFailure(f"Range cache {operation} failed: {error}")
        self._report(ErrorType.CACHE_ERROR, f"cache_{operation}", failure, severity=ErrorSeverity.MEDIUM)
        self.emit(EVENT_CACHE_ERROR, failure)

    def _report(self, error_type: ErrorType, operation: str, error: Exception, ip: Optional[str] = None,
                severity: ErrorSeverity = ErrorSeverity.LOW) -> None:
        context = ErrorContext(
            error_type=error_type,
            severity=severity,
            operation=operation,
            component="ScanOrchestrator",
            additional_info={"ip": ip},
        )
        self.error_handler.handle_error(error, context)

    @staticmethod
    def _describe_range(request: ScanRequest) -> str:
        return f"{request.base_ip}.{request.start_range}-{request.end_range}"
