"""
Validation of scan requests.

Validation is pure: it never touches the network and never raises for bad
input. Every problem found is collected so the caller can report them all at
once; the orchestrator turns a failing result into a ConfigurationError
before a single probe is issued.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .logger import Logger, get_logger


MIN_HOST_OCTET = 1
MAX_HOST_OCTET = 254
MIN_PORT = 1
MAX_PORT = 65535
MIN_TIMEOUT_MS = 50
MAX_TIMEOUT_MS = 60000
MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 100

_BASE_IP_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")


@dataclass
class ValidationResult:
    """
    Result of validating a scan request.

    Attributes:
        is_valid: Whether the validation passed
        errors: Every problem found, in check order
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a meaningful port or octet
    return isinstance(value, int) and not isinstance(value, bool)


class NetworkValidator:
    """
    Validator for scan requests and user-supplied port specifications.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initialize the NetworkValidator.

        Args:
            logger: Logger instance for validation messages
        """
        self.logger = logger or get_logger("NetworkValidator")

    def validate_scan_request(self, request: Any) -> ValidationResult:
        """
        Validate a scan request.

        Args:
            request: Object exposing base_ip, start_range, end_range, ports,
                timeout_ms and concurrency_limit (normally a ScanRequest)

        Returns:
            ValidationResult listing every problem found
        """
        errors: List[str] = []
        errors.extend(self._check_base_ip(getattr(request, "base_ip", None)))
        errors.extend(self._check_range(getattr(request, "start_range", None),
                                        getattr(request, "end_range", None)))
        errors.extend(self._check_ports(getattr(request, "ports", None)))
        errors.extend(self._check_bounds("Timeout", getattr(request, "timeout_ms", None),
                                         MIN_TIMEOUT_MS, MAX_TIMEOUT_MS, unit=" ms"))
        errors.extend(self._check_bounds("Concurrency limit", getattr(request, "concurrency_limit", None),
                                         MIN_CONCURRENCY, MAX_CONCURRENCY))

        if errors:
            self.logger.debug(f"Scan request rejected with {len(errors)} error(s)")
        return ValidationResult(is_valid=not errors, errors=errors)

    def _check_base_ip(self, base_ip: Any) -> List[str]:
        if not isinstance(base_ip, str):
            return ["Base IP must be a string of three dotted octets, e.g. 192.168.1"]
        match = _BASE_IP_PATTERN.match(base_ip)
        if not match:
            return [f"Invalid base IP '{base_ip}': expected three dotted octets, e.g. 192.168.1"]
        bad = [octet for octet in match.groups() if int(octet) > 255]
        if bad:
            return [f"Invalid base IP '{base_ip}': octets must be between 0 and 255"]
        return []

    def _check_range(self, start: Any, end: Any) -> List[str]:
        errors = []
        for label, value in (("Start range", start), ("End range", end)):
            if not _is_int(value):
                errors.append(f"{label} must be an integer")
            elif not MIN_HOST_OCTET <= value <= MAX_HOST_OCTET:
                errors.append(f"{label} must be between {MIN_HOST_OCTET} and {MAX_HOST_OCTET}, got {value}")
        if not errors and start > end:
            errors.append(f"Start range ({start}) must not exceed end range ({end})")
        return errors

    def _check_ports(self, ports: Any) -> List[str]:
        if ports is None or isinstance(ports, (str, bytes)):
            return ["Ports must be a list of integers"]
        ports = list(ports)
        if not ports:
            return ["At least one port is required"]
        invalid = [port for port in ports if not _is_int(port) or not MIN_PORT <= port <= MAX_PORT]
        if invalid:
            shown = ", ".join(repr(port) for port in invalid[:5])
            return [f"Ports must be integers between {MIN_PORT} and {MAX_PORT}; invalid: {shown}"]
        return []

    def _check_bounds(self, label: str, value: Any, low: int, high: int, unit: str = "") -> List[str]:
        if not _is_int(value):
            return [f"{label} must be an integer"]
        if not low <= value <= high:
            return [f"{label} must be between {low}{unit} and {high}{unit}, got {value}{unit}"]
        return []

    def parse_port_spec(self, port_spec: str) -> List[int]:
        """
        Parse a port specification such as "22,80,8000-8010".

        Args:
            port_spec: Comma separated ports and inclusive ranges

        Returns:
            Sorted list of unique ports

        Raises:
            ValueError: If an entry is not a port, or a range is reversed or out of bounds
        """
        ports = set()
        for part in port_spec.split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                low_text, high_text = part.split("-", 1)
                low, high = int(low_text), int(high_text)
                if low > high:
                    raise ValueError(f"Reversed port range: {part}")
                candidates = range(low, high + 1)
            else:
                candidates = [int(part)]
            for port in candidates:
                if not MIN_PORT <= port <= MAX_PORT:
                    raise ValueError(f"Port out of range: {port}")
                ports.add(port)
        if not ports:
            raise ValueError("Port specification is empty")
        return sorted(ports)


_default_validator: Optional[NetworkValidator] = None


def validate(request: Any) -> ValidationResult:
    """Validate a scan request with a shared NetworkValidator."""
    global _default_validator
    if _default_validator is None:
        _default_validator = NetworkValidator()
    return _default_validator.validate_scan_request(request)
