"""
Host liveness probing with the system ping command.

One echo request is sent per host. Besides alive/dead the reply yields the
round-trip latency and the TTL of the reply packet, which is the input of
the TTL-based operating system guess.
"""

import math
import platform
import re
import subprocess
import time
from typing import Callable, Optional

from ..core.data_models import ProbeResult
from ..utils.logger import Logger, get_logger

_LATENCY_PATTERN = re.compile(r"time\s*[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)
_TTL_PATTERN = re.compile(r"ttl[=:]?\s*(\d+)", re.IGNORECASE)

# Extra seconds granted to the ping process on top of its own timeout
# before it is killed.
_SUBPROCESS_GRACE_S = 1.0

# (ceiling, os) pairs; the first ceiling >= ttl wins.
_TTL_OS_CEILINGS = (
    (64, "Linux/Unix"),
    (128, "Windows"),
    (255, "Solaris/AIX"),
)

_FAILURE_INDICATORS = (
    "destination host unreachable",
    "destination net unreachable",
    "no route to host",
    "network is unreachable",
    "request timed out",
    "could not find host",
    "general failure",
    "transmit failed",
    "name or service not known",
    "temporary failure in name resolution",
    "100% packet loss",
    "100.0% packet loss",
    "received = 0",
)


def guess_os_from_ttl(ttl: Optional[int]) -> Optional[str]:
    """
    Guess the operating system family from the TTL of a reply.

    Hosts start from a platform-specific initial TTL (64, 128 or 255) which
    only decreases along the path, so the smallest ceiling not below the
    observed value identifies the family.

    Args:
        ttl: Observed TTL, or None when unknown

    Returns:
        "Linux/Unix", "Windows", "Solaris/AIX", or None
    """
    if ttl is None:
        return None
    for ceiling, os_name in _TTL_OS_CEILINGS:
        if ttl <= ceiling:
            return os_name
    return None


class HostProber:
    """
    Liveness prober wrapping one ``ping`` invocation per host.
    """

    def __init__(self, logger: Optional[Logger] = None, system: Optional[str] = None,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        """
        Initialize the HostProber.

        Args:
            logger: Logger instance for probe diagnostics
            system: Platform name ("linux", "darwin", "windows"); detected when None
            runner: Function with the signature of subprocess.run
        """
        self.logger = logger or get_logger("HostProber")
        self.system = (system or platform.system()).lower()
        self._run = runner

    def build_command(self, ip: str, timeout_ms: int) -> list:
        """Build the ping command line for the current platform."""
        if self.system == "windows":
            return ["ping", "-n", "1", "-w", str(timeout_ms), ip]
        if self.system == "darwin":
            # BSD ping takes the reply wait time in milliseconds
            return ["ping", "-c", "1", "-W", str(timeout_ms), ip]
        # iputils ping takes whole seconds
        return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), ip]

    def probe(self, ip: str, timeout_ms: int) -> ProbeResult:
        """
        Send one echo request and wait at most ``timeout_ms`` for the reply.

        Args:
            ip: Address to probe
            timeout_ms: Probe budget in milliseconds

        Returns:
            ProbeResult with latency and TTL when the host answered, otherwise
            a dead result. Never raises for timeouts or a missing ping binary.
        """
        cmd = self.build_command(ip, timeout_ms)
        started = time.monotonic()

        try:
            result = self._run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000 + _SUBPROCESS_GRACE_S,
            )
        except subprocess.TimeoutExpired:
            self.logger.debug(f"Ping timeout: {ip}")
            return ProbeResult.dead()
        except OSError as e:
            self.logger.debug(f"Ping could not be executed for {ip}: {e}")
            return ProbeResult.dead()

        elapsed_ms = (time.monotonic() - started) * 1000
        output = (result.stdout or "") + (result.stderr or "")

        if not self.is_reply(output, ip, result.returncode):
            self.logger.debug(f"No reply from {ip}")
            return ProbeResult.dead()

        latency_ms = self.parse_latency(output)
        return ProbeResult(
            alive=True,
            latency_ms=latency_ms if latency_ms is not None else round(elapsed_ms, 2),
            ttl=self.parse_ttl(output),
        )

    def is_reply(self, output: str, ip: str, returncode: int) -> bool:
        """
        Decide from the ping output whether the host itself answered.

        Windows ping exits 0 for "Destination host unreachable" sent by a
        router, so the output is inspected rather than trusting the exit code.
        """
        if not output:
            return False
        output_lower = output.lower()

        if any(indicator in output_lower for indicator in _FAILURE_INDICATORS):
            return False

        has_reply = "ttl" in output_lower and (
            f"from {ip}" in output_lower or "bytes from" in output_lower or "time" in output_lower
        )
        if self.system == "windows":
            return has_reply
        return returncode == 0 and has_reply

    @staticmethod
    def parse_latency(output: str) -> Optional[float]:
        match = _LATENCY_PATTERN.search(output)
        return float(match.group(1)) if match else None

    @staticmethod
    def parse_ttl(output: str) -> Optional[int]:
        match = _TTL_PATTERN.search(output)
        return int(match.group(1)) if match else None
