"""
Probe provider selection.

The provider is chosen once, at startup, from the tools actually installed
on the machine; the orchestrator never branches on the platform afterwards.
"""

from typing import Optional

from ..utils.error_handler import ToolValidator
from ..utils.logger import Logger, get_logger
from .base_scanner import BaseScanner
from .nmap_scanner import NMAPScanner
from .socket_scanner import SocketScanner


def select_scanner(preference: str = "auto", tool_validator: Optional[ToolValidator] = None,
                   logger: Optional[Logger] = None, port_workers: int = 32) -> BaseScanner:
    """
    Build the probe provider for this machine.

    Args:
        preference: "auto", "socket" or "nmap"
        tool_validator: Tool detection, shared with the lookup strategies
        logger: Logger for selection messages
        port_workers: Concurrent connection attempts per host for the socket provider

    Returns:
        The selected BaseScanner. "auto" prefers ping + sockets (the only
        provider that reports TTLs), then nmap; a requested but missing nmap
        falls back to sockets with a warning.
    """
    logger = logger or get_logger("ScannerFactory")
    tool_validator = tool_validator or ToolValidator()
    ping_available = tool_validator.is_available("ping")
    nmap_available = tool_validator.is_available("nmap")

    if preference == "nmap":
        if nmap_available:
            logger.debug("Using nmap probe provider")
            return NMAPScanner(tool_validator=tool_validator)
        logger.warning("nmap requested but not installed, falling back to socket provider")
        tool_validator.validate_tools(["nmap"])
    elif preference == "auto" and not ping_available and nmap_available:
        logger.info("ping not found, using nmap probe provider")
        return NMAPScanner(tool_validator=tool_validator)

    if not ping_available:
        logger.warning("ping not found: liveness probes will report every host as unreachable")
        tool_validator.validate_tools(["ping"])

    logger.debug("Using socket probe provider")
    return SocketScanner(port_workers=port_workers)
