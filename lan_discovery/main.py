"""
Main entry point for the LAN Discovery Engine.

This module provides the command-line interface for the discovery tool,
including argument parsing, pre-flight checks, progress display and
graceful cancellation on SIGINT/SIGTERM.
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config.config_loader import PROVIDERS, ConfigLoader, DiscoveryConfig
from .core.data_models import ScanProgress, ScanRequest, ScanResult
from .core.network_detector import NetworkDetector
from .core.scanner_orchestrator import EVENT_PROGRESS, ScanOrchestrator
from .utils.error_handler import ConfigurationError, ErrorHandler, ToolValidator
from .utils.logger import LogLevel, get_logger, set_log_level
from .utils.network_validator import NetworkValidator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_CANCELLED = 130

RESULT_COLUMNS = ("IP", "Hostname", "MAC", "Vendor", "Type", "OS", "Open ports", "Conf")
RESULT_WIDTHS = (15, 24, 17, 20, 16, 12, 20, 4)


class LanDiscoveryApp:
    """
    Main application class for the LAN Discovery Engine.

    Handles the CLI, pre-flight checks and the scan lifecycle.
    """

    def __init__(self):
        """Initialize the application."""
        self.logger = get_logger("LanDiscovery")
        self.error_handler = ErrorHandler(self.logger)
        self.tool_validator = ToolValidator(self.error_handler)
        self.orchestrator: Optional[ScanOrchestrator] = None
        self.shutdown_requested = False

    def _signal_handler(self, signum: int, frame) -> None:
        """
        Handle shutdown signals: the first one cancels the scan, a second one exits.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_names = {signal.SIGINT: "SIGINT", signal.SIGTERM: "SIGTERM"}
        signal_name = signal_names.get(signum, f"Signal {signum}")

        if not self.shutdown_requested:
            self.shutdown_requested = True
            self.logger.warning(f"Received {signal_name} - cancelling scan after the current batch...")
            if self.orchestrator is not None:
                self.orchestrator.cancel_scan()
        else:
            self.logger.error("Force shutdown requested - terminating immediately")
            sys.exit(EXIT_CANCELLED)

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _perform_preflight_checks(self, provider: str) -> bool:
        """
        Check the external tools used by the probe provider and the resolver.

        Missing optional tools only narrow the evidence gathered; a missing
        ping leaves the socket provider unable to find any host.

        Returns:
            bool: True if the tools needed for liveness probing are present
        """
        self.logger.section("PRE-FLIGHT CHECKS")

        liveness_tools = ["nmap"] if provider == "nmap" else ["ping"]
        if provider == "auto":
            liveness_tools = ["ping"] if self.tool_validator.is_available("ping") else ["nmap"]
        ok, missing = self.tool_validator.validate_tools(liveness_tools)

        optional_tools = ["arp", "ip", "nmblookup", "avahi-resolve-address"]
        _, missing_optional = self.tool_validator.validate_tools(optional_tools, report_missing=False)
        for tool in missing_optional:
            self.logger.debug(f"Optional tool {tool} not found")

        if ok:
            self.logger.success("Pre-flight checks passed")
        else:
            self.logger.warning(f"Missing liveness tools: {', '.join(missing)}")
        return ok

    def _build_config(self, args: argparse.Namespace) -> DiscoveryConfig:
        if args.config_dir:
            config_path = Path(args.config_dir)
            if not config_path.is_dir():
                raise ConfigurationError(f"Configuration directory does not exist: {args.config_dir}",
                                         errors=[f"Not a directory: {args.config_dir}"])
        config = ConfigLoader(args.config_dir).load()
        if args.provider:
            config.probe.provider = args.provider
        return config

    def _build_request(self, args: argparse.Namespace, config: DiscoveryConfig) -> ScanRequest:
        """
        Merge the command line with the configured and detected defaults.

        Raises:
            ConfigurationError: If the ports cannot be parsed or no base IP is known
        """
        base_ip, start, end = args.base_ip, args.start, args.end
        if base_ip is None:
            network = NetworkDetector(self.logger).detect_local_network()
            if network is None:
                raise ConfigurationError("Unable to detect the local network",
                                         errors=["Pass --base-ip explicitly, e.g. --base-ip 192.168.1"])
            self.logger.info(f"Detected network {network.cidr} on {network.interface}")
            base_ip = network.base_ip
            start = network.start_range if start is None else start
            end = network.end_range if end is None else end

        data: Dict[str, Any] = {
            "base_ip": base_ip,
            "start_range": 1 if start is None else start,
            "end_range": 254 if end is None else end,
        }
        if args.ports:
            try:
                data["ports"] = NetworkValidator(self.logger).parse_port_spec(args.ports)
            except ValueError as e:
                raise ConfigurationError(f"Invalid port specification: {args.ports}", errors=[str(e)]) from e
        if args.timeout is not None:
            data["timeout_ms"] = args.timeout
        if args.concurrency is not None:
            data["concurrency_limit"] = args.concurrency
        return ScanRequest.from_dict(data, defaults=config.request_defaults())

    def _on_progress(self, progress: ScanProgress) -> None:
        self.logger.progress_update(
            f"{progress.completed}/{progress.total} hosts ({progress.current_ip}), "
            f"{progress.hosts_per_second:.1f} hosts/s, ~{progress.estimated_remaining_ms / 1000:.0f}s left",
            percentage=progress.percentage,
        )

    def _run_scan(self, request: ScanRequest) -> ScanResult:
        """
        Run the scan on a worker thread so signal handlers stay responsive.

        Raises:
            Whatever scan_network raised
        """
        outcome: Dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["result"] = self.orchestrator.scan_network(request)
            except BaseException as e:
                outcome["error"] = e

        worker = threading.Thread(target=target, name="scan", daemon=True)
        worker.start()
        while worker.is_alive():
            worker.join(0.2)

        if "error" in outcome:
            raise outcome["error"]
        return outcome["result"]

    def _print_results(self, result: ScanResult) -> None:
        self.logger.section("DISCOVERED HOSTS")
        if not result.hosts:
            self.logger.info("No live hosts found")
            return

        self.logger.table_header(RESULT_COLUMNS, RESULT_WIDTHS)
        for host in result.hosts:
            identity = host.identity
            ports = ",".join(f"{port}/{host.services.get(port, '?')}" for port in host.open_ports)
            self.logger.table_row(
                (
                    host.ip,
                    identity.hostname or identity.description if identity else None,
                    identity.mac_address if identity else None,
                    identity.vendor if identity else None,
                    identity.device_type if identity else None,
                    host.os_guess,
                    ports or None,
                    identity.confidence if identity else 0,
                ),
                RESULT_WIDTHS,
                highlight=bool(host.open_ports),
            )

    def run(self, args: argparse.Namespace) -> int:
        """
        Run the LAN discovery application.

        Args:
            args: Parsed command line arguments

        Returns:
            int: Exit code (0 success, 2 configuration error, 130 cancelled, 1 other failure)
        """
        self._install_signal_handlers()
        try:
            config = self._build_config(args)
            if not self._perform_preflight_checks(config.probe.provider) and not args.skip_checks:
                self.logger.error("Pre-flight checks failed. Use --skip-checks to bypass.")
                return EXIT_FAILURE

            request = self._build_request(args, config)
            self.orchestrator = ScanOrchestrator(config=config, logger=self.logger,
                                                 error_handler=self.error_handler)
            self.orchestrator.on(EVENT_PROGRESS, self._on_progress)

            self.logger.scan_target(request.base_ip, request.start_range, request.end_range,
                                    request.ports, self.orchestrator.provider_name)
            if self.shutdown_requested:
                self.logger.info("Shutdown requested before scan start")
                return EXIT_CANCELLED

            self.logger.progress_start(f"Scanning {request.host_count} hosts...")
            result = self._run_scan(request)
            self.logger.progress_end()

            self._print_results(result)

            if result.cancelled:
                self.logger.warning(f"Scan cancelled: {result.metadata.hosts_alive} live host(s) "
                                    f"in {result.metadata.hosts_scanned} scanned")
                return EXIT_CANCELLED
            self.logger.success(f"Discovery completed: {result.metadata.hosts_alive} live host(s) "
                                f"in {result.metadata.duration_ms / 1000:.1f}s")
            return EXIT_OK

        except ConfigurationError as e:
            self.logger.progress_end()
            self.logger.error(str(e))
            for problem in e.errors:
                self.logger.error(f"  • {problem}")
            return EXIT_CONFIGURATION_ERROR
        except KeyboardInterrupt:
            self.logger.warning("Scan interrupted by user")
            return EXIT_CANCELLED
        except Exception as e:
            self.logger.error(f"LAN discovery failed: {e}", exception=e)
            return EXIT_FAILURE
        finally:
            summary = self.error_handler.get_error_summary()
            if summary:
                self.logger.debug("Error summary", **summary)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command line argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="lan-discovery",
        description="LAN Discovery Engine - host probing, port scanning and device identification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lan-discovery                                     # Scan the detected local /24
  lan-discovery --base-ip 192.168.1 --start 1 --end 50
  lan-discovery --ports 22,80,443,8000-8010         # Custom port list
  lan-discovery --provider nmap --concurrency 30    # Use nmap, 30 hosts per batch
        """
    )

    parser.add_argument("--base-ip", type=str,
                        help="First three octets of the network, e.g. 192.168.1. Defaults to the detected LAN")
    parser.add_argument("--start", type=int, help="First host octet to scan (default 1)")
    parser.add_argument("--end", type=int, help="Last host octet to scan (default 254)")
    parser.add_argument("--ports", type=str,
                        help="Comma separated ports and ranges, e.g. 22,80,8000-8010")
    parser.add_argument("--timeout", type=int, help="Per-host probe timeout in milliseconds")
    parser.add_argument("--concurrency", type=int, help="Hosts probed concurrently (batch size)")
    parser.add_argument("--provider", choices=PROVIDERS, help="Probe provider (default from configuration)")
    parser.add_argument("--config-dir", type=str,
                        help="Directory containing discovery_config.yml. Defaults to lan_discovery/config/")
    parser.add_argument("--skip-checks", action="store_true", help="Run even if pre-flight checks fail")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")
    parser.add_argument("--version", action="version", version=f"LAN Discovery Engine {__version__}")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the LAN Discovery Engine.

    Returns:
        int: Exit code
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_log_level(LogLevel.DEBUG)

    app = LanDiscoveryApp()
    return app.run(args)


if __name__ == "__main__":
    sys.exit(main())
