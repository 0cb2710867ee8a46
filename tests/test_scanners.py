"""
Tests for the nmap probe provider and provider selection
"""

import unittest
from unittest.mock import MagicMock

import nmap

from lan_discovery.core.data_models import ProbeResult
from lan_discovery.scanners.nmap_scanner import NMAPScanner
from lan_discovery.scanners.scanner_factory import select_scanner
from lan_discovery.scanners.socket_scanner import SocketScanner
from lan_discovery.utils.error_handler import ErrorHandler, ToolValidator
from tests.fakes import which_from


def nmap_result(ip: str, state: str = "up", tcp=None) -> dict:
    host = {"status": {"state": state, "reason": "syn-ack"}}
    if tcp is not None:
        host["tcp"] = tcp
    return {"nmap": {"scanstats": {}}, "scan": {ip: host}}


class TestNMAPScanner(unittest.TestCase):
    """Test the NMAPScanner class"""

    def make_scanner(self, scan_result=None, side_effect=None) -> NMAPScanner:
        self.port_scanner = MagicMock()
        self.port_scanner.scan.return_value = scan_result
        self.port_scanner.scan.side_effect = side_effect
        return NMAPScanner(tool_validator=ToolValidator(which=which_from(["nmap"])),
                           scanner_factory=lambda: self.port_scanner)

    def test_probe_alive(self):
        scanner = self.make_scanner(nmap_result("192.168.1.5"))
        result = scanner.probe("192.168.1.5", 1000)
        self.assertTrue(result.alive)
        self.assertIsNotNone(result.latency_ms)
        self.assertIsNone(scanner.guess_os(result))
        arguments = self.port_scanner.scan.call_args.kwargs["arguments"]
        self.assertIn("-sn", arguments)
        self.assertIn("--host-timeout 1000ms", arguments)

    def test_probe_host_missing_from_result(self):
        scanner = self.make_scanner({"nmap": {}, "scan": {}})
        self.assertEqual(scanner.probe("192.168.1.6", 1000), ProbeResult.dead())

    def test_probe_nmap_error(self):
        scanner = self.make_scanner(side_effect=nmap.PortScannerError("nmap crashed"))
        self.assertFalse(scanner.probe("192.168.1.7", 1000).alive)

    def test_scan_ports(self):
        tcp = {22: {"state": "open"}, 80: {"state": "closed"}, 443: {"state": "open"}}
        scanner = self.make_scanner(nmap_result("192.168.1.5", tcp=tcp))
        self.assertEqual(scanner.scan_ports("192.168.1.5", [443, 80, 22, 22], 1000), [22, 443])
        self.assertEqual(self.port_scanner.scan.call_args.kwargs["ports"], "22,80,443")
        self.assertIn("-sT", self.port_scanner.scan.call_args.kwargs["arguments"])

    def test_scan_ports_failure(self):
        scanner = self.make_scanner(side_effect=RuntimeError("xml parse error"))
        self.assertEqual(scanner.scan_ports("192.168.1.5", [22], 1000), [])

    def test_scan_no_ports(self):
        scanner = self.make_scanner()
        self.assertEqual(scanner.scan_ports("192.168.1.5", [], 1000), [])
        self.port_scanner.scan.assert_not_called()

    def test_is_available(self):
        self.assertTrue(self.make_scanner().is_available())
        self.assertFalse(NMAPScanner(tool_validator=ToolValidator(which=which_from([]))).is_available())


class TestSelectScanner(unittest.TestCase):
    """Test capability-based provider selection"""

    def select(self, preference: str, *tools):
        self.error_handler = ErrorHandler()
        validator = ToolValidator(self.error_handler, which=which_from(tools))
        return select_scanner(preference, validator)

    def test_auto_prefers_ping(self):
        self.assertIsInstance(self.select("auto", "ping", "nmap"), SocketScanner)

    def test_auto_without_ping_uses_nmap(self):
        self.assertIsInstance(self.select("auto", "nmap"), NMAPScanner)

    def test_nmap_requested(self):
        self.assertIsInstance(self.select("nmap", "ping", "nmap"), NMAPScanner)

    def test_missing_nmap_falls_back(self):
        """A requested but missing nmap is reported and replaced by sockets"""
        self.assertIsInstance(self.select("nmap", "ping"), SocketScanner)
        self.assertEqual(self.error_handler.get_error_summary(), {"tool_missing_error": 1})

    def test_socket_requested(self):
        self.assertIsInstance(self.select("socket", "ping", "nmap"), SocketScanner)


if __name__ == "__main__":
    unittest.main(verbosity=2)
