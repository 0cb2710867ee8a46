"""
Tests for the identity evidence lookup strategies
"""

import socket
import subprocess
import unittest
from unittest.mock import MagicMock, patch

import requests

from lan_discovery.core.lookup_strategies import (
    LOCALLY_ADMINISTERED, ArpCommandLookup, MacVendorsApiLookup, MDNSLookup, NetBIOSLookup, NullNameService,
    NullNeighborLookup, OUIVendorLookup, ReverseDNSLookup, create_name_service, create_neighbor_lookup,
    create_vendor_lookup
)
from lan_discovery.utils.error_handler import ResolutionChannelFailure, ToolValidator
from tests.fakes import completed, which_from

NMBLOOKUP_OUTPUT = """Looking up status of 192.168.1.20
\tWORKGROUP       <00> - <GROUP> B <ACTIVE>
\tDESKTOP-AB12    <00> -         B <ACTIVE>
\tDESKTOP-AB12    <20> -         B <ACTIVE>

\tMAC Address = 00-00-00-00-00-00
"""


class TestReverseDNSLookup(unittest.TestCase):
    """Test the ReverseDNSLookup strategy"""

    def test_hostname_found(self):
        lookup = ReverseDNSLookup(resolver=lambda ip: ("printer.lan", [], [ip]))
        self.assertEqual(lookup.lookup("192.168.1.30", 1.0), "printer.lan")

    def test_no_ptr_record(self):
        """A missing PTR record is no evidence rather than a failure"""
        resolver = MagicMock(side_effect=socket.herror(1, "Unknown host"))
        self.assertIsNone(ReverseDNSLookup(resolver=resolver).lookup("192.168.1.30", 1.0))

    def test_address_echoed_back(self):
        lookup = ReverseDNSLookup(resolver=lambda ip: (ip, [], [ip]))
        self.assertIsNone(lookup.lookup("192.168.1.30", 1.0))

    @patch("lan_discovery.utils.error_handler.time.sleep")
    def test_timeout_retried_once(self, mock_sleep):
        resolver = MagicMock(side_effect=[socket.timeout("timed out"), ("nas.lan", [], [])])
        self.assertEqual(ReverseDNSLookup(resolver=resolver).lookup("192.168.1.31", 1.0), "nas.lan")
        self.assertEqual(resolver.call_count, 2)
        mock_sleep.assert_called_once_with(0.3)


class TestArpCommandLookup(unittest.TestCase):
    """Test the ArpCommandLookup strategy"""

    def test_mac_from_ip_neigh(self):
        runner = MagicMock(return_value=completed("192.168.1.20 dev eth0 lladdr aa:bb:cc:0d:ee:ff REACHABLE\n"))
        lookup = ArpCommandLookup([["ip", "neigh", "show"]], runner=runner)
        self.assertEqual(lookup.lookup("192.168.1.20", 1.0), "AA:BB:CC:0D:EE:FF")
        self.assertEqual(runner.call_args.args[0], ["ip", "neigh", "show", "192.168.1.20"])

    def test_falls_back_to_next_command(self):
        runner = MagicMock(side_effect=[FileNotFoundError("ip"),
                                        completed("? (192.168.1.20) at 0:1b:63:a:b:c on en0 ifscope [ethernet]")])
        lookup = ArpCommandLookup([["ip", "neigh", "show"], ["arp", "-n"]], runner=runner)
        self.assertEqual(lookup.lookup("192.168.1.20", 1.0), "00:1B:63:0A:0B:0C")

    def test_incomplete_entry(self):
        runner = MagicMock(return_value=completed("192.168.1.20 dev eth0  INCOMPLETE\n"))
        self.assertIsNone(ArpCommandLookup([["ip", "neigh", "show"]], runner=runner).lookup("192.168.1.20", 1.0))

    def test_every_command_failing_raises(self):
        runner = MagicMock(side_effect=subprocess.TimeoutExpired(cmd="arp", timeout=1))
        lookup = ArpCommandLookup([["arp", "-n"]], runner=runner)
        with self.assertRaises(ResolutionChannelFailure):
            lookup.lookup("192.168.1.20", 1.0)


class TestNameServiceLookups(unittest.TestCase):
    """Test the NetBIOS and mDNS strategies"""

    def test_netbios_parse_skips_group_names(self):
        self.assertEqual(NetBIOSLookup.parse(NMBLOOKUP_OUTPUT), "DESKTOP-AB12")

    def test_netbios_no_names(self):
        self.assertIsNone(NetBIOSLookup.parse("No reply from 192.168.1.20\n"))

    def test_netbios_lookup_runs_command(self):
        runner = MagicMock(return_value=completed(NMBLOOKUP_OUTPUT))
        lookup = NetBIOSLookup(["nmblookup", "-A"], runner=runner)
        self.assertEqual(lookup.lookup("192.168.1.20", 2.0), "DESKTOP-AB12")
        self.assertEqual(runner.call_args.kwargs["timeout"], 2.0)

    def test_mdns_lookup(self):
        runner = MagicMock(return_value=completed("192.168.1.40\tlivingroom-tv.local.\n"))
        self.assertEqual(MDNSLookup(runner=runner).lookup("192.168.1.40", 1.0), "livingroom-tv.local")


class TestVendorLookups(unittest.TestCase):
    """Test the OUI table and the HTTP vendor service"""

    def test_local_table(self):
        self.assertEqual(OUIVendorLookup().lookup("00:00:0c:12:34:56", 1.0), "Cisco Systems")

    def test_locally_administered_address(self):
        """Randomized addresses are labelled without asking the external service"""
        external = MagicMock()
        lookup = OUIVendorLookup(external=external)
        self.assertEqual(lookup.lookup("DA:A1:19:00:11:22", 1.0), LOCALLY_ADMINISTERED)
        external.lookup.assert_not_called()

    def test_external_fallback(self):
        external = MagicMock()
        external.lookup.return_value = "Intel Corporate"
        lookup = OUIVendorLookup(table={}, external=external)
        self.assertEqual(lookup.lookup("3c-97-0e-11-22-33", 1.0), "Intel Corporate")
        external.lookup.assert_called_once_with("3C:97:0E:11:22:33", 1.0)

    def test_unknown_prefix_without_external(self):
        self.assertIsNone(OUIVendorLookup(table={}).lookup("3C:97:0E:11:22:33", 1.0))

    def test_api_lookup(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=200, text="Apple, Inc.\n")
        lookup = MacVendorsApiLookup("https://vendors.example/api", timeout_s=3, session=session)
        self.assertEqual(lookup.lookup("00:03:93:00:00:01", 1.0), "Apple, Inc.")
        session.get.assert_called_once_with("https://vendors.example/api/00:03:93:00:00:01", timeout=1.0)

    def test_api_unknown_vendor(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=404, text="Not Found")
        self.assertIsNone(MacVendorsApiLookup(session=session).lookup("3C:97:0E:11:22:33", 1.0))

    def test_api_errors_raise_channel_failure(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=429, text="Too Many Requests")
        with self.assertRaises(ResolutionChannelFailure):
            MacVendorsApiLookup(session=session).lookup("3C:97:0E:11:22:33", 1.0)

        session.get.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(ResolutionChannelFailure):
            MacVendorsApiLookup(session=session).lookup("3C:97:0E:11:22:33", 1.0)

    def test_create_vendor_lookup(self):
        self.assertIsNone(create_vendor_lookup().external)
        self.assertIsInstance(create_vendor_lookup(external_lookup=True).external, MacVendorsApiLookup)


class TestStrategySelection(unittest.TestCase):
    """Test the tool-based strategy factories"""

    def validator(self, *tools) -> ToolValidator:
        return ToolValidator(which=which_from(tools))

    def test_neighbor_lookup_on_linux(self):
        lookup = create_neighbor_lookup(self.validator("ip", "arp"), system="Linux")
        self.assertEqual(lookup.commands, [["ip", "neigh", "show"], ["arp", "-n"]])

    def test_neighbor_lookup_on_windows(self):
        lookup = create_neighbor_lookup(self.validator("arp"), system="Windows")
        self.assertEqual(lookup.commands, [["arp", "-a"]])

    def test_neighbor_lookup_without_tools(self):
        self.assertIsInstance(create_neighbor_lookup(self.validator(), system="Linux"), NullNeighborLookup)

    def test_name_service_selection(self):
        self.assertEqual(create_name_service(self.validator("nbtstat"), system="Windows").command,
                         ["nbtstat", "-A"])
        self.assertEqual(create_name_service(self.validator("nmblookup"), system="Linux").command,
                         ["nmblookup", "-A"])
        self.assertIsInstance(create_name_service(self.validator("avahi-resolve-address"), system="Linux"),
                              MDNSLookup)
        self.assertIsInstance(create_name_service(self.validator(), system="Darwin"), NullNameService)


if __name__ == "__main__":
    unittest.main(verbosity=2)
