"""
Tests for local network detection and address helpers
"""

import socket
import unittest
from collections import namedtuple
from unittest.mock import patch

from lan_discovery.core.network_detector import NetworkDetector
from lan_discovery.utils.network_utils import extract_mac, normalize_mac, scan_range_for, split_ip

Address = namedtuple("Address", ["family", "address", "netmask"])
Stats = namedtuple("Stats", ["isup"])


def ipv4(address: str, netmask: str) -> Address:
    return Address(socket.AF_INET, address, netmask)


class TestNetworkDetector(unittest.TestCase):
    """Test the NetworkDetector class"""

    def make_detector(self, addresses, down=()) -> NetworkDetector:
        stats = {name: Stats(isup=name not in down) for name in addresses}
        return NetworkDetector(interface_addresses=lambda: addresses, interface_stats=lambda: stats)

    def test_prefers_physical_interface(self):
        detector = self.make_detector({
            "lo": [ipv4("127.0.0.1", "255.0.0.0")],
            "docker0": [ipv4("172.17.0.1", "255.255.0.0")],
            "eth0": [ipv4("192.168.1.23", "255.255.255.0"), Address(socket.AF_INET6, "fe80::1", None)],
        })
        network = detector.detect_local_network()
        self.assertEqual(network.interface, "eth0")
        self.assertEqual((network.base_ip, network.start_range, network.end_range), ("192.168.1", 1, 254))
        self.assertEqual(network.cidr, "192.168.1.0/24")

    def test_skips_down_and_link_local(self):
        detector = self.make_detector({
            "eth0": [ipv4("192.168.1.23", "255.255.255.0")],
            "wlan0": [ipv4("169.254.10.2", "255.255.0.0")],
        }, down={"eth0"})
        self.assertEqual(detector.get_all_networks(), [])

    def test_narrow_network_keeps_its_bounds(self):
        detector = self.make_detector({"enp3s0": [ipv4("10.1.2.35", "255.255.255.240")]})
        network = detector.detect_local_network()
        self.assertEqual((network.base_ip, network.start_range, network.end_range), ("10.1.2", 33, 46))

    @patch("lan_discovery.core.network_detector.socket.socket")
    def test_socket_fallback(self, mock_socket):
        """Without usable interfaces the outbound route address is used"""
        mock_socket.return_value.__enter__.return_value.getsockname.return_value = ("10.0.0.7", 50000)
        network = self.make_detector({}).detect_local_network()
        self.assertEqual(network.interface, "auto-detected")
        self.assertEqual(network.base_ip, "10.0.0")

    @patch("lan_discovery.core.network_detector.socket.socket")
    def test_nothing_detected(self, mock_socket):
        mock_socket.return_value.__enter__.return_value.connect.side_effect = OSError("Network is unreachable")
        self.assertIsNone(self.make_detector({}).detect_local_network())


class TestNetworkUtils(unittest.TestCase):
    """Test the address helper functions"""

    def test_split_ip(self):
        self.assertEqual(split_ip("192.168.1.20"), ("192.168.1", 20))
        with self.assertRaises(ValueError):
            split_ip("192.168.1")

    def test_scan_range_for_wide_network(self):
        self.assertEqual(scan_range_for("10.20.30.40", "255.255.0.0"), ("10.20.30", 1, 254))

    def test_normalize_mac(self):
        self.assertEqual(normalize_mac("a-b-c-d-e-f"), "0A:0B:0C:0D:0E:0F")
        self.assertIsNone(normalize_mac("not-a-mac"))

    def test_extract_mac_skips_placeholders(self):
        text = "192.168.1.9 ff:ff:ff:ff:ff:ff\n192.168.1.9 00-1a-11-22-33-44 dynamic"
        self.assertEqual(extract_mac(text), "00:1A:11:22:33:44")
        self.assertIsNone(extract_mac("192.168.1.9 00:00:00:00:00:00"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
