"""
Tests for TCP connect port scanning
"""

import socket
import unittest
from unittest.mock import MagicMock, patch

from lan_discovery.scanners.port_scanner import PortScanner, map_services


class TestPortScanner(unittest.TestCase):
    """Test the PortScanner class"""

    def setUp(self):
        self.scanner = PortScanner(max_workers=8)

    def test_local_listener_is_open(self):
        """A listening loopback socket is reported, a closed port is not"""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as closed:
            closed.bind(("127.0.0.1", 0))
            closed_port = closed.getsockname()[1]

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(5)
            open_port = listener.getsockname()[1]
            result = self.scanner.scan_ports("127.0.0.1", [closed_port, open_port], 1000)

        self.assertEqual(result, [open_port])

    @patch("lan_discovery.scanners.port_scanner.socket.socket")
    def test_results_sorted_and_deduplicated(self, mock_socket):
        mock_sock = MagicMock()
        mock_sock.connect_ex.return_value = 0
        mock_socket.return_value.__enter__.return_value = mock_sock

        result = self.scanner.scan_ports("10.0.0.1", [443, 22, 80, 22], 1000)
        self.assertEqual(result, [22, 80, 443])
        self.assertEqual(mock_sock.connect_ex.call_count, 3)

    @patch("lan_discovery.scanners.port_scanner.socket.socket")
    def test_connect_timeout_is_half_the_budget(self, mock_socket):
        mock_sock = MagicMock()
        mock_sock.connect_ex.return_value = 111
        mock_socket.return_value.__enter__.return_value = mock_sock

        self.assertEqual(self.scanner.scan_ports("10.0.0.1", [22], 1000), [])
        mock_sock.settimeout.assert_called_once_with(0.5)

    @patch("lan_discovery.scanners.port_scanner.socket.socket")
    def test_socket_errors_never_raise(self, mock_socket):
        """Failures of any kind leave the port out of the result"""
        mock_socket.side_effect = OSError("Network is unreachable")
        self.assertEqual(self.scanner.scan_ports("10.0.0.1", [22, 80], 1000), [])

    def test_empty_port_list(self):
        self.assertEqual(self.scanner.scan_ports("10.0.0.1", [], 1000), [])


class TestMapServices(unittest.TestCase):
    """Test service name labelling"""

    def test_known_and_unknown_ports(self):
        self.assertEqual(map_services([22, 80, 3389, 9999]),
                         {22: "SSH", 80: "HTTP", 3389: "RDP", 9999: "Unknown"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
