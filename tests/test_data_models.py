"""
Tests for the scan data models
"""

import unittest
from datetime import datetime

from lan_discovery.core.data_models import (
    DEFAULT_SCAN_PORTS, DeviceIdentity, HostResult, ScanMetadata, ScanProgress, ScanRequest, ScanResult,
    ScanStatus
)
from lan_discovery.utils.error_handler import ConfigurationError


class TestScanRequest(unittest.TestCase):
    """Test the ScanRequest model"""

    def test_from_dict_accepts_camel_case(self):
        """External camelCase keys map onto the request fields"""
        request = ScanRequest.from_dict({"baseIp": "10.0.0", "startRange": 5, "endRange": 9,
                                         "ports": [443, 22], "timeout": 500, "concurrencyLimit": 4})
        self.assertEqual(request, ScanRequest("10.0.0", 5, 9, (443, 22), 500, 4))

    def test_from_dict_applies_defaults(self):
        request = ScanRequest.from_dict({"base_ip": "10.0.0", "start_range": 1, "end_range": 2},
                                        defaults={"timeout_ms": 750})
        self.assertEqual(request.timeout_ms, 750)
        self.assertEqual(request.ports, DEFAULT_SCAN_PORTS)

    def test_from_dict_missing_fields(self):
        with self.assertRaises(ConfigurationError) as ctx:
            ScanRequest.from_dict({"base_ip": "10.0.0"})
        self.assertEqual(len(ctx.exception.errors), 2)

    def test_from_dict_rejects_non_mapping(self):
        with self.assertRaises(ConfigurationError):
            ScanRequest.from_dict(["10.0.0", 1, 2])

    def test_from_dict_rejects_port_string(self):
        with self.assertRaises(ConfigurationError):
            ScanRequest.from_dict({"base_ip": "10.0.0", "start_range": 1, "end_range": 2, "ports": "22,80"})

    def test_addresses_and_key(self):
        request = ScanRequest("192.168.1", 8, 10)
        self.assertEqual(request.ip_addresses(), ["192.168.1.8", "192.168.1.9", "192.168.1.10"])
        self.assertEqual(request.host_count, 3)
        self.assertEqual(request.range_key, ("192.168.1", 8, 10))

    def test_base_ip_whitespace_is_stripped(self):
        """Padding around the base IP never reaches the generated addresses"""
        request = ScanRequest(" 192.168.1 ", 1, 2)
        self.assertEqual(request.base_ip, "192.168.1")
        self.assertEqual(request.ip_addresses(), ["192.168.1.1", "192.168.1.2"])
        self.assertEqual(request.range_key, ("192.168.1", 1, 2))

        from_mapping = ScanRequest.from_dict({"baseIp": "10.0.0\t", "startRange": 3, "endRange": 3})
        self.assertEqual(from_mapping.ip_addresses(), ["10.0.0.3"])


class TestResultSerialization(unittest.TestCase):
    """Test the to_dict() views used for external persistence"""

    def test_host_result_to_dict(self):
        identity = DeviceIdentity(ip="192.168.1.4", hostname="nas.lan", confidence=35, sources=("DNS",),
                                  device_type="Unknown")
        host = HostResult(ip="192.168.1.4", latency_ms=0.8, open_ports=(22, 445),
                          services={22: "SSH", 445: "SMB"}, os_guess="Linux/Unix", identity=identity)
        data = host.to_dict()
        self.assertEqual(data["services"], {"22": "SSH", "445": "SMB"})
        self.assertEqual(data["open_ports"], [22, 445])
        self.assertEqual(data["identity"]["sources"], ["DNS"])

    def test_host_result_services_are_read_only(self):
        services = {80: "HTTP"}
        host = HostResult(ip="192.168.1.1", open_ports=(80,), services=services)
        services[22] = "SSH"

        self.assertEqual(dict(host.services), {80: "HTTP"})
        with self.assertRaises(TypeError):
            host.services[443] = "HTTPS"

    def test_scan_result_to_dict(self):
        metadata = ScanMetadata(started_at=datetime(2024, 1, 2, 3, 4, 5), duration_ms=12.5, hosts_scanned=5,
                                hosts_alive=0, status=ScanStatus.CANCELLED, range_key=("10.0.0", 1, 5))
        result = ScanResult(hosts=(), metadata=metadata)
        self.assertTrue(result.cancelled)
        data = result.to_dict()
        self.assertEqual(data["metadata"]["status"], "cancelled")
        self.assertEqual(data["metadata"]["started_at"], "2024-01-02T03:04:05")

    def test_progress_percentage(self):
        progress = ScanProgress(completed=1, total=3, current_ip="10.0.0.1", elapsed_ms=10.0,
                                estimated_remaining_ms=20.0, hosts_per_second=100.0)
        self.assertEqual(progress.percentage, 33.3)
        self.assertEqual(progress.to_dict()["percentage"], 33.3)


if __name__ == "__main__":
    unittest.main(verbosity=2)
