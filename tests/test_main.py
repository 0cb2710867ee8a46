"""
Tests for the command line interface
"""

import signal
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

from lan_discovery import main as cli
from lan_discovery.core.data_models import ScanMetadata, ScanResult, ScanStatus
from lan_discovery.core.scanner_orchestrator import ScanOrchestrator
from tests.fakes import FakeResolver, FakeScanner


class TestCommandLine(unittest.TestCase):
    """Test main() end to end with fake providers"""

    def setUp(self):
        self.saved_handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        self.tmp = tempfile.TemporaryDirectory()
        preflight = patch.object(cli.LanDiscoveryApp, "_perform_preflight_checks", return_value=True)
        preflight.start()
        self.addCleanup(preflight.stop)

    def tearDown(self):
        for sig, handler in self.saved_handlers.items():
            signal.signal(sig, handler)
        self.tmp.cleanup()

    def fake_orchestrator(self, **kwargs) -> ScanOrchestrator:
        self.scanner = FakeScanner(alive={"192.168.1.1": 64, "192.168.1.3": 128},
                                   open_ports={"192.168.1.1": [80]})
        return ScanOrchestrator(scanner=self.scanner, resolver=FakeResolver(), **kwargs)

    def test_successful_scan(self):
        with patch.object(cli, "ScanOrchestrator", side_effect=self.fake_orchestrator):
            code = cli.main(["--base-ip", "192.168.1", "--start", "1", "--end", "4", "--ports", "22,80",
                             "--timeout", "200"])

        self.assertEqual(code, cli.EXIT_OK)
        self.assertEqual(sorted(self.scanner.probed), [f"192.168.1.{octet}" for octet in range(1, 5)])
        self.assertEqual(sorted(self.scanner.port_scanned), ["192.168.1.1", "192.168.1.3"])

    def test_invalid_range_exits_with_configuration_error(self):
        with patch.object(cli, "ScanOrchestrator", side_effect=self.fake_orchestrator):
            code = cli.main(["--base-ip", "192.168.1", "--start", "10", "--end", "5"])
        self.assertEqual(code, cli.EXIT_CONFIGURATION_ERROR)

    def test_invalid_port_spec(self):
        code = cli.main(["--base-ip", "192.168.1", "--ports", "22,http"])
        self.assertEqual(code, cli.EXIT_CONFIGURATION_ERROR)

    def test_missing_config_dir(self):
        code = cli.main(["--base-ip", "192.168.1", "--config-dir", str(Path(self.tmp.name) / "missing")])
        self.assertEqual(code, cli.EXIT_CONFIGURATION_ERROR)

    def test_undetectable_network(self):
        with patch.object(cli.NetworkDetector, "detect_local_network", return_value=None):
            self.assertEqual(cli.main([]), cli.EXIT_CONFIGURATION_ERROR)

    def test_cancelled_scan_exit_code(self):
        metadata = ScanMetadata(started_at=datetime.now(), duration_ms=5.0, hosts_scanned=3, hosts_alive=0,
                                status=ScanStatus.CANCELLED, range_key=("192.168.1", 1, 20), provider="fake")
        orchestrator = MagicMock(provider_name="fake")
        orchestrator.scan_network.return_value = ScanResult(hosts=(), metadata=metadata)
        with patch.object(cli, "ScanOrchestrator", return_value=orchestrator):
            code = cli.main(["--base-ip", "192.168.1", "--end", "20"])
        self.assertEqual(code, cli.EXIT_CANCELLED)

    def test_failed_preflight_stops_unless_skipped(self):
        with patch.object(cli.LanDiscoveryApp, "_perform_preflight_checks", return_value=False):
            self.assertEqual(cli.main(["--base-ip", "192.168.1", "--end", "2"]), cli.EXIT_FAILURE)
            with patch.object(cli, "ScanOrchestrator", side_effect=self.fake_orchestrator):
                code = cli.main(["--base-ip", "192.168.1", "--end", "2", "--skip-checks"])
        self.assertEqual(code, cli.EXIT_OK)


class TestSignalHandling(unittest.TestCase):
    """Test cooperative cancellation on signals"""

    def test_first_signal_cancels_second_exits(self):
        app = cli.LanDiscoveryApp()
        app.orchestrator = MagicMock()

        app._signal_handler(signal.SIGINT, None)
        app.orchestrator.cancel_scan.assert_called_once()

        with self.assertRaises(SystemExit) as ctx:
            app._signal_handler(signal.SIGTERM, None)
        self.assertEqual(ctx.exception.code, cli.EXIT_CANCELLED)


if __name__ == "__main__":
    unittest.main(verbosity=2)
