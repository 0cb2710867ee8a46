"""
Configuration loader for the LAN discovery engine.
Handles loading and validation of the YAML configuration file with fallback to defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.data_models import DEFAULT_CONCURRENCY_LIMIT, DEFAULT_SCAN_PORTS, DEFAULT_TIMEOUT_MS
from ..utils.logger import get_logger

DEFAULT_CONFIG_FILE = "discovery_config.yml"
PROVIDERS = ("auto", "socket", "nmap")


@dataclass
class ScanConfig:
    """Defaults applied to scan requests and the batch scheduler."""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    ports: List[int] = field(default_factory=lambda: list(DEFAULT_SCAN_PORTS))
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    batch_pause_ms: int = 50
    port_workers: int = 32


@dataclass
class CacheConfig:
    """Time-to-live of the two caches, in seconds."""
    range_ttl: int = 300
    identity_ttl: int = 600


@dataclass
class ResolverConfig:
    """Configuration for device identity resolution."""
    channel_timeout_ms: int = 3000
    batch_concurrency: int = 10
    external_vendor_lookup: bool = False
    vendor_api_url: str = "https://api.macvendors.com/"
    vendor_api_timeout: int = 3


@dataclass
class ProbeConfig:
    """Configuration for probe provider selection."""
    provider: str = "auto"


@dataclass
class DiscoveryConfig:
    """Complete engine configuration."""
    scan: ScanConfig = field(default_factory=ScanConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)

    def request_defaults(self) -> Dict[str, Any]:
        """Defaults for the optional fields of a ScanRequest."""
        return {
            "ports": tuple(self.scan.ports),
            "timeout_ms": self.scan.timeout_ms,
            "concurrency_limit": self.scan.concurrency_limit,
        }


class ConfigLoader:
    """
    Loads and validates the YAML configuration file of the discovery engine.
    Provides fallback to default configurations when the file or a section is missing.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize ConfigLoader.

        Args:
            config_dir: Directory containing configuration files.
                       Defaults to the config directory relative to this file.
        """
        if config_dir is None:
            self.config_dir = Path(__file__).parent
        else:
            self.config_dir = Path(config_dir)

        self.logger = get_logger("ConfigLoader")

    def load(self, config_file: str = DEFAULT_CONFIG_FILE) -> DiscoveryConfig:
        """
        Load the complete configuration from a YAML file.

        Args:
            config_file: Name of the configuration file inside config_dir

        Returns:
            DiscoveryConfig with loaded or default values
        """
        config_data = self._read_yaml(config_file)
        return DiscoveryConfig(
            scan=self.load_scan_config(config_data.get("scan")),
            cache=self.load_cache_config(config_data.get("cache")),
            resolver=self.load_resolver_config(config_data.get("resolver")),
            probe=self.load_probe_config(config_data.get("probe")),
        )

    def _read_yaml(self, config_file: str) -> Dict[str, Any]:
        config_path = self.config_dir / config_file

        if not config_path.exists():
            self.logger.warning(f"Config file not found at {config_path}. Using default configuration.")
            return {}

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.logger.error(f"Error parsing config file {config_path}: {e}")
            self.logger.warning("Using default configuration.")
            return {}
        except OSError as e:
            self.logger.error(f"Unable to read config file {config_path}: {e}")
            self.logger.warning("Using default configuration.")
            return {}

        if not isinstance(config_data, dict):
            self.logger.warning(f"Invalid config structure in {config_path}. Using default configuration.")
            return {}
        return config_data

    def _section(self, data: Any, name: str) -> Optional[Dict[str, Any]]:
        if data is None:
            self.logger.debug(f"No '{name}' section in configuration. Using defaults.")
            return None
        if not isinstance(data, dict):
            self.logger.warning(f"Invalid '{name}' section: expected a mapping. Using defaults.")
            return None
        return data

    def load_scan_config(self, data: Any) -> ScanConfig:
        """
        Build the scan section.

        Args:
            data: Parsed 'scan' mapping, or None

        Returns:
            ScanConfig object with loaded or default configuration
        """
        data = self._section(data, "scan")
        default = ScanConfig()
        if data is None:
            return default

        return ScanConfig(
            timeout_ms=self._validate_positive_int(data.get("timeout_ms", default.timeout_ms),
                                                   "scan.timeout_ms", default.timeout_ms),
            ports=self._validate_ports(data.get("ports", default.ports), default.ports),
            concurrency_limit=self._validate_positive_int(data.get("concurrency_limit", default.concurrency_limit),
                                                          "scan.concurrency_limit", default.concurrency_limit),
            batch_pause_ms=self._validate_non_negative_int(data.get("batch_pause_ms", default.batch_pause_ms),
                                                           "scan.batch_pause_ms", default.batch_pause_ms),
            port_workers=self._validate_positive_int(data.get("port_workers", default.port_workers),
                                                     "scan.port_workers", default.port_workers),
        )

    def load_cache_config(self, data: Any) -> CacheConfig:
        data = self._section(data, "cache")
        default = CacheConfig()
        if data is None:
            return default

        return CacheConfig(
            range_ttl=self._validate_positive_int(data.get("range_ttl", default.range_ttl),
                                                  "cache.range_ttl", default.range_ttl),
            identity_ttl=self._validate_positive_int(data.get("identity_ttl", default.identity_ttl),
                                                     "cache.identity_ttl", default.identity_ttl),
        )

    def load_resolver_config(self, data: Any) -> ResolverConfig:
        data = self._section(data, "resolver")
        default = ResolverConfig()
        if data is None:
            return default

        vendor_api_url = data.get("vendor_api_url", default.vendor_api_url)
        if not isinstance(vendor_api_url, str) or not vendor_api_url.startswith(("http://", "https://")):
            self.logger.warning(f"Invalid resolver.vendor_api_url: {vendor_api_url}. "
                                f"Using default: {default.vendor_api_url}")
            vendor_api_url = default.vendor_api_url

        return ResolverConfig(
            channel_timeout_ms=self._validate_positive_int(data.get("channel_timeout_ms", default.channel_timeout_ms),
                                                           "resolver.channel_timeout_ms", default.channel_timeout_ms),
            batch_concurrency=self._validate_positive_int(data.get("batch_concurrency", default.batch_concurrency),
                                                          "resolver.batch_concurrency", default.batch_concurrency),
            external_vendor_lookup=self._validate_bool(data.get("external_vendor_lookup",
                                                                default.external_vendor_lookup),
                                                       "resolver.external_vendor_lookup",
                                                       default.external_vendor_lookup),
            vendor_api_url=vendor_api_url,
            vendor_api_timeout=self._validate_positive_int(data.get("vendor_api_timeout", default.vendor_api_timeout),
                                                           "resolver.vendor_api_timeout", default.vendor_api_timeout),
        )

    def load_probe_config(self, data: Any) -> ProbeConfig:
        data = self._section(data, "probe")
        default = ProbeConfig()
        if data is None:
            return default

        return ProbeConfig(
            provider=self._validate_provider(data.get("provider", default.provider)),
        )

    def _validate_positive_int(self, value: Any, field_name: str, default: int) -> int:
        """
        Validate that a value is a positive integer.

        Args:
            value: Value to validate
            field_name: Name of the field for error messages
            default: Default value to use if validation fails

        Returns:
            Validated integer value or default
        """
        try:
            int_value = int(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default
        if int_value <= 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must be positive. Using default: {default}")
            return default
        return int_value

    def _validate_non_negative_int(self, value: Any, field_name: str, default: int) -> int:
        try:
            int_value = int(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default
        if int_value < 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must not be negative. Using default: {default}")
            return default
        return int_value

    def _validate_bool(self, value: Any, field_name: str, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        self.logger.warning(f"Invalid {field_name}: {value}. Must be true or false. Using default: {default}")
        return default

    def _validate_provider(self, provider: Any) -> str:
        """
        Validate the probe provider name.

        Args:
            provider: Provider to validate

        Returns:
            Validated provider or "auto"
        """
        if provider not in PROVIDERS:
            self.logger.warning(f"Invalid probe provider: {provider}. Must be one of {list(PROVIDERS)}. "
                                f"Using default: auto")
            return "auto"
        return provider

    def _validate_ports(self, ports: Any, default: List[int]) -> List[int]:
        """
        Validate the default port list, skipping entries that are not ports.

        Args:
            ports: Ports to validate
            default: Default list used when nothing valid remains

        Returns:
            Sorted list of unique valid ports or default
        """
        if not isinstance(ports, list):
            self.logger.warning(f"Invalid scan.ports: {ports}. Must be a list. Using default: {default}")
            return list(default)

        valid_ports = set()
        for port in ports:
            if isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535:
                valid_ports.add(port)
            else:
                self.logger.warning(f"Invalid port in scan.ports: {port}. Skipping.")

        if not valid_ports:
            self.logger.warning(f"No valid ports in scan.ports. Using default: {default}")
            return list(default)
        return sorted(valid_ports)
