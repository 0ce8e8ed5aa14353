"""DaaS pipeline configuration from YAML file.

Loads from config/config.yaml with all settings in one place:
- Kafka connection settings and consumer/producer defaults
- Broker dispatch settings (topics, timeouts, pipeline depth)
- Retry policy for processor dispatch
- Local document store settings

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.
"""

import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from core.resilience.retry import RetryConfig

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


@dataclass
class BrokerSettings:
    """Dispatch loop settings.

    All timing values in seconds unless the name says otherwise.
    """

    group_id: str = "genesis-consumers"
    genesis_topic: str = "genesis"
    inbound_topics: List[str] = field(default_factory=lambda: ["ingest"])
    poll_timeout_ms: int = 1000
    max_batch_size: int = 100
    max_inflight_per_partition: int = 100
    publish_timeout_seconds: float = 10.0
    commit_timeout_seconds: float = 10.0
    shutdown_timeout_seconds: float = 30.0
    # Derived documents beyond this many hops from genesis are dead-lettered
    max_pipeline_depth: int = 8
    dlq_suffix: str = ".dlq"
    # processor name -> outbound topic
    topic_overrides: Dict[str, str] = field(default_factory=dict)
    route_by_category: bool = False

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        if isinstance(self.inbound_topics, str):
            self.inbound_topics = [t.strip() for t in self.inbound_topics.split(",") if t.strip()]
        self.poll_timeout_ms = int(self.poll_timeout_ms)
        self.max_batch_size = int(self.max_batch_size)
        self.max_inflight_per_partition = int(self.max_inflight_per_partition)
        self.publish_timeout_seconds = float(self.publish_timeout_seconds)
        self.commit_timeout_seconds = float(self.commit_timeout_seconds)
        self.shutdown_timeout_seconds = float(self.shutdown_timeout_seconds)
        self.max_pipeline_depth = int(self.max_pipeline_depth)
        self.topic_overrides = dict(self.topic_overrides or {})
        self.route_by_category = _as_bool(self.route_by_category)

    def outbound_topic(self, processor_name: str) -> str:
        """Topic that documents derived by ``processor_name`` are published to."""
        return self.topic_overrides.get(processor_name, processor_name)


@dataclass
class StorageSettings:
    """Local document store settings."""

    path: str = "./data/store"
    out_of_order_wait_seconds: float = 5.0
    fsync: bool = True

    def __post_init__(self):
        self.path = str(self.path)
        self.out_of_order_wait_seconds = float(self.out_of_order_wait_seconds)
        self.fsync = _as_bool(self.fsync)


@dataclass
class DaasConfig:
    """DaaS pipeline configuration.

    Configuration structure:
        daas:
          connection: {...}           # Kafka connection settings
          consumer_defaults: {...}    # AIOKafkaConsumer keyword arguments
          producer_defaults: {...}    # AIOKafkaProducer keyword arguments
          broker: {...}               # BrokerSettings
          retry: {...}                # RetryConfig for processor dispatch
          storage: {...}              # StorageSettings
    """

    # =========================================================================
    # CONNECTION SETTINGS (shared across consumer and producers)
    # =========================================================================
    bootstrap_servers: str = ""
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""
    request_timeout_ms: int = 120000  # 2 minutes
    metadata_max_age_ms: int = 300000  # 5 minutes
    connections_max_idle_ms: int = 540000  # 9 minutes

    # =========================================================================
    # DEFAULT SETTINGS (passed through to the Kafka clients)
    # =========================================================================
    consumer_defaults: Dict[str, Any] = field(default_factory=dict)
    producer_defaults: Dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # PIPELINE SETTINGS
    # =========================================================================
    broker: BrokerSettings = field(default_factory=BrokerSettings)
    retry: RetryConfig = field(default_factory=RetryConfig)
    storage: StorageSettings = field(default_factory=StorageSettings)

    def connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments shared by AIOKafkaConsumer and AIOKafkaProducer."""
        kwargs: Dict[str, Any] = {
            "bootstrap_servers": self.bootstrap_servers.split(","),
            "request_timeout_ms": self.request_timeout_ms,
            "metadata_max_age_ms": self.metadata_max_age_ms,
            "connections_max_idle_ms": self.connections_max_idle_ms,
            "security_protocol": self.security_protocol,
        }
        if self.security_protocol.startswith("SASL"):
            kwargs["sasl_mechanism"] = self.sasl_mechanism
            if self.sasl_mechanism in ("PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512"):
                kwargs["sasl_plain_username"] = self.sasl_plain_username
                kwargs["sasl_plain_password"] = self.sasl_plain_password
        return kwargs

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Checks required fields, Kafka timeout constraints, and numeric ranges.
        """
        if not self.bootstrap_servers:
            raise ValueError("bootstrap_servers is required in daas.connection section")

        self._validate_consumer_settings(self.consumer_defaults, "consumer_defaults")
        self._validate_producer_settings(self.producer_defaults, "producer_defaults")

        broker = asdict(self.broker)
        self._validate_min(broker, "poll_timeout_ms", 0, inclusive=False, context="broker")
        self._validate_min(broker, "max_batch_size", 1, inclusive=True, context="broker")
        self._validate_min(broker, "max_inflight_per_partition", 1, inclusive=True, context="broker")
        self._validate_min(broker, "publish_timeout_seconds", 0, inclusive=False, context="broker")
        self._validate_min(broker, "commit_timeout_seconds", 0, inclusive=False, context="broker")
        self._validate_min(broker, "shutdown_timeout_seconds", 0, inclusive=False, context="broker")
        self._validate_min(broker, "max_pipeline_depth", 0, inclusive=True, context="broker")
        if not self.broker.genesis_topic:
            raise ValueError("broker: genesis_topic is required")
        if not self.broker.dlq_suffix:
            raise ValueError("broker: dlq_suffix must not be empty")

        storage = asdict(self.storage)
        self._validate_min(storage, "out_of_order_wait_seconds", 0, inclusive=True, context="storage")
        if not self.storage.path:
            raise ValueError("storage: path is required")

    @staticmethod
    def _validate_enum(
        settings: Dict[str, Any],
        key: str,
        valid_values: List[Any],
        context: str
    ) -> None:
        """Validate that a setting's value is in a list of valid values."""
        if key in settings and settings[key] not in valid_values:
            raise ValueError(
                f"{context}: {key} must be one of {valid_values}, "
                f"got '{settings[key]}'"
            )

    @staticmethod
    def _validate_min(
        settings: Dict[str, Any],
        key: str,
        min_value: float,
        inclusive: bool,
        context: str
    ) -> None:
        """Validate that a setting's value meets a minimum threshold."""
        if key in settings:
            value = settings[key]
            if inclusive and value < min_value:
                raise ValueError(
                    f"{context}: {key} must be >= {min_value}, got {value}"
                )
            elif not inclusive and value <= min_value:
                raise ValueError(
                    f"{context}: {key} must be > {min_value}, got {value}"
                )

    def _validate_consumer_settings(self, settings: Dict[str, Any], context: str) -> None:
        """Validate consumer settings against Kafka requirements and logical constraints."""
        if "heartbeat_interval_ms" in settings and "session_timeout_ms" in settings:
            heartbeat = settings["heartbeat_interval_ms"]
            session_timeout = settings["session_timeout_ms"]
            if heartbeat >= session_timeout / 3:
                raise ValueError(
                    f"{context}: heartbeat_interval_ms ({heartbeat}) must be < "
                    f"session_timeout_ms/3 ({session_timeout/3:.0f}). "
                    f"Recommended: heartbeat_interval_ms <= {session_timeout // 3}"
                )

        if "session_timeout_ms" in settings and "max_poll_interval_ms" in settings:
            session_timeout = settings["session_timeout_ms"]
            max_poll_interval = settings["max_poll_interval_ms"]
            if session_timeout >= max_poll_interval:
                raise ValueError(
                    f"{context}: session_timeout_ms ({session_timeout}) must be < "
                    f"max_poll_interval_ms ({max_poll_interval})"
                )

        if settings.get("enable_auto_commit"):
            raise ValueError(
                f"{context}: enable_auto_commit must be false; offsets are committed after dispatch"
            )

        self._validate_min(settings, "max_poll_records", 1, inclusive=True, context=context)
        self._validate_enum(settings, "auto_offset_reset", ["earliest", "latest", "none"], context)

    def _validate_producer_settings(self, settings: Dict[str, Any], context: str) -> None:
        self._validate_enum(settings, "acks", ["0", "1", "all", 0, 1, -1], context)
        self._validate_enum(settings, "compression_type", [None, "none", "gzip", "snappy", "lz4", "zstd"], context)
        self._validate_min(settings, "max_batch_size", 0, inclusive=True, context=context)
        self._validate_min(settings, "linger_ms", 0, inclusive=True, context=context)


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def config_from_dict(daas_config: Dict[str, Any]) -> DaasConfig:
    """Build a DaasConfig from the ``daas:`` section of the YAML file."""
    connection = daas_config.get("connection", {})

    return DaasConfig(
        bootstrap_servers=connection.get("bootstrap_servers", ""),
        security_protocol=connection.get("security_protocol", "PLAINTEXT"),
        sasl_mechanism=connection.get("sasl_mechanism", "PLAIN"),
        sasl_plain_username=connection.get("sasl_plain_username", ""),
        sasl_plain_password=connection.get("sasl_plain_password", ""),
        request_timeout_ms=int(connection.get("request_timeout_ms", 120000)),
        metadata_max_age_ms=int(connection.get("metadata_max_age_ms", 300000)),
        connections_max_idle_ms=int(connection.get("connections_max_idle_ms", 540000)),
        consumer_defaults=daas_config.get("consumer_defaults", {}) or {},
        producer_defaults=daas_config.get("producer_defaults", {}) or {},
        broker=BrokerSettings(**(daas_config.get("broker") or {})),
        retry=RetryConfig(**(daas_config.get("retry") or {})),
        storage=StorageSettings(**(daas_config.get("storage") or {})),
    )


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> DaasConfig:
    """Load DaaS configuration from config.yaml file.

    Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
    ``overrides`` is deep-merged over the ``daas:`` section before validation.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n" f"Expected file: config/config.yaml"
        )

    logger.info("Loading configuration from file: %s", config_path)
    yaml_data = load_yaml(config_path)
    yaml_data = _expand_env_vars(yaml_data)

    if "daas" not in yaml_data:
        raise ValueError(
            "Invalid config file: missing 'daas:' section\n"
            "See src/config/config.yaml for correct structure"
        )

    daas_config = yaml_data["daas"]

    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        daas_config = _deep_merge(daas_config, overrides)

    try:
        config = config_from_dict(daas_config)
    except TypeError as e:
        # Unknown key in broker/retry/storage section
        raise ValueError(f"Invalid config file: {e}") from e

    logger.debug(
        "Configuration loaded",
        extra={"topics": config.broker.inbound_topics, "consumer_group": config.broker.group_id},
    )

    config.validate()
    logger.debug("Configuration validation passed")

    return config


_daas_config: Optional[DaasConfig] = None


def get_config() -> DaasConfig:
    """Get or load the singleton config instance."""
    global _daas_config
    if _daas_config is None:
        _daas_config = load_config()
    return _daas_config


def set_config(config: DaasConfig) -> None:
    """Set the singleton config instance (useful for testing)."""
    global _daas_config
    _daas_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _daas_config
    _daas_config = None


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="DaaS Pipeline Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config.config --validate

  # Show merged configuration as JSON
  python -m config.config --show-merged --json
        """,
    )

    parser.add_argument("--validate", action="store_true", help="Validate configuration")
    parser.add_argument("--show-merged", action="store_true", help="Display loaded configuration")
    parser.add_argument("--config", type=Path, help="Path to config.yaml file (default: src/config/config.yaml)")
    parser.add_argument("--json", action="store_true", help="Output in JSON format instead of YAML")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if not args.validate and not args.show_merged:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError) as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    output: Dict[str, Any] = {}
    if args.validate:
        output["validation"] = {"passed": True, "errors": []}
        if not args.json:
            print("Configuration validation passed")

    if args.show_merged:
        merged = asdict(config)
        merged["retry"].pop("always_retry", None)
        merged["retry"].pop("never_retry", None)
        merged["sasl_plain_password"] = "***" if config.sasl_plain_password else ""
        if args.json:
            output["merged_config"] = merged
        else:
            print(yaml.dump(merged, default_flow_style=False, sort_keys=False))

    if args.json:
        print(json.dumps(output, indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(_cli_main())
