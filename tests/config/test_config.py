"""Tests for YAML configuration loading and validation."""

from pathlib import Path

import pytest

from config import DEFAULT_CONFIG_FILE, BrokerSettings, load_config
from config.config import _expand_env_vars


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


MINIMAL = """
daas:
  connection:
    bootstrap_servers: broker-1:9092,broker-2:9092
  broker:
    group_id: workers
    inbound_topics: ingest
  storage:
    path: {store}
"""


class TestLoadConfig:
    def test_bundled_config_loads(self, monkeypatch):
        monkeypatch.delenv("DAAS_INBOUND_TOPICS", raising=False)
        config = load_config(DEFAULT_CONFIG_FILE)

        assert config.broker.genesis_topic == "genesis"
        assert config.broker.inbound_topics == ["ingest"]
        assert config.retry.max_attempts == 5

    def test_minimal_file(self, tmp_path):
        path = _write(tmp_path, MINIMAL.format(store=tmp_path / "store"))
        config = load_config(path)

        assert config.bootstrap_servers == "broker-1:9092,broker-2:9092"
        assert config.connection_kwargs()["bootstrap_servers"] == ["broker-1:9092", "broker-2:9092"]
        assert config.broker.group_id == "workers"
        assert config.broker.max_pipeline_depth == 8
        assert config.storage.path == str(tmp_path / "store")

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOOTSTRAP", "kafka:9093")
        monkeypatch.delenv("TEST_DEPTH", raising=False)
        path = _write(
            tmp_path,
            """
daas:
  connection:
    bootstrap_servers: ${TEST_BOOTSTRAP}
  broker:
    max_pipeline_depth: ${TEST_DEPTH:-4}
""",
        )
        config = load_config(path)

        assert config.bootstrap_servers == "kafka:9093"
        assert config.broker.max_pipeline_depth == 4

    def test_overrides_merged(self, tmp_path):
        path = _write(tmp_path, MINIMAL.format(store=tmp_path / "store"))
        config = load_config(path, overrides={"storage": {"path": "/override"}, "broker": {"max_batch_size": 5}})

        assert config.storage.path == "/override"
        assert config.broker.max_batch_size == 5
        assert config.broker.group_id == "workers"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_missing_daas_section(self, tmp_path):
        path = _write(tmp_path, "other: {}\n")
        with pytest.raises(ValueError, match="missing 'daas:' section"):
            load_config(path)

    def test_missing_bootstrap_servers(self, tmp_path):
        path = _write(tmp_path, "daas:\n  broker:\n    group_id: g\n")
        with pytest.raises(ValueError, match="bootstrap_servers is required"):
            load_config(path)

    def test_auto_commit_rejected(self, tmp_path):
        path = _write(
            tmp_path,
            """
daas:
  connection:
    bootstrap_servers: localhost:9092
  consumer_defaults:
    enable_auto_commit: true
""",
        )
        with pytest.raises(ValueError, match="enable_auto_commit must be false"):
            load_config(path)

    def test_heartbeat_constraint(self, tmp_path):
        path = _write(
            tmp_path,
            """
daas:
  connection:
    bootstrap_servers: localhost:9092
  consumer_defaults:
    session_timeout_ms: 30000
    heartbeat_interval_ms: 15000
""",
        )
        with pytest.raises(ValueError, match="heartbeat_interval_ms"):
            load_config(path)

    def test_unknown_broker_key(self, tmp_path):
        path = _write(
            tmp_path,
            """
daas:
  connection:
    bootstrap_servers: localhost:9092
  broker:
    no_such_setting: 1
""",
        )
        with pytest.raises(ValueError, match="Invalid config file"):
            load_config(path)

    def test_negative_depth_rejected(self, tmp_path):
        path = _write(tmp_path, MINIMAL.format(store=tmp_path))
        with pytest.raises(ValueError, match="max_pipeline_depth"):
            load_config(path, overrides={"broker": {"max_pipeline_depth": -1}})


class TestBrokerSettings:
    def test_inbound_topics_split(self):
        settings = BrokerSettings(inbound_topics="ingest, uploads,,")
        assert settings.inbound_topics == ["ingest", "uploads"]

    def test_string_values_coerced(self):
        settings = BrokerSettings(poll_timeout_ms="250", route_by_category="true")
        assert settings.poll_timeout_ms == 250
        assert settings.route_by_category is True

    def test_outbound_topic_defaults_to_processor_name(self):
        settings = BrokerSettings(topic_overrides={"enricher": "enriched"})
        assert settings.outbound_topic("genesis") == "genesis"
        assert settings.outbound_topic("enricher") == "enriched"


class TestExpandEnvVars:
    def test_unset_without_default_left_untouched(self, monkeypatch):
        monkeypatch.delenv("TEST_UNSET", raising=False)
        assert _expand_env_vars("${TEST_UNSET}") == "${TEST_UNSET}"

    def test_nested(self, monkeypatch):
        monkeypatch.setenv("TEST_TOPIC", "docs")
        assert _expand_env_vars({"a": ["${TEST_TOPIC}", 3]}) == {"a": ["docs", 3]}
