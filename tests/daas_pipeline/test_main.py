"""Tests for the broker worker entry point."""

import errno
from unittest.mock import patch

import pytest

from daas_pipeline import __main__ as entry
from daas_pipeline.broker import InMemoryDeadLetterSink, KafkaDeadLetterSink, KafkaTopicConsumer
from daas_pipeline.storage import LocalDocumentStore


class TestParseArgs:
    def test_defaults(self):
        args = entry.parse_args([])

        assert args.config is None
        assert args.log_level == "INFO"
        assert args.metrics_port == 8000
        assert not args.log_to_stdout

    def test_overrides(self):
        args = entry.parse_args(
            ["--config", "daas.yaml", "--log-level", "DEBUG", "--store-path", "/data", "--metrics-port", "0"]
        )

        assert str(args.config) == "daas.yaml"
        assert args.log_level == "DEBUG"
        assert args.store_path == "/data"
        assert args.metrics_port == 0


class TestBuildBroker:
    def test_memory_transport(self, daas_config, monkeypatch):
        monkeypatch.setenv("DAAS_TRANSPORT", "memory")

        broker, store = entry.build_broker(daas_config, "w-1")

        assert isinstance(store, LocalDocumentStore)
        assert isinstance(broker._dead_letters, InMemoryDeadLetterSink)
        assert broker.worker_id == "w-1"

    def test_kafka_transport(self, daas_config, monkeypatch):
        monkeypatch.setenv("DAAS_TRANSPORT", "kafka")

        broker, _ = entry.build_broker(daas_config, "w-1")

        assert isinstance(broker._consumer, KafkaTopicConsumer)
        assert isinstance(broker._dead_letters, KafkaDeadLetterSink)

    async def test_genesis_registered_on_inbound_topics(self, daas_config, monkeypatch):
        monkeypatch.setenv("DAAS_TRANSPORT", "memory")
        broker, store = entry.build_broker(daas_config, "w-1")

        await broker.start()
        try:
            assert broker.processors("ingest") == ["genesis"]
        finally:
            await broker.stop()
            await store.close()


class TestMetricsServer:
    def test_preferred_port(self):
        with patch.object(entry, "start_http_server") as start:
            assert entry.start_metrics_server(9100) == 9100
        start.assert_called_once_with(9100)

    def test_port_in_use_falls_back(self):
        in_use = OSError(errno.EADDRINUSE, "Address already in use")
        with patch.object(entry, "start_http_server", side_effect=[in_use, None]) as start:
            port = entry.start_metrics_server(9100)

        assert port != 9100
        assert start.call_count == 2

    def test_other_errors_propagate(self):
        with patch.object(entry, "start_http_server", side_effect=OSError(errno.EACCES, "denied")):
            with pytest.raises(OSError):
                entry.start_metrics_server(80)


class TestMain:
    def test_invalid_config_returns_1(self, tmp_path):
        with patch.object(entry, "setup_logging"):
            assert entry.main(["--config", str(tmp_path / "missing.yaml"), "--metrics-port", "0"]) == 1
