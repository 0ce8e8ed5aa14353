"""Tests for the Prometheus metric helpers."""

from prometheus_client import REGISTRY

from daas_pipeline.common import metrics


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricHelpers:
    def test_produced_success_and_failure(self):
        before_ok = _sample("daas_messages_produced_total", topic="metrics-test")
        before_err = _sample("daas_producer_errors_total", topic="metrics-test", error_type="timeout")

        metrics.record_message_produced("metrics-test")
        metrics.record_message_produced("metrics-test", success=False, error_type="timeout")

        assert _sample("daas_messages_produced_total", topic="metrics-test") == before_ok + 1
        assert _sample("daas_producer_errors_total", topic="metrics-test", error_type="timeout") == before_err + 1

    def test_dead_letter_counter(self):
        before = _sample("daas_dead_letters_total", topic="metrics-test", reason="permanent")
        metrics.record_dead_letter("metrics-test", "permanent")
        assert _sample("daas_dead_letters_total", topic="metrics-test", reason="permanent") == before + 1

    def test_connection_status_gauge(self):
        metrics.update_connection_status("producer", connected=True)
        assert _sample("daas_connection_status", component="producer") == 1
        metrics.update_connection_status("producer", connected=False)
        assert _sample("daas_connection_status", component="producer") == 0

    def test_partition_gauges(self):
        metrics.update_assigned_partitions("metrics-group", 3)
        metrics.update_paused_partitions("metrics-group", 1)

        assert _sample("daas_consumer_assigned_partitions", consumer_group="metrics-group") == 3
        assert _sample("daas_consumer_paused_partitions", consumer_group="metrics-group") == 1
