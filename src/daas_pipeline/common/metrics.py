"""
Prometheus metrics for pipeline monitoring.

Focused on essential metrics:
- Message production and consumption counts
- Dispatch outcomes (retries, dead letters, duration)
- Document store writes and duplicate ingestions
- Connection health
"""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Transport
# =============================================================================

messages_produced_counter = Counter(
    "daas_messages_produced_total",
    "Total number of documents published to topics",
    labelnames=["topic"],
)

messages_consumed_counter = Counter(
    "daas_messages_consumed_total",
    "Total number of messages consumed from topics",
    labelnames=["topic", "consumer_group"],
)

producer_errors_counter = Counter(
    "daas_producer_errors_total",
    "Total producer errors by error type",
    labelnames=["topic", "error_type"],
)

offsets_committed_counter = Counter(
    "daas_offsets_committed_total",
    "Total offset commits after dispatch",
    labelnames=["topic", "consumer_group"],
)

connection_status_gauge = Gauge(
    "daas_connection_status",
    "Transport connection status (1=connected, 0=disconnected)",
    labelnames=["component"],
)

assigned_partitions_gauge = Gauge(
    "daas_consumer_assigned_partitions",
    "Number of partitions assigned to the broker",
    labelnames=["consumer_group"],
)

paused_partitions_gauge = Gauge(
    "daas_consumer_paused_partitions",
    "Number of partitions paused for backpressure",
    labelnames=["consumer_group"],
)

# =============================================================================
# Dispatch
# =============================================================================

processing_errors_counter = Counter(
    "daas_processing_errors_total",
    "Processor failures by error category",
    labelnames=["topic", "processor", "error_category"],
)

dispatch_retries_counter = Counter(
    "daas_dispatch_retries_total",
    "Processor invocations retried after a retryable failure",
    labelnames=["topic", "processor"],
)

dead_letters_counter = Counter(
    "daas_dead_letters_total",
    "Dead-letter records written",
    labelnames=["topic", "reason"],
)

dispatch_duration_seconds = Histogram(
    "daas_dispatch_duration_seconds",
    "Time from dispatch start to commit for one message",
    labelnames=["topic"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

# =============================================================================
# Store
# =============================================================================

revisions_stored_counter = Counter(
    "daas_revisions_stored_total",
    "New document revisions persisted",
    labelnames=["store"],
)

duplicate_ingestions_counter = Counter(
    "daas_duplicate_ingestions_total",
    "Genesis ingestions rejected as already ingested",
    labelnames=["source_name"],
)

remote_upload_failures_counter = Counter(
    "daas_remote_upload_failures_total",
    "Remote persistence uploads that failed (non-fatal)",
    labelnames=["store"],
)


# =============================================================================
# Convenience Functions
# =============================================================================


def record_message_produced(topic: str, success: bool = True, error_type: str = "send_failed") -> None:
    if success:
        messages_produced_counter.labels(topic=topic).inc()
    else:
        producer_errors_counter.labels(topic=topic, error_type=error_type).inc()


def record_message_consumed(topic: str, consumer_group: str) -> None:
    messages_consumed_counter.labels(topic=topic, consumer_group=consumer_group).inc()


def record_offset_committed(topic: str, consumer_group: str) -> None:
    offsets_committed_counter.labels(topic=topic, consumer_group=consumer_group).inc()


def record_processing_error(topic: str, processor: str, error_category: str) -> None:
    processing_errors_counter.labels(
        topic=topic, processor=processor, error_category=error_category
    ).inc()


def record_dispatch_retry(topic: str, processor: str) -> None:
    dispatch_retries_counter.labels(topic=topic, processor=processor).inc()


def record_dead_letter(topic: str, reason: str) -> None:
    dead_letters_counter.labels(topic=topic, reason=reason).inc()


def update_connection_status(component: str, connected: bool) -> None:
    connection_status_gauge.labels(component=component).set(1 if connected else 0)


def update_assigned_partitions(consumer_group: str, count: int) -> None:
    assigned_partitions_gauge.labels(consumer_group=consumer_group).set(count)


def update_paused_partitions(consumer_group: str, count: int) -> None:
    paused_partitions_gauge.labels(consumer_group=consumer_group).set(count)


__all__ = [
    "messages_produced_counter",
    "messages_consumed_counter",
    "producer_errors_counter",
    "offsets_committed_counter",
    "connection_status_gauge",
    "assigned_partitions_gauge",
    "paused_partitions_gauge",
    "processing_errors_counter",
    "dispatch_retries_counter",
    "dead_letters_counter",
    "dispatch_duration_seconds",
    "revisions_stored_counter",
    "duplicate_ingestions_counter",
    "remote_upload_failures_counter",
    "record_message_produced",
    "record_message_consumed",
    "record_offset_committed",
    "record_processing_error",
    "record_dispatch_retry",
    "record_dead_letter",
    "update_connection_status",
    "update_assigned_partitions",
    "update_paused_partitions",
]
