"""Broker: topic consumption, processor dispatch, republishing and dead letters."""

from daas_pipeline.broker.broker import (
    DaaSBroker,
    PartitionHaltedError,
    PartitionWorker,
    PipelineDepthExceededError,
)
from daas_pipeline.broker.dlq import DeadLetterSink, InMemoryDeadLetterSink, KafkaDeadLetterSink
from daas_pipeline.broker.transport import (
    InMemoryTransport,
    KafkaTopicConsumer,
    KafkaTopicProducer,
    TopicConsumer,
    TopicProducer,
    TransportType,
    create_transport,
    get_transport_type,
)
from daas_pipeline.broker.types import (
    HOP_HEADER,
    DeadLetterReason,
    DeadLetterRecord,
    DispatchOutcome,
    DispatchState,
    PartitionInfo,
    PipelineMessage,
    ProduceResult,
)

__all__ = [
    "DaaSBroker",
    "PartitionWorker",
    "PartitionHaltedError",
    "PipelineDepthExceededError",
    # Dead letters
    "DeadLetterSink",
    "KafkaDeadLetterSink",
    "InMemoryDeadLetterSink",
    # Transport
    "TopicConsumer",
    "TopicProducer",
    "KafkaTopicConsumer",
    "KafkaTopicProducer",
    "InMemoryTransport",
    "TransportType",
    "create_transport",
    "get_transport_type",
    # Types
    "HOP_HEADER",
    "PipelineMessage",
    "ProduceResult",
    "PartitionInfo",
    "DispatchState",
    "DispatchOutcome",
    "DeadLetterReason",
    "DeadLetterRecord",
]
