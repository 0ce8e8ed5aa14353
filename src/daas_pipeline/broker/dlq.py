"""Dead-letter sinks for messages the broker gives up on."""

import logging
from typing import Protocol, runtime_checkable

from daas_pipeline.broker.transport import TopicProducer
from daas_pipeline.broker.types import DeadLetterRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class DeadLetterSink(Protocol):
    async def record(self, record: DeadLetterRecord) -> None:
        """Persist ``record``. Raising means the record was not stored."""
        ...


class KafkaDeadLetterSink:
    """Publishes dead-letter records as JSON to ``{topic}{suffix}``.

    Shares the broker's producer, which is started before the first
    message is dispatched.
    """

    def __init__(self, producer: TopicProducer, suffix: str = ".dlq"):
        self._producer = producer
        self._suffix = suffix

    def dlq_topic(self, topic: str) -> str:
        return f"{topic}{self._suffix}"

    async def record(self, record: DeadLetterRecord) -> None:
        dlq_topic = self.dlq_topic(record.topic)
        dlq_key = record.identity or f"dlq-{record.partition}-{record.offset}"
        dlq_headers = {
            "dlq_source_topic": record.topic,
            "dlq_reason": record.reason.value,
            "dlq_error_type": record.error_type,
        }
        if record.processor:
            dlq_headers["dlq_processor"] = record.processor

        result = await self._producer.send(
            dlq_topic,
            key=dlq_key,
            value=record.model_dump_json().encode("utf-8"),
            headers=dlq_headers,
        )

        logger.info(
            "Message sent to DLQ successfully",
            extra={
                "dlq_topic": dlq_topic,
                "topic": record.topic,
                "partition": record.partition,
                "offset": record.offset,
                "identity": record.identity,
                "processor": record.processor,
                "reason": record.reason.value,
                "dlq_offset": result.offset,
            },
        )


class InMemoryDeadLetterSink:
    """List-backed sink for tests and local runs."""

    def __init__(self) -> None:
        self.records: list[DeadLetterRecord] = []

    async def record(self, record: DeadLetterRecord) -> None:
        self.records.append(record)
        logger.info(
            "Dead letter recorded",
            extra={
                "topic": record.topic,
                "offset": record.offset,
                "identity": record.identity,
                "processor": record.processor,
                "reason": record.reason.value,
            },
        )

    def __len__(self) -> int:
        return len(self.records)


__all__ = ["DeadLetterSink", "KafkaDeadLetterSink", "InMemoryDeadLetterSink"]
