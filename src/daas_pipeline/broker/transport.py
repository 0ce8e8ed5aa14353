"""Transport layer abstraction for the DaaS broker.

The broker talks to its message transport through two small protocols,
``TopicConsumer`` and ``TopicProducer``. Two implementations are provided:

- aiokafka (``KafkaTopicConsumer`` / ``KafkaTopicProducer``)
- ``InMemoryTransport`` for tests and local development

Architecture:
- DAAS_TRANSPORT env var selects transport: "kafka" (default) or "memory"
- Message value is the encoded document, key is the document identity
- Offsets are committed explicitly; auto-commit is always disabled
"""

import asyncio
import logging
import os
import ssl
import zlib
from collections import defaultdict
from collections.abc import Iterable
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.structs import TopicPartition

from config.config import DaasConfig
from daas_pipeline.broker.types import (
    PartitionInfo,
    PipelineMessage,
    ProduceResult,
    from_consumer_record,
)
from daas_pipeline.common.metrics import update_connection_status

logger = logging.getLogger(__name__)


class TransportType(StrEnum):
    """Transport implementation."""

    KAFKA = "kafka"
    MEMORY = "memory"


def get_transport_type() -> TransportType:
    """Get configured transport type from environment.

    Returns:
        TransportType.KAFKA (default) or TransportType.MEMORY
    """
    value = os.getenv("DAAS_TRANSPORT", "kafka").lower()
    try:
        return TransportType(value)
    except ValueError:
        logger.warning(
            "Unknown DAAS_TRANSPORT value, falling back to kafka",
            extra={"transport": value},
        )
        return TransportType.KAFKA


@runtime_checkable
class TopicConsumer(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def subscribe(self, topics: list[str]) -> None:
        """Replace the subscription. An empty list unsubscribes."""
        ...

    async def getmany(
        self, timeout_ms: int, max_records: int | None = None
    ) -> dict[PartitionInfo, list[PipelineMessage]]: ...

    async def commit(self, offsets: dict[PartitionInfo, int]) -> None:
        """Commit the next offset to read for each partition."""
        ...

    def pause(self, *partitions: PartitionInfo) -> None: ...

    def resume(self, *partitions: PartitionInfo) -> None: ...

    def assignment(self) -> set[PartitionInfo]: ...


@runtime_checkable
class TopicProducer(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def send(
        self,
        topic: str,
        key: str | bytes | None,
        value: bytes,
        headers: dict[str, str] | None = None,
    ) -> ProduceResult: ...


def _encode_key(key: str | bytes | None) -> bytes | None:
    if key is None or isinstance(key, bytes):
        return key
    return key.encode("utf-8")


def _encode_headers(headers: dict[str, str] | None) -> list[tuple[str, bytes]] | None:
    if not headers:
        return None
    return [(k, v.encode("utf-8")) for k, v in headers.items()]


def build_security_kwargs(config: DaasConfig) -> dict[str, Any]:
    """SSL context for SSL/SASL_SSL connections; empty for plaintext."""
    if "SSL" in config.security_protocol:
        return {"ssl_context": ssl.create_default_context()}
    return {}


# =============================================================================
# aiokafka
# =============================================================================


class KafkaTopicConsumer:
    """aiokafka consumer joined to the broker's consumer group."""

    def __init__(self, config: DaasConfig, group_id: str | None = None):
        self.config = config
        self.group_id = group_id or config.broker.group_id
        self._consumer: AIOKafkaConsumer | None = None

    async def start(self) -> None:
        if self._consumer is not None:
            logger.warning("Consumer already started, ignoring duplicate start call")
            return

        kafka_config: dict[str, Any] = {
            **self.config.connection_kwargs(),
            **self.config.consumer_defaults,
            "group_id": self.group_id,
            "enable_auto_commit": False,
        }
        kafka_config.update(build_security_kwargs(self.config))

        logger.info(
            "Starting Kafka consumer",
            extra={
                "consumer_group": self.group_id,
                "bootstrap_servers": self.config.bootstrap_servers,
                "security_protocol": self.config.security_protocol,
            },
        )

        self._consumer = AIOKafkaConsumer(**kafka_config)
        await self._consumer.start()
        update_connection_status("consumer", connected=True)

    async def stop(self) -> None:
        if self._consumer is None:
            return
        try:
            await self._consumer.stop()
            logger.info("Kafka consumer stopped", extra={"consumer_group": self.group_id})
        finally:
            update_connection_status("consumer", connected=False)
            self._consumer = None

    def _require(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() first.")
        return self._consumer

    def subscribe(self, topics: list[str]) -> None:
        consumer = self._require()
        if topics:
            consumer.subscribe(topics=list(topics))
        else:
            consumer.unsubscribe()

    async def getmany(
        self, timeout_ms: int, max_records: int | None = None
    ) -> dict[PartitionInfo, list[PipelineMessage]]:
        data = await self._require().getmany(timeout_ms=timeout_ms, max_records=max_records)
        return {
            PartitionInfo(tp.topic, tp.partition): [from_consumer_record(r) for r in records]
            for tp, records in data.items()
            if records
        }

    async def commit(self, offsets: dict[PartitionInfo, int]) -> None:
        await self._require().commit(
            {TopicPartition(p.topic, p.partition): offset for p, offset in offsets.items()}
        )

    def pause(self, *partitions: PartitionInfo) -> None:
        self._require().pause(*(TopicPartition(p.topic, p.partition) for p in partitions))

    def resume(self, *partitions: PartitionInfo) -> None:
        self._require().resume(*(TopicPartition(p.topic, p.partition) for p in partitions))

    def assignment(self) -> set[PartitionInfo]:
        if self._consumer is None:
            return set()
        return {PartitionInfo(tp.topic, tp.partition) for tp in self._consumer.assignment()}


class KafkaTopicProducer:
    """aiokafka producer for derived documents and dead letters."""

    def __init__(self, config: DaasConfig):
        self.config = config
        self._producer: AIOKafkaProducer | None = None

    def _resolve_acks_and_idempotence(self) -> tuple[Any, bool]:
        """Resolve acks value and idempotence setting, enforcing mutual constraints."""
        defaults = self.config.producer_defaults
        acks_value = defaults.get("acks", "all")
        if isinstance(acks_value, str) and acks_value.isdigit():
            acks_value = int(acks_value)

        enable_idempotence = defaults.get("enable_idempotence", True)
        if enable_idempotence and acks_value not in ("all", -1):
            logger.warning(
                "Overriding acks to 'all' because enable_idempotence=True requires it",
                extra={"configured_acks": acks_value},
            )
            acks_value = "all"

        return acks_value, enable_idempotence

    async def start(self) -> None:
        if self._producer is not None:
            logger.warning("Producer already started, ignoring duplicate start call")
            return

        acks_value, enable_idempotence = self._resolve_acks_and_idempotence()
        kafka_config: dict[str, Any] = {
            **self.config.connection_kwargs(),
            **self.config.producer_defaults,
            "acks": acks_value,
            "enable_idempotence": enable_idempotence,
        }
        kafka_config.update(build_security_kwargs(self.config))

        self._producer = AIOKafkaProducer(**kafka_config)
        await self._producer.start()
        update_connection_status("producer", connected=True)

        logger.info(
            "Kafka producer started successfully",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "acks": acks_value,
                "enable_idempotence": enable_idempotence,
            },
        )

    async def stop(self) -> None:
        if self._producer is None:
            return
        try:
            await self._producer.flush()
            await self._producer.stop()
            logger.info("Kafka producer stopped successfully")
        finally:
            update_connection_status("producer", connected=False)
            self._producer = None

    async def send(
        self,
        topic: str,
        key: str | bytes | None,
        value: bytes,
        headers: dict[str, str] | None = None,
    ) -> ProduceResult:
        if self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        metadata = await self._producer.send_and_wait(
            topic,
            key=_encode_key(key),
            value=value,
            headers=_encode_headers(headers),
        )
        return ProduceResult(topic=metadata.topic, partition=metadata.partition, offset=metadata.offset)


# =============================================================================
# In-memory
# =============================================================================


class InMemoryTransport:
    """Partitioned in-process topic log with per-group committed offsets.

    Consumers created from the same transport with the same group id resume
    from the last committed offset, so broker restarts replay uncommitted
    messages exactly as they would against Kafka.

    Example:
        transport = InMemoryTransport()
        broker = DaaSBroker(config, transport.consumer("g"), transport.producer(), sink)
    """

    def __init__(self, partitions: int = 1):
        if partitions < 1:
            raise ValueError("partitions must be >= 1")
        self.partitions = partitions
        self._logs: dict[str, list[list[PipelineMessage]]] = {}
        self._committed: dict[str, dict[PartitionInfo, int]] = defaultdict(dict)
        self._round_robin = 0
        self._changed = asyncio.Condition()

    def consumer(self, group_id: str) -> "InMemoryConsumer":
        return InMemoryConsumer(self, group_id)

    def producer(self) -> "InMemoryProducer":
        return InMemoryProducer(self)

    def _partitions_of(self, topic: str) -> list[list[PipelineMessage]]:
        if topic not in self._logs:
            self._logs[topic] = [[] for _ in range(self.partitions)]
        return self._logs[topic]

    def _select_partition(self, key: bytes | None) -> int:
        if key is not None:
            return zlib.crc32(key) % self.partitions
        self._round_robin = (self._round_robin + 1) % self.partitions
        return self._round_robin

    async def append(
        self,
        topic: str,
        key: bytes | None,
        value: bytes,
        headers: list[tuple[str, bytes]] | None = None,
    ) -> ProduceResult:
        partition = self._select_partition(key)
        log = self._partitions_of(topic)[partition]
        message = PipelineMessage(
            topic=topic,
            partition=partition,
            offset=len(log),
            timestamp=int(asyncio.get_running_loop().time() * 1000),
            key=key,
            value=value,
            headers=headers,
        )
        log.append(message)
        async with self._changed:
            self._changed.notify_all()
        return ProduceResult(topic=topic, partition=partition, offset=message.offset)

    def messages(self, topic: str) -> list[PipelineMessage]:
        """Every message on ``topic``, partition by partition."""
        return [m for log in self._logs.get(topic, []) for m in log]

    def topics(self) -> list[str]:
        return sorted(self._logs)

    def committed(self, group_id: str, topic: str, partition: int = 0) -> int | None:
        return self._committed[group_id].get(PartitionInfo(topic, partition))

    async def _commit(self, group_id: str, offsets: dict[PartitionInfo, int]) -> None:
        self._committed[group_id].update(offsets)
        async with self._changed:
            self._changed.notify_all()

    async def wait_for_commit(
        self,
        group_id: str,
        topic: str,
        offset: int,
        partition: int = 0,
        timeout: float = 5.0,
    ) -> None:
        """Block until ``group_id`` has committed at least ``offset``."""

        def reached() -> bool:
            committed = self.committed(group_id, topic, partition)
            return committed is not None and committed >= offset

        async with self._changed:
            await asyncio.wait_for(self._changed.wait_for(reached), timeout)

    async def wait_for_messages(self, topic: str, count: int, timeout: float = 5.0) -> list[PipelineMessage]:
        async with self._changed:
            await asyncio.wait_for(
                self._changed.wait_for(lambda: len(self.messages(topic)) >= count), timeout
            )
        return self.messages(topic)


class InMemoryConsumer:
    def __init__(self, transport: InMemoryTransport, group_id: str):
        self._transport = transport
        self.group_id = group_id
        self._topics: list[str] = []
        self._positions: dict[PartitionInfo, int] = {}
        self._paused: set[PartitionInfo] = set()
        self._started = False

    async def start(self) -> None:
        self._started = True
        update_connection_status("consumer", connected=True)

    async def stop(self) -> None:
        # A restarted consumer resumes from committed offsets, like a new Kafka client
        self._started = False
        self._topics = []
        self._positions.clear()
        self._paused.clear()
        update_connection_status("consumer", connected=False)

    def subscribe(self, topics: list[str]) -> None:
        self._topics = list(topics)
        assigned = self.assignment()
        for partition in list(self._positions):
            if partition not in assigned:
                del self._positions[partition]
        for partition in assigned:
            if partition not in self._positions:
                committed = self._transport.committed(self.group_id, partition.topic, partition.partition)
                self._positions[partition] = committed or 0
        self._paused &= assigned

    def assignment(self) -> set[PartitionInfo]:
        return {
            PartitionInfo(topic, p) for topic in self._topics for p in range(self._transport.partitions)
        }

    def _available(self) -> Iterable[PartitionInfo]:
        for partition, position in self._positions.items():
            if partition in self._paused:
                continue
            log = self._transport._partitions_of(partition.topic)[partition.partition]
            if position < len(log):
                yield partition

    def _collect(self, max_records: int | None) -> dict[PartitionInfo, list[PipelineMessage]]:
        batch: dict[PartitionInfo, list[PipelineMessage]] = {}
        remaining = max_records if max_records is not None else float("inf")
        for partition in list(self._available()):
            if remaining <= 0:
                break
            log = self._transport._partitions_of(partition.topic)[partition.partition]
            start = self._positions[partition]
            end = int(min(len(log), start + remaining))
            batch[partition] = log[start:end]
            self._positions[partition] = end
            remaining -= end - start
        return batch

    async def getmany(
        self, timeout_ms: int, max_records: int | None = None
    ) -> dict[PartitionInfo, list[PipelineMessage]]:
        if not self._started:
            raise RuntimeError("Consumer not started. Call start() first.")
        batch = self._collect(max_records)
        if batch:
            return batch
        condition = self._transport._changed
        try:
            async with condition:
                await asyncio.wait_for(
                    condition.wait_for(lambda: any(True for _ in self._available())),
                    timeout_ms / 1000,
                )
        except asyncio.TimeoutError:
            return {}
        return self._collect(max_records)

    async def commit(self, offsets: dict[PartitionInfo, int]) -> None:
        await self._transport._commit(self.group_id, offsets)

    def pause(self, *partitions: PartitionInfo) -> None:
        self._paused.update(partitions)

    def resume(self, *partitions: PartitionInfo) -> None:
        self._paused.difference_update(partitions)

    def paused(self) -> set[PartitionInfo]:
        return set(self._paused)


class InMemoryProducer:
    def __init__(self, transport: InMemoryTransport):
        self._transport = transport

    async def start(self) -> None:
        update_connection_status("producer", connected=True)

    async def stop(self) -> None:
        update_connection_status("producer", connected=False)

    async def send(
        self,
        topic: str,
        key: str | bytes | None,
        value: bytes,
        headers: dict[str, str] | None = None,
    ) -> ProduceResult:
        return await self._transport.append(topic, _encode_key(key), value, _encode_headers(headers))


def create_transport(
    config: DaasConfig,
    transport_type: TransportType | None = None,
    memory: InMemoryTransport | None = None,
) -> tuple[TopicConsumer, TopicProducer]:
    """Build the broker's consumer and producer for the configured transport."""
    transport = transport_type or get_transport_type()
    logger.info("Creating transport", extra={"transport": transport.value})

    if transport == TransportType.MEMORY:
        memory = memory or InMemoryTransport()
        return memory.consumer(config.broker.group_id), memory.producer()

    return KafkaTopicConsumer(config), KafkaTopicProducer(config)


__all__ = [
    "TransportType",
    "get_transport_type",
    "TopicConsumer",
    "TopicProducer",
    "KafkaTopicConsumer",
    "KafkaTopicProducer",
    "InMemoryTransport",
    "InMemoryConsumer",
    "InMemoryProducer",
    "build_security_kwargs",
    "create_transport",
]
