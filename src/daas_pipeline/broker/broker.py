"""
DaaS broker: consume topics, dispatch to processors, republish, commit.

Architecture:
    register()/unregister() ──► command queue ──► consumption loop (task)
                                                      │ getmany()
                                                      ▼
                                    per-partition worker tasks (arrival order)
                                      decode → process (retry/backoff)
                                      → publish derived → commit offset + 1

The consumption loop owns the processor registry and the subscription;
callers only enqueue commands. Each assigned partition gets its own worker
task so a slow processor on one partition never stalls another. A
partition whose worker queue reaches ``max_inflight_per_partition`` is
paused until the queue drains to half.

Offsets are committed only after every processor registered on the topic
reached a terminal state (processed or dead-lettered). A crash anywhere
before the commit replays the message, so delivery is at-least-once.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime

from config.config import DaasConfig
from core.errors import (
    MalformedDocumentError,
    PermanentError,
    PipelineError,
    TransportError,
    classify_exception,
    is_retryable_error,
)
from core.logging import MessageLogContext, log_exception, set_log_context
from core.resilience import TRANSPORT_RETRY, RetryConfig, with_retry_async
from core.utils import generate_worker_id
from daas_pipeline.broker.dlq import DeadLetterSink
from daas_pipeline.broker.transport import TopicConsumer, TopicProducer
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
from daas_pipeline.common import metrics
from daas_pipeline.document import (
    ContentType,
    DaaSDocument,
    SourceInfo,
    decode_document,
    encode_document,
)
from daas_pipeline.processors import (
    GenesisProcessor,
    Processor,
    RoutingProcessor,
    build_raw_document,
)

logger = logging.getLogger(__name__)


class PipelineDepthExceededError(PermanentError):
    """Derived document would exceed ``max_pipeline_depth`` hops."""

    pass


class PartitionHaltedError(PermanentError):
    """A dead letter could not be recorded; the partition stops without committing."""

    pass


@dataclass(frozen=True)
class _Command:
    action: str
    topic: str
    processor: Processor | None = None
    name: str | None = None


class PartitionWorker:
    """Processes one partition's messages strictly in arrival order."""

    def __init__(self, partition: PartitionInfo, handler, high_watermark: int, capacity: int):
        self.partition = partition
        self.high_watermark = high_watermark
        self.paused = False
        self.halted = False
        self._handler = handler
        self._queue: asyncio.Queue[PipelineMessage | None] = asyncio.Queue(maxsize=capacity + 1)
        self.task = asyncio.create_task(
            self._run(), name=f"daas-partition-{partition.topic}-{partition.partition}"
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def full(self) -> bool:
        return self._queue.qsize() >= self.high_watermark

    @property
    def drained(self) -> bool:
        return self._queue.qsize() <= self.high_watermark // 2

    def submit(self, messages: list[PipelineMessage]) -> None:
        for message in messages:
            self._queue.put_nowait(message)

    def close(self) -> int:
        """Stop after the in-flight message. Returns the number of queued messages dropped."""
        dropped = self._discard_pending()
        self._queue.put_nowait(None)
        return dropped

    def _discard_pending(self) -> int:
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            dropped += 1

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            try:
                await self._handler(message)
            except Exception as e:
                self.halted = True
                dropped = self._discard_pending()
                log_exception(
                    logger,
                    e,
                    "Partition halted, uncommitted messages will be replayed after restart",
                    topic=self.partition.topic,
                    partition=self.partition.partition,
                    offset=message.offset,
                    queue_depth=dropped,
                )
                return


class DaaSBroker:
    """Background consumer that dispatches documents to registered processors.

    Args:
        config: Pipeline configuration (``broker`` and ``retry`` sections)
        consumer: Transport consumer; subscribed to every topic with a processor
        producer: Transport producer for derived documents
        dead_letters: Sink for messages the broker gives up on
        genesis: Genesis processor used by ``ingest``
        retry: Processor retry policy (defaults to ``config.retry``)
        transport_retry: Retry policy for publish, commit and dead-letter writes
        worker_id: Identifier stamped on logs and dead letters
    """

    def __init__(
        self,
        config: DaasConfig,
        consumer: TopicConsumer,
        producer: TopicProducer,
        dead_letters: DeadLetterSink,
        genesis: GenesisProcessor | None = None,
        retry: RetryConfig | None = None,
        transport_retry: RetryConfig | None = None,
        worker_id: str | None = None,
    ):
        self.config = config
        self.settings = config.broker
        self.worker_id = worker_id or generate_worker_id("daas-broker")
        self._consumer = consumer
        self._producer = producer
        self._dead_letters = dead_letters
        self._genesis = genesis
        self._retry = retry or config.retry
        self._transport_retry = transport_retry or TRANSPORT_RETRY

        self._commands: asyncio.Queue[_Command] = asyncio.Queue()
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

        # Owned by the consumption loop
        self._registry: dict[str, dict[str, Processor]] = {}
        self._subscribed: list[str] = []
        self._workers: dict[PartitionInfo, PartitionWorker] = {}
        self._retired: list[PartitionWorker] = []
        self._states: dict[tuple[str, int, str], DispatchState] = {}

    # =========================================================================
    # Control
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def register(self, topic: str, processor: Processor) -> None:
        """Queue registration of ``processor`` on ``topic``. Never blocks."""
        if not topic:
            raise ValueError("topic is required")
        if not getattr(processor, "name", None):
            raise ValueError("processor must have a non-empty name")
        if self.outbound_topic(processor.name) == topic:
            raise ValueError(
                f"Processor {processor.name!r} would republish to its own input topic {topic!r}"
            )
        self._commands.put_nowait(_Command("register", topic, processor=processor))

    def unregister(self, topic: str, name: str) -> None:
        """Queue removal of the processor called ``name`` from ``topic``."""
        self._commands.put_nowait(_Command("unregister", topic, name=name))

    def outbound_topic(self, processor_name: str) -> str:
        """Topic for documents derived by ``processor_name``.

        The genesis processor always publishes to ``broker.genesis_topic``,
        both from ``ingest`` and when it runs on an inbound topic.
        """
        if self._genesis is not None and processor_name == self._genesis.name:
            return self.settings.genesis_topic
        return self.settings.outbound_topic(processor_name)

    def processors(self, topic: str) -> list[str]:
        """Names of processors currently registered on ``topic``."""
        return list(self._registry.get(topic, {}))

    def dispatch_state(self, topic: str, processor: str, partition: int = 0) -> DispatchState:
        return self._states.get((topic, partition, processor), DispatchState.IDLE)

    async def start(self) -> None:
        """Start transport clients and the consumption loop; returns immediately."""
        if self._task is not None:
            logger.warning("Broker already started, ignoring duplicate start call")
            return

        set_log_context(stage="broker", worker_id=self.worker_id)
        await self._producer.start()
        await self._consumer.start()
        self._stopping.clear()
        self._apply_pending_commands()
        # Resubscribe the registry kept across stop()
        self._sync_subscription()
        self._task = asyncio.create_task(self._run(), name="daas-broker")

        logger.info(
            "Broker started",
            extra={
                "consumer_group": self.settings.group_id,
                "topics": self._subscribed,
                "max_attempts": self._retry.max_attempts,
            },
        )

    async def stop(self) -> None:
        """Stop fetching, let in-flight messages finish, then release the transport.

        Messages fetched but not yet started stay uncommitted and are
        replayed after restart.
        """
        if self._task is None:
            return

        logger.info("Stopping broker", extra={"consumer_group": self.settings.group_id})
        self._stopping.set()
        timeout = self.settings.shutdown_timeout_seconds

        try:
            await asyncio.wait_for(self._task, timeout)
        except asyncio.TimeoutError:
            logger.warning("Consumption loop did not stop in time, cancelling")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        except Exception as e:
            log_exception(logger, e, "Consumption loop failed")

        workers = list(self._workers.values()) + self._retired
        dropped = sum(worker.close() for worker in workers)
        if workers:
            _, pending = await asyncio.wait([w.task for w in workers], timeout=timeout)
            for task in pending:
                logger.warning(
                    "Partition worker did not finish in time, cancelling",
                    extra={"operation": task.get_name()},
                )
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for name, client in (("consumer", self._consumer), ("producer", self._producer)):
            try:
                await client.stop()
            except Exception as e:
                log_exception(logger, e, f"Error stopping {name}")

        self._workers.clear()
        self._retired.clear()
        self._states.clear()
        self._subscribed = []
        self._task = None
        logger.info("Broker stopped", extra={"queue_depth": dropped})

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest(
        self,
        content: bytes | str,
        content_type: ContentType | str,
        source_info: SourceInfo | dict,
        identity: str | None = None,
        metadata: dict[str, str] | None = None,
        tags: list[str] | None = None,
        created_at: datetime | None = None,
    ) -> tuple[str, int]:
        """Store a raw document as revision 0 and publish it to the genesis topic.

        Raises:
            MalformedDocumentError: invalid content or content type
            RevisionConflictError: identity already ingested with different data
            TransportError: publish failed after retries (the document is stored)
        """
        if self._genesis is None:
            raise RuntimeError("DaaSBroker.ingest requires a genesis processor")

        document = build_raw_document(
            content,
            content_type,
            source_info,
            identity=identity,
            metadata=metadata,
            tags=tags,
            created_at=created_at,
        )
        persisted = await self._genesis.provision(document)

        topics = [self.outbound_topic(self._genesis.name)]
        topics.extend(t for t in self._genesis.extra_topics(persisted) if t not in topics)
        for topic in topics:
            await self._publish_with_retry(topic, persisted, 0)

        return persisted.identity, persisted.revision

    async def publish(self, topic: str, document: DaaSDocument, hop: int = 0) -> ProduceResult:
        """Encode and send ``document`` with the configured publish timeout.

        Raises:
            TransportError: send failed or timed out
        """
        value = encode_document(document)
        headers = {HOP_HEADER: str(hop)}
        timeout = self.settings.publish_timeout_seconds
        context = {"topic": topic, "identity": document.identity, "revision": document.revision}

        try:
            result = await asyncio.wait_for(
                self._producer.send(topic, key=document.identity, value=value, headers=headers),
                timeout,
            )
        except asyncio.TimeoutError as e:
            metrics.record_message_produced(topic, success=False, error_type="timeout")
            raise TransportError(
                f"Publish to {topic} timed out after {timeout}s", cause=e, context=context
            ) from e
        except PipelineError as e:
            metrics.record_message_produced(topic, success=False, error_type=type(e).__name__)
            raise
        except Exception as e:
            metrics.record_message_produced(topic, success=False, error_type=type(e).__name__)
            raise TransportError(f"Publish to {topic} failed", cause=e, context=context) from e

        metrics.record_message_produced(topic)
        logger.debug(
            "Document published",
            extra={
                "topic": topic,
                "identity": document.identity,
                "revision": document.revision,
                "hop": hop,
                "partition": result.partition,
                "offset": result.offset,
            },
        )
        return result

    async def _publish_with_retry(self, topic: str, document: DaaSDocument, hop: int) -> ProduceResult:
        return await with_retry_async(config=self._transport_retry)(self.publish)(topic, document, hop)

    # =========================================================================
    # Consumption loop
    # =========================================================================

    def _apply_pending_commands(self) -> None:
        while True:
            try:
                command = self._commands.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._apply_command(command)

    def _apply_command(self, command: _Command) -> None:
        if command.action == "register":
            processors = self._registry.setdefault(command.topic, {})
            name = command.processor.name
            if name in processors:
                logger.warning(
                    "Replacing processor already registered on topic",
                    extra={"topic": command.topic, "processor": name},
                )
            processors[name] = command.processor
            logger.info("Processor registered", extra={"topic": command.topic, "processor": name})
        else:
            processors = self._registry.get(command.topic, {})
            if processors.pop(command.name, None) is None:
                logger.warning(
                    "Unregister ignored, processor not registered",
                    extra={"topic": command.topic, "processor": command.name},
                )
            else:
                logger.info(
                    "Processor unregistered", extra={"topic": command.topic, "processor": command.name}
                )
            if not processors:
                self._registry.pop(command.topic, None)
        self._sync_subscription()

    def _sync_subscription(self) -> None:
        topics = sorted(self._registry)
        if topics == self._subscribed:
            return
        self._consumer.subscribe(topics)
        self._subscribed = topics
        logger.info(
            "Subscription updated",
            extra={"topics": topics, "consumer_group": self.settings.group_id},
        )

    async def _run(self) -> None:
        poll_timeout_ms = self.settings.poll_timeout_ms
        fetch_failures = 0

        try:
            while not self._stopping.is_set():
                self._apply_pending_commands()

                if not self._subscribed:
                    await self._wait_for_command(poll_timeout_ms / 1000)
                    continue

                self._reap_revoked()
                self._update_backpressure()

                try:
                    batches = await self._consumer.getmany(
                        timeout_ms=poll_timeout_ms, max_records=self.settings.max_batch_size
                    )
                    fetch_failures = 0
                except Exception as e:
                    delay = self._transport_retry.get_delay(min(fetch_failures, 10))
                    fetch_failures += 1
                    log_exception(
                        logger,
                        e,
                        "Fetch failed, backing off",
                        level=logging.WARNING,
                        include_traceback=fetch_failures == 1,
                        attempt=fetch_failures,
                        delay_seconds=round(delay, 2),
                    )
                    try:
                        await asyncio.wait_for(self._stopping.wait(), delay)
                    except asyncio.TimeoutError:
                        pass
                    continue

                for partition, messages in batches.items():
                    self._submit(partition, messages)
        finally:
            logger.info("Consumption loop stopped")

    async def _wait_for_command(self, timeout: float) -> None:
        try:
            command = await asyncio.wait_for(self._commands.get(), timeout)
        except asyncio.TimeoutError:
            return
        self._apply_command(command)

    def _submit(self, partition: PartitionInfo, messages: list[PipelineMessage]) -> None:
        worker = self._workers.get(partition)
        if worker is None:
            worker = PartitionWorker(
                partition,
                self._handle_message,
                high_watermark=self.settings.max_inflight_per_partition,
                capacity=self.settings.max_inflight_per_partition + self.settings.max_batch_size,
            )
            self._workers[partition] = worker

        if worker.halted:
            # Fetched before the halt was seen; left uncommitted
            self._update_backpressure()
            return

        worker.submit(messages)
        if worker.full and not worker.paused:
            self._consumer.pause(partition)
            worker.paused = True
            logger.debug(
                "Partition paused for backpressure",
                extra={
                    "topic": partition.topic,
                    "partition": partition.partition,
                    "queue_depth": worker.pending,
                },
            )

    def _update_backpressure(self) -> None:
        for partition, worker in self._workers.items():
            if worker.halted and not worker.paused:
                self._consumer.pause(partition)
                worker.paused = True
            elif worker.paused and not worker.halted and worker.drained:
                self._consumer.resume(partition)
                worker.paused = False
                logger.debug(
                    "Partition resumed",
                    extra={"topic": partition.topic, "partition": partition.partition},
                )

        group = self.settings.group_id
        metrics.update_paused_partitions(group, sum(1 for w in self._workers.values() if w.paused))

    def _reap_revoked(self) -> None:
        assignment = self._consumer.assignment()
        metrics.update_assigned_partitions(self.settings.group_id, len(assignment))

        for partition in [p for p in self._workers if p not in assignment]:
            worker = self._workers.pop(partition)
            dropped = worker.close()
            self._retired.append(worker)
            logger.info(
                "Partition revoked, worker retired",
                extra={
                    "topic": partition.topic,
                    "partition": partition.partition,
                    "queue_depth": dropped,
                },
            )
        self._retired = [w for w in self._retired if not w.task.done()]

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _handle_message(self, message: PipelineMessage) -> list[DispatchOutcome]:
        started = time.perf_counter()
        metrics.record_message_consumed(message.topic, self.settings.group_id)

        with MessageLogContext(
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            key=message.key_str,
            consumer_group=self.settings.group_id,
        ):
            outcomes = await self._dispatch_message(message)

            for outcome in outcomes:
                if not outcome.dead_lettered:
                    self._transition(message, outcome.processor, DispatchState.COMMITTING)
            await self._commit(message)
            for outcome in outcomes:
                self._transition(message, outcome.processor, DispatchState.IDLE)

        metrics.dispatch_duration_seconds.labels(topic=message.topic).observe(
            time.perf_counter() - started
        )
        return outcomes

    async def _dispatch_message(self, message: PipelineMessage) -> list[DispatchOutcome]:
        try:
            document = decode_document(message.value or b"")
        except MalformedDocumentError as e:
            log_exception(
                logger,
                e,
                "Undecodable message, dead-lettering",
                level=logging.WARNING,
                include_traceback=False,
            )
            await self._dead_letter(message, e, DeadLetterReason.UNDECODABLE, attempts=0)
            return []

        processors = list(self._registry.get(message.topic, {}).values())
        if not processors:
            logger.debug("No processors registered on topic", extra={"topic": message.topic})

        return [await self._dispatch(message, document, processor) for processor in processors]

    async def _dispatch(
        self, message: PipelineMessage, document: DaaSDocument, processor: Processor
    ) -> DispatchOutcome:
        name = processor.name
        attempt = 0
        self._transition(message, name, DispatchState.DISPATCHING, attempt=1)

        while True:
            try:
                derived = list(await processor.process(document))
                break
            except Exception as e:
                category = classify_exception(e)
                metrics.record_processing_error(message.topic, name, category.value)

                if not self._retry.should_retry(e, attempt):
                    reason = (
                        DeadLetterReason.EXHAUSTED
                        if is_retryable_error(e)
                        else DeadLetterReason.PERMANENT
                    )
                    log_exception(
                        logger,
                        e,
                        "Processor failed, dead-lettering message",
                        level=logging.WARNING,
                        include_traceback=reason == DeadLetterReason.EXHAUSTED,
                        identity=document.identity,
                        revision=document.revision,
                        processor=name,
                        attempt=attempt + 1,
                        reason=reason.value,
                    )
                    self._transition(message, name, DispatchState.DEAD_LETTERED)
                    await self._dead_letter(
                        message, e, reason, attempts=attempt + 1, processor=name, document=document
                    )
                    return DispatchOutcome(
                        processor=name,
                        state=DispatchState.DEAD_LETTERED,
                        attempts=attempt + 1,
                        error=e,
                    )

                delay = self._retry.get_delay(attempt)
                attempt += 1
                metrics.record_dispatch_retry(message.topic, name)
                self._transition(message, name, DispatchState.RETRY_BACKOFF, attempt=attempt)
                logger.warning(
                    "Retryable processor failure, backing off",
                    extra={
                        "identity": document.identity,
                        "revision": document.revision,
                        "processor": name,
                        "attempt": attempt,
                        "max_attempts": self._retry.max_attempts,
                        "delay_seconds": round(delay, 3),
                        "error_category": category.value,
                        "error_message": str(e)[:200],
                    },
                )
                await asyncio.sleep(delay)
                self._transition(message, name, DispatchState.DISPATCHING, attempt=attempt + 1)

        outcome = DispatchOutcome(
            processor=name,
            state=DispatchState.COMMITTING,
            attempts=attempt + 1,
            derived=derived,
        )
        await self._publish_derived(message, processor, outcome)
        return outcome

    def _outbound_topics(self, processor: Processor, document: DaaSDocument) -> list[str]:
        topics = [self.outbound_topic(processor.name)]
        if isinstance(processor, RoutingProcessor):
            topics.extend(t for t in processor.extra_topics(document) if t not in topics)
        return topics

    async def _publish_derived(
        self, message: PipelineMessage, processor: Processor, outcome: DispatchOutcome
    ) -> None:
        hop = message.hop + 1

        for document in outcome.derived:
            if hop > self.settings.max_pipeline_depth:
                error = PipelineDepthExceededError(
                    f"Derived document would be at hop {hop}, "
                    f"limit is {self.settings.max_pipeline_depth}",
                    context={"identity": document.identity, "hop": hop},
                )
                logger.warning(
                    "Pipeline depth exceeded, dead-lettering derived document",
                    extra={
                        "identity": document.identity,
                        "revision": document.revision,
                        "processor": processor.name,
                        "hop": hop,
                    },
                )
                outcome.state = DispatchState.DEAD_LETTERED
                outcome.error = error
                await self._dead_letter(
                    message,
                    error,
                    DeadLetterReason.PIPELINE_DEPTH_EXCEEDED,
                    attempts=outcome.attempts,
                    processor=processor.name,
                    document=document,
                    payload=encode_document(document),
                )
                continue

            for topic in self._outbound_topics(processor, document):
                try:
                    await self._publish_with_retry(topic, document, hop)
                except Exception as e:
                    log_exception(
                        logger,
                        e,
                        "Publish of derived document failed, dead-lettering",
                        identity=document.identity,
                        revision=document.revision,
                        processor=processor.name,
                        topic=topic,
                    )
                    outcome.state = DispatchState.DEAD_LETTERED
                    outcome.error = e
                    await self._dead_letter(
                        message,
                        e,
                        DeadLetterReason.EXHAUSTED,
                        attempts=self._transport_retry.max_attempts,
                        processor=processor.name,
                        document=document,
                        payload=encode_document(document),
                    )
                    continue
                outcome.published_topics.append(topic)

        if outcome.derived:
            logger.debug(
                "Derived documents published",
                extra={
                    "processor": processor.name,
                    "derived_count": len(outcome.derived),
                    "topics": outcome.published_topics,
                    "hop": hop,
                },
            )

    async def _commit(self, message: PipelineMessage) -> bool:
        partition = PartitionInfo(message.topic, message.partition)
        offsets = {partition: message.offset + 1}
        timeout = self.settings.commit_timeout_seconds

        async def commit_offsets() -> None:
            try:
                await asyncio.wait_for(self._consumer.commit(offsets), timeout)
            except asyncio.TimeoutError as e:
                raise TransportError(f"Commit timed out after {timeout}s", cause=e) from e

        try:
            await with_retry_async(config=self._transport_retry)(commit_offsets)()
        except Exception as e:
            log_exception(
                logger,
                e,
                "Offset commit failed, message will be replayed after restart",
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
            )
            return False

        metrics.record_offset_committed(message.topic, self.settings.group_id)
        logger.debug("Offset committed", extra={"offset": message.offset + 1})
        return True

    async def _dead_letter(
        self,
        message: PipelineMessage,
        error: Exception,
        reason: DeadLetterReason,
        attempts: int,
        processor: str | None = None,
        document: DaaSDocument | None = None,
        payload: bytes | None = None,
    ) -> None:
        record = DeadLetterRecord(
            identity=document.identity if document else message.key_str,
            revision=document.revision if document else None,
            processor=processor,
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            error_type=type(error).__name__,
            error_message=str(error)[:2000],
            retryable=is_retryable_error(error),
            attempts=attempts,
            reason=reason,
            payload=payload if payload is not None else (message.value or b""),
            worker_id=self.worker_id,
        )

        async def write_record() -> None:
            await self._dead_letters.record(record)

        try:
            await with_retry_async(config=self._transport_retry)(write_record)()
        except Exception as e:
            raise PartitionHaltedError(
                f"Dead letter for {message.topic}[{message.partition}]@{message.offset} "
                "could not be recorded",
                cause=e,
                context={"reason": reason.value, "processor": processor},
            ) from e

        metrics.record_dead_letter(message.topic, reason.value)

    def _transition(
        self, message: PipelineMessage, processor: str, state: DispatchState, **extra
    ) -> None:
        key = (message.topic, message.partition, processor)
        if state == DispatchState.IDLE:
            self._states.pop(key, None)
        else:
            self._states[key] = state
        logger.debug(
            "Dispatch state changed",
            extra={"processor": processor, "state": state.value, **extra},
        )


__all__ = [
    "DaaSBroker",
    "PartitionWorker",
    "PartitionHaltedError",
    "PipelineDepthExceededError",
]
