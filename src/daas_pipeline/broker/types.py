"""Transport-agnostic message types and dispatch bookkeeping for the broker."""

import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_serializer, field_validator

from daas_pipeline.document import DaaSDocument

__all__ = [
    "HOP_HEADER",
    "PipelineMessage",
    "ProduceResult",
    "PartitionInfo",
    "DispatchState",
    "DeadLetterReason",
    "DispatchOutcome",
    "DeadLetterRecord",
    "from_consumer_record",
]

# Number of broker republish steps between genesis and this message
HOP_HEADER = "daas-hop"


@dataclass(frozen=True)
class PipelineMessage:
    """Transport-agnostic message received from a topic."""

    topic: str
    partition: int
    offset: int
    timestamp: int
    key: bytes | None = None
    value: bytes | None = None
    headers: list[tuple[str, bytes]] | None = None

    def header(self, name: str) -> bytes | None:
        for key, value in self.headers or []:
            if key == name:
                return value
        return None

    @property
    def hop(self) -> int:
        """Hop count from the ``daas-hop`` header; 0 when absent or unreadable."""
        raw = self.header(HOP_HEADER)
        if raw is None:
            return 0
        try:
            return max(int(raw.decode("ascii")), 0)
        except (UnicodeDecodeError, ValueError):
            return 0

    @property
    def key_str(self) -> str | None:
        if self.key is None:
            return None
        return self.key.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ProduceResult:
    """Transport-agnostic confirmation of a published message."""

    topic: str
    partition: int
    offset: int


@dataclass(frozen=True)
class PartitionInfo:
    """Transport-agnostic partition identifier."""

    topic: str
    partition: int


def from_consumer_record(record) -> PipelineMessage:
    """Convert aiokafka ConsumerRecord to PipelineMessage."""
    headers = None
    if hasattr(record, "headers") and record.headers:
        headers = [(k, v) for k, v in record.headers]

    return PipelineMessage(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        timestamp=record.timestamp,
        key=record.key,
        value=record.value,
        headers=headers,
    )


class DispatchState(StrEnum):
    """State of one (topic, processor) pairing while a message is dispatched."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    RETRY_BACKOFF = "retry_backoff"
    DEAD_LETTERED = "dead_lettered"
    COMMITTING = "committing"


class DeadLetterReason(StrEnum):
    PERMANENT = "permanent"
    EXHAUSTED = "exhausted"
    UNDECODABLE = "undecodable"
    PIPELINE_DEPTH_EXCEEDED = "pipeline_depth_exceeded"


@dataclass
class DispatchOutcome:
    """Terminal result of handing one message to one processor.

    ``state`` is either ``COMMITTING`` (processed, derived documents
    published) or ``DEAD_LETTERED`` (at least one failure was recorded).
    """

    processor: str
    state: DispatchState
    attempts: int = 1
    derived: list[DaaSDocument] = field(default_factory=list)
    published_topics: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def dead_lettered(self) -> bool:
        return self.state == DispatchState.DEAD_LETTERED


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DeadLetterRecord(BaseModel):
    """Operator-visible record of a message set aside for manual replay.

    ``payload`` is the document bytes to replay: the inbound message value
    for processing failures, the derived document for publish failures.
    """

    model_config = ConfigDict(frozen=True)

    identity: Optional[str] = None
    revision: Optional[int] = None
    processor: Optional[str] = None
    topic: str
    partition: int
    offset: int
    error_type: str
    error_message: str = ""
    retryable: bool = False
    attempts: int = Field(default=0, ge=0)
    reason: DeadLetterReason
    payload: bytes = b""
    recorded_at: datetime = Field(default_factory=_utc_now)
    worker_id: Optional[str] = None

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, v: Any, info: ValidationInfo) -> Any:
        if info.mode == "json" and isinstance(v, str):
            return base64.b64decode(v, validate=True)
        return v

    @field_serializer("payload", when_used="json")
    def serialize_payload(self, payload: bytes) -> str:
        return base64.b64encode(payload).decode("ascii")
