"""
Processor contract.

A processor receives one document and returns the documents it derived from
it. Returning an empty list means processing is terminal. Failures are
reported by raising ``ProcessorError``; its ``retryable`` flag tells the
broker whether to back off and retry or to dead-letter the message.

Processors must not mutate their input (documents are frozen) and must be
safe to invoke more than once for the same document, since delivery is
at-least-once.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from daas_pipeline.document import DaaSDocument

ProcessFn = Callable[[DaaSDocument], Awaitable[list[DaaSDocument]]]


@runtime_checkable
class Processor(Protocol):
    """Pluggable unit of work registered against a topic.

    Attributes:
        name: Unique processor name; derived documents are published to a
            topic of the same name unless overridden in broker config.
    """

    name: str

    async def process(self, document: DaaSDocument) -> list[DaaSDocument]:
        ...


@runtime_checkable
class RoutingProcessor(Processor, Protocol):
    """Processor that declares extra topics for each derived document."""

    def extra_topics(self, document: DaaSDocument) -> list[str]:
        ...


class FunctionProcessor:
    """Adapts a plain coroutine function to the Processor contract.

    Example:
        async def echo(doc):
            return []

        broker.register("genesis", FunctionProcessor("echo", echo))
    """

    def __init__(self, name: str, fn: ProcessFn) -> None:
        if not name:
            raise ValueError("processor name is required")
        self.name = name
        self._fn = fn

    async def process(self, document: DaaSDocument) -> list[DaaSDocument]:
        return list(await self._fn(document) or [])

    def __repr__(self) -> str:
        return f"FunctionProcessor(name={self.name!r})"


__all__ = [
    "Processor",
    "RoutingProcessor",
    "FunctionProcessor",
    "ProcessFn",
]
