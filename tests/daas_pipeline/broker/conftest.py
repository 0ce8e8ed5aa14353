"""Fixtures for broker tests running against the in-memory transport."""

import asyncio
from dataclasses import replace

import pytest

from core.resilience import RetryConfig
from daas_pipeline.broker import DaaSBroker, InMemoryDeadLetterSink, InMemoryTransport
from daas_pipeline.processors import GenesisProcessor
from daas_pipeline.storage import InMemoryDocumentStore

GROUP = "test-group"


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def sink():
    return InMemoryDeadLetterSink()


@pytest.fixture
def store():
    return InMemoryDocumentStore(out_of_order_wait_seconds=0.1)


@pytest.fixture
def transport_retry():
    return RetryConfig(max_attempts=2, base_delay=0.01, max_delay=0.02)


@pytest.fixture
async def make_broker(daas_config, transport, sink, store, transport_retry):
    brokers = []

    def _make(consumer=None, producer=None, dead_letters=None, genesis=True, **settings):
        config = daas_config
        if settings:
            config = replace(daas_config, broker=replace(daas_config.broker, **settings))
        broker = DaaSBroker(
            config,
            consumer or transport.consumer(GROUP),
            producer or transport.producer(),
            dead_letters if dead_letters is not None else sink,
            genesis=GenesisProcessor(store) if genesis else None,
            transport_retry=transport_retry,
            worker_id="test-worker",
        )
        brokers.append(broker)
        return broker

    yield _make

    for broker in brokers:
        await broker.stop()


@pytest.fixture
def eventually():
    async def _eventually(predicate, timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.01)

    return _eventually
