"""
pytest configuration for the DaaS pipeline tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from config.config import BrokerSettings, DaasConfig, StorageSettings  # noqa: E402
from core.logging import clear_log_context, clear_message_context  # noqa: E402
from core.resilience import RetryConfig  # noqa: E402
from daas_pipeline.document import ContentType, DaaSDocument, SourceInfo  # noqa: E402


@pytest.fixture(autouse=True)
def reset_log_context():
    yield
    clear_log_context()
    clear_message_context()


@pytest.fixture
def source_info() -> SourceInfo:
    return SourceInfo(
        source_name="crm",
        event_timestamp=datetime(2026, 1, 15, 12, 0, tzinfo=UTC),
        content_type=ContentType.TEXT,
        media_type="text/plain",
    )


@pytest.fixture
def make_document(source_info):
    def _make(
        identity: str | None = "doc-1",
        revision: int = 0,
        content: bytes = b"hello",
        **fields,
    ) -> DaaSDocument:
        return DaaSDocument(
            identity=identity,
            revision=revision,
            source_info=fields.pop("source_info", source_info),
            content=content,
            **fields,
        )

    return _make


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=5, base_delay=0.01, max_delay=0.02)


@pytest.fixture
def daas_config(tmp_path, fast_retry) -> DaasConfig:
    return DaasConfig(
        bootstrap_servers="localhost:9092",
        broker=BrokerSettings(
            group_id="test-group",
            inbound_topics=["ingest"],
            poll_timeout_ms=50,
            publish_timeout_seconds=1.0,
            commit_timeout_seconds=1.0,
            shutdown_timeout_seconds=5.0,
            max_pipeline_depth=3,
        ),
        retry=fast_retry,
        storage=StorageSettings(path=str(tmp_path / "store"), out_of_order_wait_seconds=1.0),
    )
