"""DaaS broker worker. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import socket
import sys
from pathlib import Path

from dotenv import load_dotenv
from prometheus_client import start_http_server

from config import load_config
from config.config import DaasConfig
from core.logging import log_exception, log_worker_startup, setup_logging
from core.utils import generate_worker_id
from daas_pipeline.broker import (
    DaaSBroker,
    InMemoryDeadLetterSink,
    KafkaDeadLetterSink,
    TransportType,
    create_transport,
    get_transport_type,
)
from daas_pipeline.common.signals import setup_shutdown_signal_handlers
from daas_pipeline.processors import GenesisProcessor
from daas_pipeline.storage import LocalDocumentStore

# __main__.py is at src/daas_pipeline/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the DaaS broker with the Genesis processor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run against the configured Kafka cluster
    python -m daas_pipeline

    # Local run with the in-memory transport
    DAAS_TRANSPORT=memory python -m daas_pipeline --log-to-stdout

    # Custom config, store location and metrics port
    python -m daas_pipeline --config ./daas.yaml --store-path /var/lib/daas --metrics-port 9090
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server, 0 to disable (default: 8000)",
    )
    parser.add_argument(
        "--store-path",
        type=str,
        default=None,
        help="Document store directory (overrides storage.path)",
    )
    return parser.parse_args(argv)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("true", "1", "yes")


def start_metrics_server(preferred_port: int) -> int:
    """Start Prometheus metrics server with automatic port fallback.
    Returns actual port number that the server is listening on."""
    try:
        start_http_server(preferred_port)
        return preferred_port
    except OSError as e:
        if e.errno != 98:
            raise
        logger.info("Port %d already in use, finding available port", preferred_port)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            available_port = s.getsockname()[1]
        start_http_server(available_port)
        return available_port


def build_broker(config: DaasConfig, worker_id: str) -> tuple[DaaSBroker, LocalDocumentStore]:
    store = LocalDocumentStore(
        config.storage.path,
        out_of_order_wait_seconds=config.storage.out_of_order_wait_seconds,
        fsync=config.storage.fsync,
    )
    genesis = GenesisProcessor(store, route_by_category=config.broker.route_by_category)

    transport_type = get_transport_type()
    consumer, producer = create_transport(config, transport_type)
    if transport_type == TransportType.MEMORY:
        dead_letters = InMemoryDeadLetterSink()
    else:
        dead_letters = KafkaDeadLetterSink(producer, suffix=config.broker.dlq_suffix)

    broker = DaaSBroker(
        config,
        consumer,
        producer,
        dead_letters,
        genesis=genesis,
        worker_id=worker_id,
    )
    for topic in config.broker.inbound_topics:
        broker.register(topic, genesis)
    return broker, store


async def run(config: DaasConfig, worker_id: str) -> None:
    broker, store = build_broker(config, worker_id)
    shutdown = asyncio.Event()
    current = asyncio.current_task()

    setup_shutdown_signal_handlers(shutdown.set, on_second_signal=current.cancel)

    log_worker_startup(
        logger,
        "daas-broker",
        bootstrap_servers=config.bootstrap_servers,
        input_topics=config.broker.inbound_topics,
        consumer_group=config.broker.group_id,
        extra_config={
            "Worker ID": worker_id,
            "Store path": config.storage.path,
            "Max pipeline depth": config.broker.max_pipeline_depth,
            "Max attempts": config.retry.max_attempts,
        },
    )

    await broker.start()
    try:
        await shutdown.wait()
    finally:
        await broker.stop()
        await store.close()


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    worker_id = os.getenv("WORKER_ID") or generate_worker_id("daas-broker")
    log_to_stdout = args.log_to_stdout or _env_flag("LOG_TO_STDOUT")
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR") or "logs")

    setup_logging(
        name="daas_pipeline",
        stage="broker",
        domain="daas",
        log_dir=log_dir,
        json_format=os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes"),
        console_level=getattr(logging, args.log_level),
        worker_id=worker_id,
        log_to_stdout=log_to_stdout,
    )

    overrides = {"storage": {"path": args.store_path}} if args.store_path else None
    try:
        config = load_config(args.config, overrides=overrides)
    except (FileNotFoundError, ValueError) as e:
        log_exception(logger, e, "Invalid configuration", include_traceback=False)
        return 1

    if args.metrics_port:
        port = start_metrics_server(args.metrics_port)
        logger.info("Metrics server started on port %d", port)

    try:
        asyncio.run(run(config, worker_id))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.warning("Shutdown forced before drain completed")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
