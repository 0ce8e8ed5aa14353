"""Logging setup and configuration."""

import io
import logging
import shutil
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.utils.worker_id import generate_worker_id

# Default settings
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "H"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 24
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "aiokafka.conn",
    "aiokafka.consumer.group_coordinator",
    "kafka",
]


class ArchivingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """
    TimedRotatingFileHandler that moves rotated files to an archive folder.

    When a log file is rotated (e.g., daas_broker.log -> daas_broker.log.2026-01-22),
    the backup is moved to ``archive_dir`` (default: an ``archive`` subdirectory
    next to the active file) to keep the main log directory clean.
    """

    def __init__(
        self,
        filename,
        when="midnight",
        interval=1,
        backupCount=0,
        encoding=None,
        delay=False,
        utc=False,
        archive_dir=None,
    ):
        super().__init__(filename, when, interval, backupCount, encoding, delay, utc)
        if archive_dir:
            self.archive_dir = Path(archive_dir)
        else:
            self.archive_dir = Path(self.baseFilename).parent / "archive"

        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def doRollover(self):
        super().doRollover()

        log_path = Path(self.baseFilename)
        for rotated_file in log_path.parent.glob(f"{log_path.name}.*"):
            if rotated_file == log_path:
                continue

            try:
                shutil.move(str(rotated_file), str(self.archive_dir / rotated_file.name))
            except OSError as e:
                # Not through logging: we are inside a handler
                print(f"Warning: Failed to archive {rotated_file}: {e}", file=sys.stderr)


def get_log_file_path(
    log_dir: Path,
    domain: str | None = None,
    stage: str | None = None,
    instance_id: str | None = None,
) -> Path:
    """
    Build log file path with domain/date subfolder structure.

    Structure: {log_dir}/{domain}/{YYYY-MM-DD}/{domain}_{stage}_{MMDD}_{HHMM}_{instance}.log

    Examples:
        logs/daas/2026-01-05/daas_broker_0105_1430_brave-golden-tiger.log
    """
    now = datetime.now()
    date_folder = now.strftime("%Y-%m-%d")
    stamp = now.strftime("%m%d_%H%M")

    parts = [p for p in (domain, stage) if p] or ["pipeline"]
    base_name = "_".join(parts + [stamp])

    phrase = instance_id or generate_worker_id()
    filename = f"{base_name}_{phrase}.log"

    if domain:
        return log_dir / domain / date_folder / filename
    return log_dir / date_folder / filename


def _stdout_handler() -> logging.StreamHandler:
    if sys.platform == "win32":
        safe_stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        return logging.StreamHandler(safe_stdout)
    return logging.StreamHandler(sys.stdout)


def setup_logging(
    name: str = "daas_pipeline",
    stage: str | None = None,
    domain: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    worker_id: str | None = None,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Configure logging with console and auto-archiving rotating file handlers.

    Args:
        name: Logger name returned to the caller
        stage: Stage name for the log file name and log context
        domain: Pipeline domain (subfolder under ``log_dir``)
        log_dir: Directory for log files (default: ./logs)
        json_format: Use JSON format for file logs (default: True)
        console_level: Console handler level (default: INFO)
        file_level: File handler level (default: DEBUG)
        rotation_when: When to rotate logs - 'midnight', 'H' (hourly), 'M' (minutes)
        rotation_interval: Interval for rotation
        backup_count: Number of backup files to keep
        suppress_noisy: Quiet down the Kafka client loggers
        worker_id: Worker identifier for context and the log file name
        log_to_stdout: Send all log output to stdout only, skipping file handlers.
            Useful for containerized deployments where logs are captured from stdout.

    Returns:
        Configured logger instance
    """
    log_dir = log_dir or DEFAULT_LOG_DIR

    set_log_context(worker_id=worker_id, stage=stage, domain=domain)

    console_handler = _stdout_handler()
    console_handler.setFormatter(ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    log_file = None
    if log_to_stdout:
        console_handler.setLevel(min(console_level, file_level))
        root_logger.addHandler(console_handler)
    else:
        console_handler.setLevel(console_level)

        log_file = get_log_file_path(log_dir, domain=domain, stage=stage, instance_id=worker_id)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        # Structure: logs/archive/domain/date
        try:
            archive_dir = log_dir / "archive" / log_file.relative_to(log_dir).parent
        except ValueError:
            archive_dir = log_file.parent / "archive"

        file_handler = ArchivingTimedRotatingFileHandler(
            log_file,
            when=rotation_when,
            interval=rotation_interval,
            backupCount=backup_count,
            encoding="utf-8",
            archive_dir=archive_dir,
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(file_formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    if log_file is None:
        logger.debug("Logging initialized: stdout-only mode")
    else:
        logger.debug("Logging initialized: file=%s, json=%s", log_file, json_format)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)


def log_worker_startup(
    logger: logging.Logger,
    worker_name: str,
    bootstrap_servers: str | None = None,
    input_topics: list[str] | None = None,
    consumer_group: str | None = None,
    extra_config: dict | None = None,
) -> None:
    """
    Log standard worker startup information including transport configuration.

    Call this at worker startup so that bootstrap server or topic mismatches
    are visible in the first lines of the log.
    """
    logger.info("=" * 70)
    logger.info("Starting %s", worker_name)
    logger.info("=" * 70)
    logger.info("Bootstrap servers: %s", bootstrap_servers or "not set")

    if input_topics:
        logger.info("Input topics: %s", ", ".join(input_topics))
    if consumer_group:
        logger.info("Consumer group: %s", consumer_group)

    if extra_config:
        for key, value in extra_config.items():
            logger.info("%s: %s", key, value)

    logger.info("=" * 70)
