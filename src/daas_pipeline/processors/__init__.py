"""Processor contract and built-in processors."""

from daas_pipeline.processors.base import FunctionProcessor, ProcessFn, Processor, RoutingProcessor
from daas_pipeline.processors.genesis import (
    GENESIS_METADATA_KEY,
    GENESIS_PROCESSOR_NAME,
    GenesisProcessor,
    build_raw_document,
    validate_content_type,
)

__all__ = [
    "Processor",
    "RoutingProcessor",
    "FunctionProcessor",
    "ProcessFn",
    "GenesisProcessor",
    "GENESIS_PROCESSOR_NAME",
    "GENESIS_METADATA_KEY",
    "build_raw_document",
    "validate_content_type",
]
