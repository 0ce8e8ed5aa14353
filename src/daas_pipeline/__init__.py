"""
DaaS pipeline: revisioned documents dispatched through a message broker.

Subpackages:
    storage     - Revisioned document store (local filesystem, in-memory)
    processors  - Processor contract and the Genesis processor
    broker      - Topic consumption, dispatch, republishing and dead letters
    common      - Metrics

Architecture:
    ingest → Genesis (validate, identify, store rev 0) → genesis topic
           → registered processors → topic named after each processor
                                   ↓ (permanent failure / retries exhausted)
                              dead-letter sink

Dependencies:
    - core.*: Errors, retry, logging, worker ids
    - aiokafka: Message transport
    - pydantic: Document model and wire format
"""

__version__ = "0.1.0"
