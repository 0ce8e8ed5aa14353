"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_stage_name: ContextVar[str] = ContextVar("stage_name", default="")
_worker_id: ContextVar[str] = ContextVar("worker_id", default="")
_domain: ContextVar[str] = ContextVar("domain", default="")
_identity: ContextVar[str] = ContextVar("identity", default="")


def set_log_context(
    stage: Optional[str] = None,
    worker_id: Optional[str] = None,
    domain: Optional[str] = None,
    identity: Optional[str] = None,
) -> None:
    if stage is not None:
        _stage_name.set(stage)
    if worker_id is not None:
        _worker_id.set(worker_id)
    if domain is not None:
        _domain.set(domain)
    if identity is not None:
        _identity.set(identity)


def get_log_context() -> Dict[str, str]:
    return {
        "stage": _stage_name.get(),
        "worker_id": _worker_id.get(),
        "domain": _domain.get(),
        "identity": _identity.get(),
    }


def clear_log_context() -> None:
    _stage_name.set("")
    _worker_id.set("")
    _domain.set("")
    _identity.set("")
