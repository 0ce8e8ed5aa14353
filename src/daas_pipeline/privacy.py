"""Privacy tagging collaborator.

The policy engine that produces tags lives outside this package; the core
only attaches what it returns and never inspects the bytes.
"""

from typing import Protocol, runtime_checkable

from daas_pipeline.document import DaaSDocument


@runtime_checkable
class PrivacyTagger(Protocol):
    async def tag(self, document: DaaSDocument) -> list[bytes]:
        """Opaque privacy annotations for ``document``, in order."""
        ...


class StaticPrivacyTagger:
    """Attaches the same tags to every document (dev runs and tests)."""

    def __init__(self, tags: list[bytes]) -> None:
        self._tags = list(tags)

    async def tag(self, document: DaaSDocument) -> list[bytes]:
        return list(self._tags)


__all__ = ["PrivacyTagger", "StaticPrivacyTagger"]
