from __future__ import annotations

from abc import ABC, abstractmethod


class BlobStorage(ABC):
    """Binary media storage for note attachments."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:  # pragma: no cover - interface only
        """Store ``data`` at ``path`` and return a URL for it."""

    @abstractmethod
    async def delete(self, path: str) -> None:  # pragma: no cover
        """Remove the object at ``path``."""

    @abstractmethod
    def path_for_url(self, url: str) -> str | None:  # pragma: no cover
        """Map a URL returned by ``upload`` back to its storage path."""
