from __future__ import annotations

from abc import ABC, abstractmethod


class ImageHostError(RuntimeError):
    """The remote image host rejected or failed a request."""


class BaseImageHost(ABC):
    """
    Minimal async interface over a remote image-hosting service.
    Implementations must raise `ImageHostError` for every failure of the
    remote side, including timeouts and transport errors.
    """

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        content_type: str,
        public_id: str,
        transformation: str | None = None,
    ) -> str:
        """Upload ``data`` and return its public URL."""
        ...

    @abstractmethod
    async def destroy(self, public_id: str) -> None:
        ...

    @abstractmethod
    def public_id_for(self, url: str) -> str | None:
        """The host's id for ``url``, or None if the URL is not hosted here."""
        ...

    async def close(self) -> None:
        """Release any client resources."""


class UnconfiguredImageHost(BaseImageHost):
    """
    Stand-in used when no hosting credentials are configured; every upload
    fails, so callers fall back to inline storage.
    """

    async def upload(
        self,
        data: bytes,
        content_type: str,
        public_id: str,
        transformation: str | None = None,
    ) -> str:
        raise ImageHostError("image host is not configured")

    async def destroy(self, public_id: str) -> None:
        raise ImageHostError("image host is not configured")

    def public_id_for(self, url: str) -> str | None:
        return None
