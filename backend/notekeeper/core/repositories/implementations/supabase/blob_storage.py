from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx

from notekeeper.config import settings
from notekeeper.core.errors import StoreError
from notekeeper.core.repositories.blob_storage import BlobStorage
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    from supabase import Client


class SupabaseBlobStorage(BlobStorage):
    """Note media kept in a public Supabase storage bucket."""

    def __init__(self, client: Client, bucket: str | None = None) -> None:
        self._client = client
        self._bucket = bucket or settings.media_bucket

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        bucket = self._client.storage.from_(self._bucket)
        await self._run(
            lambda: bucket.upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        )
        return bucket.get_public_url(path)

    async def delete(self, path: str) -> None:
        bucket = self._client.storage.from_(self._bucket)
        await self._run(lambda: bucket.remove([path]))

    def path_for_url(self, url: str) -> str | None:
        marker = f"/object/public/{self._bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1].split("?", 1)[0] or None

    @staticmethod
    async def _run(func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except httpx.TransportError as err:
            raise StoreError(f"Storage unreachable: {type(err).__name__}", transient=True) from err
        except Exception as err:
            logger.warning("Storage request failed: %s", err)
            raise StoreError(f"Storage rejected request: {err}", transient=False) from err
