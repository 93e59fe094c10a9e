from __future__ import annotations

from typing import TYPE_CHECKING

from notekeeper.config import settings
from notekeeper.core.errors import ExternalServiceError
from notekeeper.utils.http import post_to_service, service_client
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    import httpx

logger = get_logger(__name__)

SERVICE_NAME = "transcription"


class TranscriptionService:
    """Speech-to-text over HTTP.

    Sends the recording as multipart form data to ``/api/transcribe`` and
    expects ``{"transcription": "..."}`` back.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.transcription_url).rstrip("/")
        self._timeout = timeout or settings.transcription_timeout
        self._client = client

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "recording.webm",
        content_type: str = "audio/webm",
    ) -> str:
        if not audio:
            raise ValueError("No audio was recorded")

        logger.info("Sending %d bytes of audio for transcription", len(audio))
        async with service_client(self._client, self._timeout) as client:
            data = await post_to_service(
                client,
                f"{self._base_url}/api/transcribe",
                service=SERVICE_NAME,
                timeout=self._timeout,
                files={"audio": (filename, audio, content_type)},
            )

        transcription = data.get("transcription")
        if not isinstance(transcription, str):
            raise ExternalServiceError(SERVICE_NAME, "The server sent an unreadable response.")
        transcription = transcription.strip()
        if not transcription:
            raise ValueError("Nothing could be transcribed from the recording")
        logger.info("Transcription received (%d chars)", len(transcription))
        return transcription
