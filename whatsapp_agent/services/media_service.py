import hashlib
import mimetypes
from dataclasses import dataclass
from typing import Optional, Protocol

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.classifier_service import InboundMessage, MessageKind
from whatsapp_agent.services.errors import MediaDownloadError, TranscriptionError
from whatsapp_agent.services.llm.base import LLMProvider, LLMProviderError

logger = get_logger("media_service")

_AUDIO_EXTENSIONS = {
    "audio/ogg": ".ogg",
    "audio/opus": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/aac": ".m4a",
    "audio/amr": ".amr",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/webm": ".webm",
}


class MediaFetcher(Protocol):
    async def download_media(self, media_url: str) -> bytes: ...


@dataclass(frozen=True)
class ResolvedMedia:
    content: str
    media_url: Optional[str] = None
    media_hash: Optional[str] = None
    media_content_type: Optional[str] = None


def fingerprint(payload: bytes) -> str:
    """Content fingerprint used for duplicate detection."""
    return hashlib.sha256(payload).hexdigest()


def guess_audio_filename(content_type: Optional[str]) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    ext = _AUDIO_EXTENSIONS.get(mime) or mimetypes.guess_extension(mime) or ".ogg"
    return f"voice{ext}"


class MediaResolver:
    def __init__(self, fetcher: MediaFetcher, transcriber: LLMProvider, transcription_model: Optional[str] = None):
        self.fetcher = fetcher
        self.transcriber = transcriber
        self.transcription_model = transcription_model

    async def resolve(self, message: InboundMessage, kind: MessageKind) -> ResolvedMedia:
        """Fetch the attachment, fingerprint it and transcribe voice notes.

        Messages without an attachment, and attachments that classified as
        plain text, pass through without any network access.
        """
        content = message.body or ""
        if not message.has_media or not message.media_url or kind not in (MessageKind.IMAGE, MessageKind.AUDIO):
            return ResolvedMedia(content=content)

        payload = await self.fetcher.download_media(message.media_url)
        if payload is None:
            raise MediaDownloadError("Media download returned no data")

        media_hash = fingerprint(payload)
        logger.debug(
            "Media downloaded",
            extra={"context": {"size_bytes": len(payload), "media_hash": media_hash, "kind": kind.value}},
        )

        if kind == MessageKind.AUDIO:
            content = await self._transcribe(payload, message.media_content_type)

        return ResolvedMedia(
            content=content,
            media_url=message.media_url,
            media_hash=media_hash,
            media_content_type=message.media_content_type,
        )

    async def _transcribe(self, payload: bytes, content_type: Optional[str]) -> str:
        try:
            transcript = await self.transcriber.transcribe_audio(
                audio_bytes=payload,
                filename=guess_audio_filename(content_type),
                mime_type=content_type,
                model=self.transcription_model,
            )
        except (LLMProviderError, ValueError) as exc:
            logger.error(f"Audio transcription failed: {exc}")
            raise TranscriptionError(f"Failed to transcribe audio message: {exc}") from exc
        return transcript
