from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    COMMAND = "command"


@dataclass(frozen=True)
class InboundMessage:
    """Normalized inbound message, independent of the webhook payload shape."""

    sender: str
    body: str = ""
    media_count: int = 0
    media_content_type: Optional[str] = None
    media_url: Optional[str] = None
    message_sid: Optional[str] = None
    profile_name: Optional[str] = None
    is_forwarded: bool = False

    @property
    def has_media(self) -> bool:
        return self.media_count > 0


def normalize_command(text: Optional[str]) -> str:
    """Trim and casefold text for command matching."""
    return (text or "").strip().casefold()


def is_reset_command(text: Optional[str], reset_keyword: str) -> bool:
    return normalize_command(text) == normalize_command(reset_keyword)


def classify_message(message: InboundMessage, reset_keyword: str = "clear") -> MessageKind:
    """Derive the message kind from the inbound fields.

    Precedence: reset command, plain text, image, audio, then text as the
    fallback for attachments of any other content-type.
    """
    if not message.has_media:
        if is_reset_command(message.body, reset_keyword):
            return MessageKind.COMMAND
        return MessageKind.TEXT

    content_type = (message.media_content_type or "").strip().lower()
    if content_type.startswith("image/"):
        return MessageKind.IMAGE
    if content_type.startswith("audio/") or "ogg" in content_type or "voice" in content_type:
        return MessageKind.AUDIO

    return MessageKind.TEXT
