from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from whatsapp_agent.services.classifier_service import InboundMessage
from whatsapp_agent.services.twilio_service import strip_channel_prefix


class TwilioWebhookPayload(BaseModel):
    """Inbound WhatsApp message as posted by Twilio (form fields or JSON)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: str = Field(validation_alias=AliasChoices("From", "from", "sender"))
    body: str = Field(default="", validation_alias=AliasChoices("Body", "body"))
    num_media: int = Field(default=0, ge=0, validation_alias=AliasChoices("NumMedia", "num_media"))
    media_content_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MediaContentType0", "media_content_type"),
    )
    media_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("MediaUrl0", "media_url"))
    message_sid: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MessageSid", "SmsMessageSid", "message_sid"),
    )
    profile_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("ProfileName", "profile_name"))
    forwarded: bool = Field(default=False, validation_alias=AliasChoices("Forwarded", "forwarded"))

    @field_validator("sender")
    @classmethod
    def normalize_sender(cls, value: str) -> str:
        phone = strip_channel_prefix(value)
        if not phone:
            raise ValueError("sender address is empty")
        return phone

    @field_validator("body", mode="before")
    @classmethod
    def default_body(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("num_media", mode="before")
    @classmethod
    def default_num_media(cls, value: object) -> object:
        return 0 if value in (None, "") else value

    @field_validator("media_content_type", "media_url", "profile_name", mode="before")
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("forwarded", mode="before")
    @classmethod
    def default_forwarded(cls, value: object) -> object:
        return False if value in (None, "") else value

    def to_inbound(self) -> InboundMessage:
        return InboundMessage(
            sender=self.sender,
            body=self.body,
            media_count=self.num_media,
            media_content_type=self.media_content_type,
            media_url=self.media_url,
            message_sid=self.message_sid,
            profile_name=self.profile_name,
            is_forwarded=self.forwarded,
        )


class WebhookResponse(BaseModel):
    success: bool
    message: str
    message_sid: Optional[str] = None
