from typing import Optional

import httpx

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.errors import MediaDownloadError
from whatsapp_agent.services.result import Result

logger = get_logger("twilio_service")

WHATSAPP_PREFIX = "whatsapp:"


def strip_channel_prefix(address: Optional[str]) -> str:
    """Turn ``whatsapp:+15551234567`` into ``+15551234567``."""
    value = (address or "").strip()
    if value.lower().startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]
    return value.strip()


def to_whatsapp_address(phone: str) -> str:
    return f"{WHATSAPP_PREFIX}{strip_channel_prefix(phone)}"


class TwilioClient:
    """Outbound WhatsApp messaging and media download via the Twilio REST API."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        phone_number: Optional[str],
        *,
        api_base_url: str = "https://api.twilio.com/2010-04-01",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.phone_number = phone_number
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.api_base_url}/Accounts/{self.account_sid}/Messages.json"

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.phone_number)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            auth=(self.account_sid or "", self.auth_token or ""),
            transport=self._transport,
        )

    async def send_message(self, to: str, body: str) -> Result[str]:
        """Send a WhatsApp text message. Returns the provider message sid; never raises."""
        if not self.is_configured:
            logger.error("Twilio credentials are missing (TWILIO_ACCOUNT_SID/AUTH_TOKEN/PHONE_NUMBER)")
            return Result.failure("Twilio is not configured", "missing_credentials")

        if not to or not body:
            logger.warning(f"send_message: missing recipient={to!r} or body")
            return Result.failure("Missing recipient or body", "invalid_request")

        data = {
            "From": to_whatsapp_address(self.phone_number),
            "To": to_whatsapp_address(to),
            "Body": body,
        }
        try:
            async with self._client() as client:
                response = await client.post(self.messages_url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Error sending WhatsApp message: {e}")
            return Result.failure(str(e), "send_failed")

        logger.info(f"Twilio response: status={response.status_code}, to={to}, body={response.text[:200]}")
        if response.status_code not in (200, 201):
            return Result.failure(f"Twilio API error: {response.status_code}", "send_failed")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        return Result.success(payload.get("sid") or "")

    async def download_media(self, media_url: str) -> bytes:
        """Download an attachment. Twilio media URLs require account credentials."""
        if not media_url:
            raise MediaDownloadError("Media URL is missing")

        try:
            async with self._client() as client:
                response = await client.get(media_url, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error downloading media: url={media_url}, error={e}")
            raise MediaDownloadError(f"Failed to download media: {e}") from e

        logger.debug(f"Media downloaded: url={media_url}, size_bytes={len(response.content)}")
        return response.content
