import asyncio
import base64
from urllib.parse import parse_qs

import httpx
import pytest

from whatsapp_agent.services.errors import MediaDownloadError
from whatsapp_agent.services.twilio_service import TwilioClient, strip_channel_prefix, to_whatsapp_address


def _client(handler, **kwargs) -> TwilioClient:
    params = {"account_sid": "AC123", "auth_token": "token", "phone_number": "+15559990000"}
    params.update(kwargs)
    return TwilioClient(transport=httpx.MockTransport(handler), **params)


class TestAddresses:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("whatsapp:+15550001111", "+15550001111"),
            ("WhatsApp:+15550001111", "+15550001111"),
            ("  +15550001111 ", "+15550001111"),
            (None, ""),
        ],
    )
    def test_strip_channel_prefix(self, raw, expected):
        assert strip_channel_prefix(raw) == expected

    def test_to_whatsapp_address_is_idempotent(self):
        assert to_whatsapp_address("whatsapp:+15550001111") == "whatsapp:+15550001111"


class TestSendMessage:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM999"})

        result = asyncio.run(_client(handler).send_message("+15550001111", "hello"))

        assert result.ok is True
        assert result.value == "SM999"
        assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert seen["auth"] == "Basic " + base64.b64encode(b"AC123:token").decode()
        assert seen["form"] == {
            "From": ["whatsapp:+15559990000"],
            "To": ["whatsapp:+15550001111"],
            "Body": ["hello"],
        }

    def test_missing_credentials(self):
        def handler(request):
            raise AssertionError("no request expected")

        result = asyncio.run(_client(handler, auth_token=None).send_message("+15550001111", "hello"))

        assert result.ok is False
        assert result.error_code == "missing_credentials"

    def test_empty_body(self):
        result = asyncio.run(_client(lambda request: httpx.Response(201)).send_message("+15550001111", ""))
        assert result.error_code == "invalid_request"

    def test_api_error(self):
        result = asyncio.run(
            _client(lambda request: httpx.Response(400, json={"message": "bad"})).send_message("+1555", "hi")
        )

        assert result.ok is False
        assert result.error_code == "send_failed"

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        result = asyncio.run(_client(handler).send_message("+15550001111", "hi"))

        assert result.ok is False
        assert result.error_code == "send_failed"


class TestDownloadMedia:
    def test_follows_redirect(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.twilio.com":
                return httpx.Response(307, headers={"Location": "https://media.example.com/ME1"})
            return httpx.Response(200, content=b"image-bytes")

        payload = asyncio.run(_client(handler).download_media("https://api.twilio.com/media/ME1"))

        assert payload == b"image-bytes"

    def test_not_found(self):
        with pytest.raises(MediaDownloadError):
            asyncio.run(_client(lambda request: httpx.Response(404)).download_media("https://api.twilio.com/m"))

    def test_missing_url(self):
        with pytest.raises(MediaDownloadError):
            asyncio.run(_client(lambda request: httpx.Response(200)).download_media(""))
