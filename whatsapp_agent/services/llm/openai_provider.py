from typing import List, Optional

import httpx

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.llm.base import LLMProvider, LLMProviderError, LLMResponse, ModerationResponse

logger = get_logger("llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI API provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o",
        *,
        base_url: str = "https://api.openai.com/v1",
        moderation_model: str = "omni-moderation-latest",
        transcription_model: str = "whisper-1",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.moderation_model = moderation_model
        self.transcription_model = transcription_model
        self.timeout_seconds = timeout_seconds
        self.base_url = base_url.rstrip("/")
        self.chat_url = f"{self.base_url}/chat/completions"
        self.audio_url = f"{self.base_url}/audio/transcriptions"
        self.moderation_url = f"{self.base_url}/moderations"
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout_seconds,
            transport=self._transport,
        )

    def _headers(self, json_body: bool = True) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _post(self, url: str, *, timeout: Optional[float] = None, **kwargs) -> httpx.Response:
        try:
            async with self._client(timeout) as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"OpenAI request failed: url={url}, error={exc}")
            raise LLMProviderError(f"OpenAI request failed: {exc}") from exc

        logger.debug(f"OpenAI response status: {response.status_code}, url={url}")
        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise LLMProviderError(
                f"OpenAI API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 800,
    ) -> LLMResponse:
        """Generate response from OpenAI."""
        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        response = await self._post(self.chat_url, headers=self._headers(), json=payload)
        data = response.json()

        content = ""
        if data.get("choices") and len(data["choices"]) > 0:
            message = data["choices"][0].get("message", {})
            content = message.get("content") or ""
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        """Transcribe audio using OpenAI speech-to-text."""
        if not audio_bytes:
            raise ValueError("audio_bytes is empty")

        files = {"file": (filename or "audio.ogg", audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": model or self.transcription_model, "response_format": "text"}

        response = await self._post(
            self.audio_url,
            headers=self._headers(json_body=False),
            files=files,
            data=data,
        )

        transcript = (response.text or "").strip()
        if not transcript:
            logger.warning("OpenAI transcription returned empty text")
        return transcript

    async def moderate(self, text: str, model: Optional[str] = None) -> ModerationResponse:
        """Run the moderation endpoint and return the first result."""
        payload = {"model": model or self.moderation_model, "input": text}
        response = await self._post(self.moderation_url, headers=self._headers(), json=payload)
        data = response.json()

        results = data.get("results") or []
        if not results:
            raise LLMProviderError("OpenAI moderation returned no results")
        first = results[0]
        return ModerationResponse(
            flagged=bool(first.get("flagged")),
            categories=dict(first.get("categories") or {}),
            category_scores=dict(first.get("category_scores") or {}),
        )
