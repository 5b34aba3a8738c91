from whatsapp_agent.services.llm.base import LLMProvider, LLMProviderError, LLMResponse, ModerationResponse
from whatsapp_agent.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMProviderError", "LLMResponse", "ModerationResponse", "OpenAIProvider"]
