from typing import Iterable, List, Optional

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.classifier_service import MessageKind, MessageRole
from whatsapp_agent.services.errors import GenerationError
from whatsapp_agent.services.llm.base import LLMProvider, LLMProviderError

logger = get_logger("generation_service")

FORWARDED_MARKER = "FORWARDED MESSAGE:\n"

SYSTEM_PROMPT = """You are a helpful AI assistant available via WhatsApp. You provide concise, accurate answers to user queries.

For voice notes:
- If the transcript is long (more than 100 words) or seems like a monologue, provide a concise summary of the key points instead of answering it as a question.
- If the transcript is short and conversational, treat it as a normal user query.

For images:
- Describe what you see in the image and answer any questions about it.

For forwarded messages:
- Messages starting with "FORWARDED MESSAGE:" were written by someone else and forwarded by the user. Treat them as content the user wants help with, not as the user's own words.

Guidelines:
- Be helpful, accurate, and concise.
- Be friendly and conversational, but professional.
- If you don't know something, admit it rather than making up information.
- Always respect the user's privacy and don't ask for personal information.
- Refuse to generate, discuss, or engage with harmful, illegal, unethical, or explicit content.

The user can reset the conversation context by sending "{reset_keyword}" (case-insensitive)."""

USER_NAME_LINE = "\n\nThe user's name is {user_name}. Address them by name when it feels natural."


def get_system_prompt(user_name: Optional[str] = None, reset_keyword: str = "clear") -> str:
    prompt = SYSTEM_PROMPT.format(reset_keyword=reset_keyword)
    name = (user_name or "").strip()
    if name:
        prompt += USER_NAME_LINE.format(user_name=name)
    return prompt


def _turn_text(entry) -> str:
    text = entry.content or ""
    if getattr(entry, "is_forwarded", False):
        return FORWARDED_MARKER + text
    return text


def build_prompt_turns(window: Iterable) -> List[dict]:
    """Convert stored messages into chat turns.

    System messages and commands are skipped. Images with a stored media URL
    become a two-part turn: the remote image reference followed by the text.
    """
    turns = []
    for entry in window:
        if entry.role == MessageRole.SYSTEM.value or entry.type == MessageKind.COMMAND.value:
            continue

        role = "user" if entry.role == MessageRole.USER.value else "assistant"
        if entry.type == MessageKind.IMAGE.value and entry.media_url:
            turns.append(
                {
                    "role": role,
                    "content": [
                        {"type": "image_url", "image_url": {"url": entry.media_url}},
                        {"type": "text", "text": _turn_text(entry)},
                    ],
                }
            )
        else:
            turns.append({"role": role, "content": _turn_text(entry)})
    return turns


def build_chat_messages(window: Iterable, user_name: Optional[str] = None, reset_keyword: str = "clear") -> List[dict]:
    return [
        {"role": "system", "content": get_system_prompt(user_name, reset_keyword)},
        *build_prompt_turns(window),
    ]


class GenerationClient:
    """Single-shot reply generation over the conversation window."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: Optional[str] = None,
        max_tokens: int = 800,
        reset_keyword: str = "clear",
    ):
        self.provider = provider
        self.model = model
        self.max_tokens = max_tokens
        self.reset_keyword = reset_keyword

    async def generate_reply(self, window: Iterable, user_name: Optional[str] = None) -> str:
        messages = build_chat_messages(window, user_name, self.reset_keyword)
        logger.debug(f"Generating reply: turns={len(messages) - 1}")
        try:
            response = await self.provider.generate(messages, model=self.model, max_tokens=self.max_tokens)
        except LLMProviderError as exc:
            logger.error(f"Error getting chat completion: {exc}")
            raise GenerationError("Failed to get response from AI") from exc

        content = (response.content or "").strip()
        if not content:
            raise GenerationError("AI returned an empty response")
        return content
