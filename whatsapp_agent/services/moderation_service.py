"""Safety gate for inbound messages and generated replies."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.llm.base import LLMProvider

logger = get_logger("moderation_service")

MODERATION_UNAVAILABLE = "moderation_unavailable"


@dataclass(frozen=True)
class ModerationVerdict:
    flagged: bool
    categories: Tuple[str, ...] = ()
    scores: Optional[Dict[str, float]] = field(default=None, compare=False)

    @property
    def reason(self) -> Optional[str]:
        if not self.categories:
            return None
        return ", ".join(self.categories)


UNFLAGGED = ModerationVerdict(flagged=False)


class SafetyGate:
    """Wraps the moderation capability.

    When the provider call fails the gate fails open by default: the text is
    treated as unflagged so that an outage never blocks a conversation. Set
    ``fail_open=False`` to block instead.
    """

    def __init__(self, provider: LLMProvider, *, fail_open: bool = True, model: Optional[str] = None):
        self.provider = provider
        self.fail_open = fail_open
        self.model = model

    async def check(self, text: Optional[str]) -> ModerationVerdict:
        if not text or not text.strip():
            return UNFLAGGED

        try:
            response = await self.provider.moderate(text, model=self.model)
        except Exception as exc:
            logger.error(
                "Moderation call failed",
                extra={"context": {"error": str(exc), "fail_open": self.fail_open}},
            )
            if self.fail_open:
                return UNFLAGGED
            return ModerationVerdict(flagged=True, categories=(MODERATION_UNAVAILABLE,))

        categories = tuple(name for name, hit in response.categories.items() if hit)
        if response.flagged:
            logger.info("Content flagged", extra={"context": {"categories": list(categories)}})
        return ModerationVerdict(
            flagged=response.flagged,
            categories=categories,
            scores=response.category_scores or None,
        )
