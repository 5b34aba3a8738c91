from functools import lru_cache

from whatsapp_agent.config import Settings, settings
from whatsapp_agent.database import SessionLocal
from whatsapp_agent.services.dispatch_service import Dispatcher
from whatsapp_agent.services.generation_service import GenerationClient
from whatsapp_agent.services.llm import OpenAIProvider
from whatsapp_agent.services.media_service import MediaResolver
from whatsapp_agent.services.moderation_service import SafetyGate
from whatsapp_agent.services.pipeline import MessagePipeline
from whatsapp_agent.services.staleness_service import StalenessGuard
from whatsapp_agent.services.twilio_service import TwilioClient


def build_pipeline(config: Settings, session_factory=SessionLocal) -> MessagePipeline:
    """Assemble the pipeline and its collaborators from settings."""
    provider = OpenAIProvider(
        api_key=config.openai_api_key or "",
        default_model=config.chat_model,
        base_url=config.openai_base_url,
        moderation_model=config.moderation_model,
        transcription_model=config.transcription_model,
        timeout_seconds=config.llm_timeout_seconds,
    )
    twilio = TwilioClient(
        config.twilio_account_sid,
        config.twilio_auth_token,
        config.twilio_phone_number,
        api_base_url=config.twilio_api_base_url,
        timeout_seconds=config.media_timeout_seconds,
    )
    return MessagePipeline(
        session_factory=session_factory,
        media_resolver=MediaResolver(twilio, provider, transcription_model=config.transcription_model),
        safety_gate=SafetyGate(provider, fail_open=config.moderation_fail_open, model=config.moderation_model),
        generation_client=GenerationClient(
            provider,
            model=config.chat_model,
            max_tokens=config.max_completion_tokens,
            reset_keyword=config.reset_keyword,
        ),
        staleness_guard=StalenessGuard(fail_open=config.staleness_fail_open),
        dispatcher=Dispatcher(twilio),
        reset_keyword=config.reset_keyword,
        moderate_replies=config.moderate_replies,
    )


@lru_cache()
def get_pipeline() -> MessagePipeline:
    return build_pipeline(settings)
