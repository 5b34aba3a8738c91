"""End-to-end processing of one inbound WhatsApp message.

Every webhook delivery gets its own independent run with its own database
session. Runs for the same user are not serialized; the only consistency
point is the staleness check right before dispatch.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_agent.logging_config import LoggerAdapter, get_logger
from whatsapp_agent.models import Message, User
from whatsapp_agent.services.alert_service import alert_error
from whatsapp_agent.services.classifier_service import InboundMessage, MessageKind, MessageRole, classify_message
from whatsapp_agent.services.dispatch_service import Dispatcher
from whatsapp_agent.services.generation_service import GenerationClient
from whatsapp_agent.services.media_service import MediaResolver, ResolvedMedia
from whatsapp_agent.services.message_service import get_conversation_window, save_message, save_reset_marker
from whatsapp_agent.services.moderation_service import SafetyGate
from whatsapp_agent.services.staleness_service import StalenessGuard
from whatsapp_agent.services.state_machine import PipelineState, transition
from whatsapp_agent.services.user_service import get_or_create_user

logger = get_logger("pipeline")

RESET_ACK_TEXT = "Conversation history cleared. What would you like to talk about?"
REJECTION_TEXT = (
    "I'm unable to respond to that message as it may contain inappropriate content. "
    "Please try a different question or message."
)
FLAGGED_REPLY_TEXT = "I apologize, but I cannot provide that response. Please try a different question."
ERROR_TEXT = "I'm sorry, I encountered an error processing your message. Please try again later."

SUCCESS_STATES = frozenset({PipelineState.COMMAND_HANDLED, PipelineState.DISPATCHED})


@dataclass
class PipelineResult:
    state: PipelineState
    user_id: Optional[UUID] = None
    inbound_message_id: Optional[UUID] = None
    reply_message_id: Optional[UUID] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state in SUCCESS_STATES


class _RunTracker:
    """Holds the state machine position and identifiers of one run."""

    def __init__(self):
        self.state = PipelineState.RECEIVED
        self.user_id: Optional[UUID] = None
        self.inbound_message_id: Optional[UUID] = None

    def advance(self, to_state: PipelineState) -> PipelineState:
        self.state = transition(self.state, to_state)
        return self.state

    def finish(self, to_state: PipelineState, **kwargs) -> PipelineResult:
        self.advance(to_state)
        return PipelineResult(
            state=self.state,
            user_id=self.user_id,
            inbound_message_id=self.inbound_message_id,
            **kwargs,
        )


class MessagePipeline:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        media_resolver: MediaResolver,
        safety_gate: SafetyGate,
        generation_client: GenerationClient,
        staleness_guard: StalenessGuard,
        dispatcher: Dispatcher,
        *,
        reset_keyword: str = "clear",
        moderate_replies: bool = True,
    ):
        self.session_factory = session_factory
        self.media_resolver = media_resolver
        self.safety_gate = safety_gate
        self.generation_client = generation_client
        self.staleness_guard = staleness_guard
        self.dispatcher = dispatcher
        self.reset_keyword = reset_keyword
        self.moderate_replies = moderate_replies

    async def process(self, message: InboundMessage) -> PipelineResult:
        """Run the pipeline for one inbound message. Never raises."""
        log = LoggerAdapter(logger, {"message_sid": message.message_sid, "phone": message.sender})
        tracker = _RunTracker()
        kind = classify_message(message, self.reset_keyword)
        tracker.advance(PipelineState.CLASSIFIED)
        log.debug("Message classified", context={"kind": kind.value})

        db = None
        try:
            db = self.session_factory()
            result = await self._run(db, message, kind, tracker, log)
        except Exception as exc:
            if db is not None:
                self._rollback(db, log)
            result = await self._fail(message, tracker, exc, log)
        finally:
            if db is not None:
                db.close()

        log.info("Pipeline finished", context={"state": result.state.value, "error": result.error})
        return result

    async def _run(
        self,
        db: Session,
        message: InboundMessage,
        kind: MessageKind,
        tracker: _RunTracker,
        log: LoggerAdapter,
    ) -> PipelineResult:
        user = get_or_create_user(db, message.sender, message.profile_name)
        tracker.user_id = user.id
        user_name = user.name
        log.extra["user_id"] = str(user.id)

        if user.is_banned:
            log.info(f"Ignored message from banned user {user.id}")
            return tracker.finish(PipelineState.BANNED, error="User is banned", error_code="banned")

        if kind == MessageKind.COMMAND:
            save_reset_marker(db, user.id, self.reset_keyword, provider_message_id=message.message_sid)
            await self.dispatcher.notify(user.phone, RESET_ACK_TEXT)
            return tracker.finish(PipelineState.COMMAND_HANDLED)

        media = await self.media_resolver.resolve(message, kind)
        tracker.advance(PipelineState.MEDIA_RESOLVED)

        verdict = await self.safety_gate.check(media.content)
        tracker.advance(PipelineState.MODERATED)

        if verdict.flagged:
            self._save_inbound(db, user, message, kind, media, moderation_reason=verdict.reason)
            await self.dispatcher.notify(user.phone, REJECTION_TEXT)
            log.info("Inbound content rejected", context={"categories": list(verdict.categories)})
            return tracker.finish(
                PipelineState.REJECTED,
                error="Content moderation failed",
                error_code="moderation_flagged",
            )

        inbound = self._save_inbound(db, user, message, kind, media)
        tracker.inbound_message_id = inbound.id

        window = self._load_window(db, tracker.user_id, message, kind, media, log)
        tracker.advance(PipelineState.CONTEXT_BUILT)

        reply = await self.generation_client.generate_reply(window, user_name)
        tracker.advance(PipelineState.GENERATED)

        if self.moderate_replies:
            reply_verdict = await self.safety_gate.check(reply)
            if reply_verdict.flagged:
                log.warning("Generated reply flagged", context={"categories": list(reply_verdict.categories)})
                reply = FLAGGED_REPLY_TEXT

        if self.staleness_guard.is_stale(db, tracker.user_id, tracker.inbound_message_id):
            log.info("Reply suppressed: newer message from user")
            return tracker.finish(
                PipelineState.SUPPRESSED,
                error="Newer message detected",
                error_code="stale",
            )

        reply_message, send_result = await self.dispatcher.dispatch(db, user, reply)
        return tracker.finish(
            PipelineState.DISPATCHED,
            reply_message_id=reply_message.id,
            error=None if send_result.ok else send_result.error,
            error_code=None if send_result.ok else send_result.error_code,
        )

    def _save_inbound(
        self,
        db: Session,
        user: User,
        message: InboundMessage,
        kind: MessageKind,
        media: ResolvedMedia,
        moderation_reason: Optional[str] = None,
    ) -> Message:
        return save_message(
            db,
            user.id,
            MessageRole.USER,
            kind,
            media.content,
            media_url=media.media_url,
            media_hash=media.media_hash,
            media_content_type=media.media_content_type,
            is_forwarded=message.is_forwarded,
            moderation_reason=moderation_reason,
            provider_message_id=message.message_sid,
        )

    def _load_window(
        self,
        db: Session,
        user_id: UUID,
        message: InboundMessage,
        kind: MessageKind,
        media: ResolvedMedia,
        log: LoggerAdapter,
    ) -> List[Message]:
        try:
            return get_conversation_window(db, user_id, self.reset_keyword)
        except SQLAlchemyError as exc:
            db.rollback()
            log.error("History query failed, continuing without history", context={"error": str(exc)})

        # Rollback expired the stored rows; the current turn is rebuilt from memory.
        return [
            Message(
                user_id=user_id,
                role=MessageRole.USER.value,
                type=kind.value,
                content=media.content or "",
                is_forwarded=message.is_forwarded,
                media_url=media.media_url,
                media_content_type=media.media_content_type,
            )
        ]

    def _rollback(self, db: Session, log: LoggerAdapter) -> None:
        try:
            db.rollback()
        except SQLAlchemyError as exc:
            log.error("Rollback failed", context={"error": str(exc)})

    async def _fail(
        self,
        message: InboundMessage,
        tracker: _RunTracker,
        exc: Exception,
        log: LoggerAdapter,
    ) -> PipelineResult:
        failed_in = tracker.state
        error_code = getattr(exc, "error_code", "unexpected_error")
        log.error(
            "Error processing message",
            exc_info=exc,
            context={"state": failed_in.value, "error_code": error_code},
        )
        await alert_error(
            "Message processing failed",
            {"phone": message.sender, "message_sid": message.message_sid, "state": failed_in.value, "error": str(exc)},
        )

        try:
            await self.dispatcher.notify(message.sender, ERROR_TEXT)
        except Exception as send_exc:
            log.error("Error sending error message", context={"error": str(send_exc)})

        return tracker.finish(
            PipelineState.ERROR,
            error=f"Error processing message: {exc}",
            error_code=error_code,
        )
