from typing import Protocol

from sqlalchemy.orm import Session

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.models import Message, User
from whatsapp_agent.services.alert_service import alert_critical
from whatsapp_agent.services.classifier_service import MessageKind, MessageRole
from whatsapp_agent.services.message_service import save_message
from whatsapp_agent.services.result import Result

logger = get_logger("dispatch_service")


class MessageSender(Protocol):
    async def send_message(self, to: str, body: str) -> Result[str]: ...


class Dispatcher:
    def __init__(self, sender: MessageSender):
        self.sender = sender

    async def notify(self, phone: str, text: str) -> Result[str]:
        """Send a text without recording it. Failures are logged, never raised."""
        try:
            result = await self.sender.send_message(phone, text)
        except Exception as exc:
            logger.error(f"Outbound send raised: to={phone}, error={exc}")
            result = Result.from_exception(exc, "send_failed")

        if not result.ok:
            logger.warning(f"Failed to deliver message: to={phone}, error={result.error}")
        else:
            logger.info(f"Delivered message: to={phone}, sid={result.value}")
        return result

    async def dispatch(self, db: Session, user: User, reply: str) -> tuple[Message, Result[str]]:
        """Persist the assistant reply, then send it.

        The reply stays recorded when delivery fails; nothing is retried.
        """
        message = save_message(db, user.id, MessageRole.ASSISTANT, MessageKind.TEXT, reply)
        result = await self.notify(user.phone, reply)
        if not result.ok:
            await alert_critical(
                "WhatsApp send failed",
                {"phone": user.phone, "message_id": str(message.id), "error": result.error},
            )
        return message, result
