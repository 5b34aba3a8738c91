from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.services.message_service import count_newer_user_messages, get_message

logger = get_logger("staleness_service")


class StalenessGuard:
    """Suppresses replies that a newer user message has superseded.

    The check is a plain query right before dispatch, not a lock: two runs
    may both pass it if neither has dispatched yet. Query failures count as
    "not stale" unless ``fail_open`` is disabled.
    """

    def __init__(self, *, fail_open: bool = True):
        self.fail_open = fail_open

    def is_stale(self, db: Session, user_id: UUID, message_id: UUID) -> bool:
        try:
            message = get_message(db, message_id)
            if message is None:
                return False
            newer = count_newer_user_messages(db, user_id, message.created_at)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Staleness check failed",
                extra={"context": {"user_id": str(user_id), "error": str(exc), "fail_open": self.fail_open}},
            )
            return not self.fail_open

        if newer:
            logger.info(
                "Newer user message detected",
                extra={"context": {"user_id": str(user_id), "message_id": str(message_id), "newer": newer}},
            )
        return newer > 0
