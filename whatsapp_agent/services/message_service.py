from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.models import Message
from whatsapp_agent.services.classifier_service import MessageKind, MessageRole, normalize_command
from whatsapp_agent.services.clock import utcnow
from whatsapp_agent.services.errors import PersistenceError

logger = get_logger("message_service")


def save_message(
    db: Session,
    user_id: UUID,
    role: MessageRole,
    kind: MessageKind,
    content: str,
    *,
    media_url: Optional[str] = None,
    media_hash: Optional[str] = None,
    media_content_type: Optional[str] = None,
    is_forwarded: bool = False,
    moderation_reason: Optional[str] = None,
    provider_message_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Message:
    """Append a message and commit it on its own.

    Messages are never updated afterwards; moderation verdicts are recorded
    only here, at creation time.
    """
    message = Message(
        user_id=user_id,
        role=MessageRole(role).value,
        type=MessageKind(kind).value,
        content=content or "",
        is_forwarded=bool(is_forwarded),
        moderation_reason=moderation_reason,
        media_url=media_url,
        media_hash=media_hash,
        media_content_type=media_content_type,
        provider_message_id=provider_message_id,
        created_at=created_at or utcnow(),
    )
    try:
        db.add(message)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Error creating message: user_id={user_id}, role={role}, error={exc}")
        raise PersistenceError("Could not create message") from exc
    return message


def save_reset_marker(db: Session, user_id: UUID, reset_keyword: str, **kwargs) -> Message:
    """Persist the reset command with its canonical lowercase content."""
    return save_message(
        db,
        user_id,
        MessageRole.USER,
        MessageKind.COMMAND,
        normalize_command(reset_keyword),
        **kwargs,
    )


def get_message(db: Session, message_id: UUID) -> Optional[Message]:
    return db.query(Message).filter(Message.id == message_id).first()


def get_last_reset_marker(db: Session, user_id: UUID, reset_keyword: str) -> Optional[Message]:
    return (
        db.query(Message)
        .filter(
            Message.user_id == user_id,
            Message.type == MessageKind.COMMAND.value,
            Message.content == normalize_command(reset_keyword),
        )
        .order_by(Message.created_at.desc(), Message.id.desc())
        .first()
    )


def get_conversation_window(db: Session, user_id: UUID, reset_keyword: str = "clear") -> List[Message]:
    """Messages after the most recent reset marker, oldest first.

    Without a marker the whole history is returned. The result is a plain
    snapshot; concurrent runs may append while the caller works on it.
    """
    marker = get_last_reset_marker(db, user_id, reset_keyword)

    query = db.query(Message).filter(Message.user_id == user_id)
    if marker is not None:
        query = query.filter(Message.created_at > marker.created_at)

    return query.order_by(Message.created_at.asc(), Message.id.asc()).all()


def count_newer_user_messages(db: Session, user_id: UUID, since: datetime) -> int:
    return (
        db.query(Message)
        .filter(
            Message.user_id == user_id,
            Message.role == MessageRole.USER.value,
            Message.created_at > since,
        )
        .count()
    )
