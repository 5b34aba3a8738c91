import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from whatsapp_agent.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_user_created_at", "user_id", "created_at"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    role = Column(Text, nullable=False)  # user, assistant, system
    type = Column(Text, nullable=False)  # text, image, audio, command
    content = Column(Text, nullable=False)
    is_forwarded = Column(Boolean, nullable=False, default=False)
    moderation_reason = Column(Text)
    media_url = Column(Text)
    media_hash = Column(Text)
    media_content_type = Column(Text)
    provider_message_id = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="messages")
