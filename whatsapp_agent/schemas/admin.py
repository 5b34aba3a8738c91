from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    phone: str
    name: Optional[str] = None
    is_banned: bool
    created_at: datetime
    updated_at: datetime


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role: str
    type: str
    content: str
    is_forwarded: bool
    moderation_reason: Optional[str] = None
    media_url: Optional[str] = None
    media_hash: Optional[str] = None
    media_content_type: Optional[str] = None
    created_at: datetime


class WindowResponse(BaseModel):
    phone: str
    count: int
    messages: List[MessageOut]


class AlertTestResponse(BaseModel):
    success: bool
    message: str
