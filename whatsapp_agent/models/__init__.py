from whatsapp_agent.models.message import Message
from whatsapp_agent.models.user import User

__all__ = [
    "User",
    "Message",
]
