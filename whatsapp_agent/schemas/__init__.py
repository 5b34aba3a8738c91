from whatsapp_agent.schemas.admin import MessageOut, UserOut, WindowResponse
from whatsapp_agent.schemas.webhook import TwilioWebhookPayload, WebhookResponse

__all__ = ["TwilioWebhookPayload", "WebhookResponse", "UserOut", "MessageOut", "WindowResponse"]
