from whatsapp_agent.services.classifier_service import InboundMessage, MessageKind, MessageRole, classify_message
from whatsapp_agent.services.pipeline import MessagePipeline, PipelineResult
from whatsapp_agent.services.state_machine import (
    InvalidTransitionError,
    PipelineState,
    can_transition,
    is_terminal,
    transition,
)
