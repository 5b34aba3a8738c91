from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pydantic import ValidationError

from whatsapp_agent.dependencies import get_pipeline
from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.schemas.webhook import TwilioWebhookPayload, WebhookResponse
from whatsapp_agent.services.classifier_service import InboundMessage
from whatsapp_agent.services.pipeline import MessagePipeline

logger = get_logger("webhook")

router = APIRouter()


async def _read_payload(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            data = await request.json()
        else:
            data = dict(await request.form())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Malformed body: {exc}") from exc
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be an object")
    return data


async def run_pipeline(pipeline: MessagePipeline, message: InboundMessage) -> None:
    result = await pipeline.process(message)
    if not result.success:
        logger.warning(f"Message processing completed with error: {result.error}")
    else:
        logger.info("Message processing completed successfully")


@router.post("/webhook/whatsapp", response_model=WebhookResponse)
async def handle_whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    pipeline: MessagePipeline = Depends(get_pipeline),
):
    """Acknowledge the delivery immediately and process the message afterwards."""
    data = await _read_payload(request)
    try:
        payload = TwilioWebhookPayload.model_validate(data)
    except ValidationError as exc:
        logger.warning(f"Invalid webhook payload: {exc.error_count()} errors")
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=errors) from exc

    message = payload.to_inbound()
    logger.info(f"Webhook received: sid={message.message_sid}, media={message.media_count}")
    background_tasks.add_task(run_pipeline, pipeline, message)
    return WebhookResponse(success=True, message="accepted", message_sid=message.message_sid)
