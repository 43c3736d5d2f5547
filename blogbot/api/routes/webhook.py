"""LINE webhook routes."""

import base64
import hashlib
import hmac

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ...app import IApplication
from ...conversation import ConversationOrchestrator
from ...logging_config import get_logger
from ...models import ImageMessage, InboundMessage, TextMessage, UnsupportedMessage

logger = get_logger(__name__)


class EventSource(BaseModel):
    """Who sent the event."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    type: str = "user"


class EventMessage(BaseModel):
    """Message body of a message event."""

    type: str
    id: str | None = None
    text: str | None = None


class WebhookEvent(BaseModel):
    """A single LINE webhook event."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    reply_token: str = Field("", alias="replyToken")
    source: EventSource
    message: EventMessage | None = None


class WebhookPayload(BaseModel):
    """Webhook request body."""

    events: list[WebhookEvent]


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def verify_signature(body: bytes, signature: str, channel_secret: str) -> bool:
    """Check the X-Line-Signature header against the raw body."""
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature)


def to_inbound_message(message: EventMessage) -> InboundMessage:
    """Map a LINE message body onto the engine's message shapes."""
    if message.type == "text" and message.text is not None:
        return TextMessage(text=message.text)
    if message.type == "image" and message.id:
        return ImageMessage(message_id=message.id)
    return UnsupportedMessage(type=message.type)


async def handle_event(orchestrator: ConversationOrchestrator, event: WebhookEvent) -> None:
    """Route one event; failures are logged so other events still run."""
    user_id = event.source.user_id
    logger.info("Processing LINE event %s from %s", event.type, user_id)

    try:
        if event.type == "message":
            if event.message is None or not event.reply_token:
                logger.warning("Message event without message or reply token")
                return
            await orchestrator.process_message(
                user_id, to_inbound_message(event.message), event.reply_token
            )
        elif event.type == "follow":
            if not event.reply_token:
                logger.warning("Follow event without reply token")
                return
            await orchestrator.handle_user_join(user_id, event.reply_token)
        elif event.type == "unfollow":
            await orchestrator.handle_user_leave(user_id)
        else:
            logger.info("Unhandled event type: %s", event.type)
    except Exception:
        logger.error("Error processing %s event", event.type, exc_info=True)


def create_webhook_router(app: IApplication) -> APIRouter:
    """Create webhook router."""
    router = APIRouter(tags=["webhook"])

    @router.post("/webhook", response_model=StatusResponse)
    async def receive_webhook(
        request: Request,
        x_line_signature: str | None = Header(None),
    ) -> dict:
        """Receive LINE webhook events."""
        body = await request.body()

        if not x_line_signature:
            raise HTTPException(status_code=400, detail="Missing LINE signature")

        if not verify_signature(body, x_line_signature, app.config.line.channel_secret):
            logger.warning("Invalid LINE signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = WebhookPayload.model_validate_json(body)
        except PydanticValidationError as e:
            logger.info("Invalid webhook payload: %s", e)
            raise HTTPException(status_code=400, detail="Invalid webhook payload")

        for event in payload.events:
            await handle_event(app.orchestrator, event)

        return {"status": "ok"}

    return router
