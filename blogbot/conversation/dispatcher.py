"""Message dispatcher: one inbound message + current state -> update + reply."""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..config import BlogConfig
from ..errors import ExternalServiceError, ProcessingError, ValidationError
from ..images import ImagePipeline
from ..line import IMessagingClient
from ..logging_config import get_logger
from ..models import (
    ConversationState,
    ConversationStep,
    ImageMessage,
    InboundMessage,
    PostData,
    TextMessage,
)
from . import replies
from .flow import ConversationFlow
from .replies import Command

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 100
MAX_CONTENT_LENGTH = 5000
MAX_NEW_TAG_LENGTH = 20

TAG_SEPARATORS = re.compile(r"[,，、]")


@dataclass
class DispatchResult:
    """Outcome of one message. next_state is None when nothing changed."""

    reply: str
    next_state: ConversationState | None = None
    completed_post: PostData | None = None
    discarded_image_key: str | None = None


TextHandler = Callable[[str, ConversationState], DispatchResult]


def parse_tag_selection(text: str, catalogue: Sequence[str]) -> list[str]:
    """
    Parse a tag selection.

    Either a new-tag prefix followed by the tag itself ("新規:ねこ"), or
    comma-separated 1-based indices into the catalogue ("1,3,5").
    Out-of-range and non-numeric indices are dropped; duplicates collapse
    to their first occurrence.
    """
    text = text.strip()

    for prefix in replies.NEW_TAG_PREFIXES:
        if text[: len(prefix)].lower() == prefix:
            new_tag = text[len(prefix):].strip()
            if 1 <= len(new_tag) <= MAX_NEW_TAG_LENGTH:
                return [new_tag]
            return []

    selected: list[str] = []
    for token in TAG_SEPARATORS.split(text):
        token = token.strip()
        # ASCII digits only; int() is more lenient.
        if not (token.isascii() and token.isdigit()):
            continue
        index = int(token)
        if 1 <= index <= len(catalogue):
            tag = catalogue[index - 1]
            if tag not in selected:
                selected.append(tag)

    return selected


class MessageDispatcher:
    """Routes a message to the handler of the current step."""

    def __init__(
        self,
        config: BlogConfig,
        image_pipeline: ImagePipeline,
        messaging_client: IMessagingClient,
        flow: ConversationFlow | None = None,
    ):
        self._config = config
        self._image_pipeline = image_pipeline
        self._messaging_client = messaging_client
        self._flow = flow or ConversationFlow()

        self._text_handlers: dict[ConversationStep, TextHandler] = {
            ConversationStep.IDLE: self._handle_idle,
            ConversationStep.WAITING_TITLE: self._handle_title,
            ConversationStep.WAITING_CONTENT: self._handle_content,
            ConversationStep.WAITING_IMAGE: self._handle_text_while_waiting_image,
            ConversationStep.WAITING_TAGS: self._handle_tags,
            ConversationStep.CONFIRMING: self._handle_confirmation,
        }
        unhandled = set(ConversationStep) - set(self._text_handlers)
        if unhandled:
            raise RuntimeError(
                f"No text handler for steps: {sorted(step.value for step in unhandled)}"
            )

    @property
    def flow(self) -> ConversationFlow:
        return self._flow

    async def dispatch(
        self, message: InboundMessage, state: ConversationState, user_id: str
    ) -> DispatchResult:
        """Handle one inbound message against the current state."""
        if isinstance(message, TextMessage):
            return self._dispatch_text(message.text, state)

        if isinstance(message, ImageMessage):
            return await self._dispatch_image(message.message_id, state, user_id)

        logger.info("Unsupported message type from %s: %s", user_id, message.type)
        return DispatchResult(reply=replies.UNSUPPORTED_MESSAGE_TYPE)

    def _dispatch_text(self, text: str, state: ConversationState) -> DispatchResult:
        text = text.strip()

        command = replies.match_command(text)
        if command is not None:
            return self._handle_command(command, state)

        return self._text_handlers[state.step](text, state)

    def _handle_command(self, command: Command, state: ConversationState) -> DispatchResult:
        if command is Command.START:
            if state.step is not ConversationStep.IDLE:
                return DispatchResult(reply=replies.ALREADY_IN_PROGRESS)
            return DispatchResult(
                reply=replies.START,
                next_state=self._flow.transition_to(state, ConversationStep.WAITING_TITLE),
            )

        if command is Command.HELP:
            return DispatchResult(reply=replies.HELP)

        if not self._flow.can_cancel(state.step):
            return DispatchResult(reply=replies.NOTHING_TO_CANCEL)
        return self._reset_draft(state, replies.CANCELLED)

    def _reset_draft(self, state: ConversationState, reply: str) -> DispatchResult:
        return DispatchResult(
            reply=reply,
            next_state=self._flow.transition_to(state, ConversationStep.IDLE),
            discarded_image_key=state.data.image_url,
        )

    # Per-step text handlers

    def _handle_idle(self, text: str, state: ConversationState) -> DispatchResult:
        return DispatchResult(reply=replies.IDLE_GUIDANCE)

    def _handle_title(self, text: str, state: ConversationState) -> DispatchResult:
        if not text:
            return DispatchResult(reply=replies.TITLE_EMPTY)
        if len(text) > MAX_TITLE_LENGTH:
            return DispatchResult(reply=replies.TITLE_TOO_LONG)

        return DispatchResult(
            reply=replies.title_received(text),
            next_state=self._flow.transition_to_next(state, title=text),
        )

    def _handle_content(self, text: str, state: ConversationState) -> DispatchResult:
        if not text:
            return DispatchResult(reply=replies.CONTENT_EMPTY)
        if len(text) > MAX_CONTENT_LENGTH:
            return DispatchResult(reply=replies.CONTENT_TOO_LONG)

        return DispatchResult(
            reply=replies.CONTENT_RECEIVED,
            next_state=self._flow.transition_to_next(state, content=text),
        )

    def _handle_text_while_waiting_image(
        self, text: str, state: ConversationState
    ) -> DispatchResult:
        return DispatchResult(reply=replies.SEND_IMAGE_INSTEAD)

    def _handle_tags(self, text: str, state: ConversationState) -> DispatchResult:
        tags = parse_tag_selection(text, self._config.available_tags)
        if not tags:
            return DispatchResult(reply=replies.invalid_tags(self._config.available_tags))

        next_state = self._flow.transition_to_next(state, tags=tags)
        return DispatchResult(
            reply=replies.confirmation(next_state.data),
            next_state=next_state,
        )

    def _handle_confirmation(self, text: str, state: ConversationState) -> DispatchResult:
        answer = text.lower()

        if answer in replies.AFFIRMATIVE:
            next_state = self._flow.transition_to(state, ConversationStep.IDLE)
            return DispatchResult(
                reply=replies.published(self._config.base_url),
                next_state=next_state,
                completed_post=state.data,
            )

        if answer in replies.NEGATIVE:
            return self._reset_draft(state, replies.CANCELLED)

        return DispatchResult(reply=replies.CONFIRM_PROMPT)

    # Images

    async def _dispatch_image(
        self, message_id: str, state: ConversationState, user_id: str
    ) -> DispatchResult:
        if state.step is not ConversationStep.WAITING_IMAGE:
            return DispatchResult(reply=replies.IMAGE_NOT_EXPECTED)

        try:
            data = await self._messaging_client.download_content(message_id)
            processed = await self._image_pipeline.process_image(data)
        except ValidationError as e:
            logger.info("Image rejected for %s: %s", user_id, e)
            return DispatchResult(
                reply=replies.image_rejected(e.user_message or replies.IMAGE_FAILED)
            )
        except (ProcessingError, ExternalServiceError) as e:
            logger.error("Image processing failed for %s: %s", user_id, e, exc_info=True)
            return DispatchResult(reply=replies.IMAGE_FAILED)

        logger.info(
            "Image stored for %s: %s (%s, %s bytes)",
            user_id,
            processed.relative_path,
            processed.mime_type,
            processed.size,
        )
        return DispatchResult(
            reply=replies.image_received(self._config.available_tags),
            next_state=self._flow.transition_to_next(
                state,
                image_url=processed.temp_storage_key,
                image_path=processed.relative_path,
            ),
        )
