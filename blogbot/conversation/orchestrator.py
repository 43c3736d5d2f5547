"""Conversation orchestrator: load state, dispatch, persist, reply."""

from dataclasses import replace
from typing import Protocol

from ..errors import ConcurrentUpdateError, ExternalServiceError
from ..images import ImagePipeline
from ..line import IMessagingClient
from ..logging_config import get_logger
from ..models import (
    ConversationState,
    ConversationStats,
    ConversationStep,
    InboundMessage,
    PostData,
    TextReply,
)
from ..storage import ISessionStore
from . import replies
from .dispatcher import DispatchResult, MessageDispatcher

logger = get_logger(__name__)


class IPostPublisher(Protocol):
    """Downstream component that commits a finished post."""

    async def publish(self, user_id: str, post: PostData) -> None:
        """Persist the post. Raises ExternalServiceError on failure."""
        ...


class ConversationOrchestrator:
    """Runs one inbound event per call; state is read once and written once."""

    def __init__(
        self,
        session_store: ISessionStore,
        messaging_client: IMessagingClient,
        dispatcher: MessageDispatcher,
        image_pipeline: ImagePipeline,
        publisher: IPostPublisher | None = None,
    ):
        self._session_store = session_store
        self._messaging_client = messaging_client
        self._dispatcher = dispatcher
        self._image_pipeline = image_pipeline
        self._publisher = publisher
        self._flow = dispatcher.flow

    async def process_message(
        self, user_id: str, message: InboundMessage, reply_token: str
    ) -> None:
        """Process one inbound message and reply to the user."""
        logger.info(
            "Processing %s for user %s", type(message).__name__, user_id
        )

        state: ConversationState | None = None
        result: DispatchResult | None = None
        try:
            state = await self.get_current_state(user_id)
            result = await self._dispatcher.dispatch(message, state, user_id)

            if result.next_state is not None:
                await self._session_store.set(user_id, result.next_state)
                logger.info(
                    "State updated for user %s: %s -> %s",
                    user_id,
                    state.step.value,
                    result.next_state.step.value,
                )

            # Publish only once this invocation owns the completion write.
            if result.completed_post is not None:
                await self._complete(user_id, state, result)
        except ConcurrentUpdateError as e:
            logger.warning("Concurrent update for user %s: %s", user_id, e)
            await self._discard_unsaved_image(state, result)
            await self._send_reply(reply_token, replies.CONCURRENT_UPDATE)
            return
        except ExternalServiceError as e:
            logger.error("External service failed for user %s: %s", user_id, e, exc_info=True)
            await self._discard_unsaved_image(state, result)
            await self._send_reply(reply_token, e.user_message or replies.TRY_AGAIN_LATER)
            return
        except Exception:
            logger.error("Error processing message for user %s", user_id, exc_info=True)
            await self._discard_unsaved_image(state, result)
            await self._send_reply(reply_token, replies.GENERIC_ERROR)
            return

        if result.discarded_image_key:
            await self._image_pipeline.cleanup_temp_storage(result.discarded_image_key)

        await self._send_reply(reply_token, result.reply)

    async def get_current_state(self, user_id: str) -> ConversationState:
        """Stored state, or a fresh (unpersisted) IDLE state for unknown users."""
        state = await self._session_store.get(user_id)
        if state is None:
            logger.info("No session for user %s, starting from IDLE", user_id)
            return self._flow.create_initial_state()
        return state

    async def reset_session(self, user_id: str) -> None:
        """Reset a user's session to IDLE."""
        await self._session_store.reset_to_idle(user_id)

    async def handle_user_join(self, user_id: str, reply_token: str) -> None:
        """Welcome a new user and create their session."""
        state = await self._session_store.get(user_id)
        if state is None:
            try:
                await self._session_store.set(user_id, self._flow.create_initial_state())
            except ConcurrentUpdateError:
                logger.debug("Session for %s created concurrently", user_id)

        await self._send_reply(reply_token, replies.WELCOME)
        logger.info("New user joined: %s", user_id)

    async def handle_user_leave(self, user_id: str) -> None:
        """Remove a departing user's session. Failures are logged only."""
        try:
            await self._session_store.delete(user_id)
            logger.info("User left and session removed: %s", user_id)
        except Exception:
            logger.error("Failed to remove session for user %s", user_id, exc_info=True)

    async def get_conversation_stats(self) -> ConversationStats:
        """Per-step session counts, or empty stats if the store cannot report them."""
        stats = await self._session_store.get_stats()
        if stats is None:
            return ConversationStats()

        idle = stats.step_counts.get(ConversationStep.IDLE.value, 0)
        return ConversationStats(
            total_users=stats.total_sessions,
            active_conversations=stats.total_sessions - idle,
            step_distribution=dict(stats.step_counts),
        )

    async def _complete(
        self, user_id: str, draft: ConversationState, result: DispatchResult
    ) -> None:
        post = result.completed_post
        try:
            await self._hand_off(user_id, post)
        except Exception:
            await self._restore_draft(user_id, draft, result.next_state)
            raise

        if post.image_url:
            await self._image_pipeline.cleanup_temp_storage(post.image_url)

    async def _restore_draft(
        self, user_id: str, draft: ConversationState, persisted: ConversationState
    ) -> None:
        """Put a confirmed draft back after a failed handoff."""
        try:
            await self._session_store.set(user_id, replace(draft, version=persisted.version))
            logger.info("Draft restored for user %s after failed handoff", user_id)
        except ConcurrentUpdateError:
            logger.warning("Draft for user %s not restored: session moved on", user_id)

    async def _discard_unsaved_image(
        self, state: ConversationState | None, result: DispatchResult | None
    ) -> None:
        # An image uploaded by this invocation is orphaned if its state never landed.
        if state is None or result is None or result.next_state is None:
            return
        key = result.next_state.data.image_url
        if key and key != state.data.image_url:
            await self._image_pipeline.cleanup_temp_storage(key)

    async def _hand_off(self, user_id: str, post: PostData) -> None:
        if self._publisher is None:
            logger.info(
                "Post completed for user %s (no publisher configured): %s",
                user_id,
                post.title,
            )
            return
        await self._publisher.publish(user_id, post)
        logger.info("Post handed off for user %s: %s", user_id, post.title)

    async def _send_reply(self, reply_token: str, text: str) -> None:
        try:
            await self._messaging_client.reply_message(reply_token, [TextReply(text)])
        except ExternalServiceError as e:
            logger.error("Failed to send reply: %s", e)

