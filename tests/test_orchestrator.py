"""Tests for ConversationOrchestrator."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from blogbot.conversation import ConversationOrchestrator, DispatchResult, replies
from blogbot.errors import ConcurrentUpdateError, ExternalServiceError, ProcessingError
from blogbot.models import (
    ConversationStep,
    ImageMessage,
    PostData,
    SessionStats,
    TextMessage,
    create_idle_state,
)

from conftest import last_reply_text

USER = "U123"
TOKEN = "reply-token"


def make_state(step, **data):
    state = create_idle_state()
    state.step = step
    state.data = PostData(**data)
    return state


DRAFT = dict(title="T", content="C", image_url="temp-images/a.jpeg", tags=["行事"])


@pytest.fixture
def publisher():
    pub = Mock()
    pub.publish = AsyncMock(return_value=None)
    return pub


@pytest.fixture
def orchestrator_with_publisher(session_store, messaging_client, dispatcher, image_pipeline, publisher):
    return ConversationOrchestrator(
        session_store=session_store,
        messaging_client=messaging_client,
        dispatcher=dispatcher,
        image_pipeline=image_pipeline,
        publisher=publisher,
    )


class TestProcessMessage:
    """Tests for process_message()."""

    async def test_unknown_user_starts_from_idle(self, orchestrator, session_store, messaging_client):
        await orchestrator.process_message(USER, TextMessage("投稿作成"), TOKEN)

        state = await session_store.get(USER)
        assert state.step is ConversationStep.WAITING_TITLE
        assert state.version == 1
        assert last_reply_text(messaging_client) == replies.START
        assert messaging_client.reply_message.call_args.args[0] == TOKEN

    async def test_no_write_when_state_unchanged(self, orchestrator, session_store, messaging_client):
        await orchestrator.process_message(USER, TextMessage("こんにちは"), TOKEN)

        assert await session_store.get(USER) is None
        assert last_reply_text(messaging_client) == replies.IDLE_GUIDANCE

    async def test_exactly_one_reply(self, orchestrator, messaging_client):
        await orchestrator.process_message(USER, TextMessage("投稿作成"), TOKEN)
        await orchestrator.process_message(USER, TextMessage("Title"), TOKEN)

        assert messaging_client.reply_message.await_count == 2

    async def test_concurrent_update_asks_to_resend(self, orchestrator, session_store, messaging_client):
        await session_store.set(USER, make_state(ConversationStep.WAITING_TITLE))
        session_store.set = AsyncMock(side_effect=ConcurrentUpdateError("moved"))

        await orchestrator.process_message(USER, TextMessage("Title"), TOKEN)

        assert last_reply_text(messaging_client) == replies.CONCURRENT_UPDATE

    async def test_unexpected_error_gets_generic_reply(self, orchestrator, session_store, messaging_client):
        session_store.get = AsyncMock(side_effect=RuntimeError("db gone"))

        await orchestrator.process_message(USER, TextMessage("投稿作成"), TOKEN)

        assert last_reply_text(messaging_client) == replies.GENERIC_ERROR

    async def test_reply_failure_is_swallowed(self, orchestrator, session_store, messaging_client):
        messaging_client.reply_message.side_effect = ExternalServiceError("down", "line_api")

        await orchestrator.process_message(USER, TextMessage("投稿作成"), TOKEN)

        assert (await session_store.get(USER)).step is ConversationStep.WAITING_TITLE

    async def test_cancel_cleans_up_temp_image(self, orchestrator, session_store, image_pipeline, temp_storage):
        key = await temp_storage.upload(b"img", "a.jpeg")
        await session_store.set(USER, make_state(ConversationStep.WAITING_TAGS, **dict(DRAFT, image_url=key)))

        await orchestrator.process_message(USER, TextMessage("キャンセル"), TOKEN)

        assert (await session_store.get(USER)).step is ConversationStep.IDLE
        with pytest.raises(ProcessingError):
            await temp_storage.download(key)

    async def test_completed_post_without_publisher(self, orchestrator, session_store, messaging_client):
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **DRAFT))

        await orchestrator.process_message(USER, TextMessage("はい"), TOKEN)

        state = await session_store.get(USER)
        assert state.step is ConversationStep.IDLE
        assert state.data == PostData()
        assert "https://blog.example.com" in last_reply_text(messaging_client)

    async def test_completed_post_cleans_up_temp_image(self, orchestrator, session_store, temp_storage):
        key = await temp_storage.upload(b"img", "a.jpeg")
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **dict(DRAFT, image_url=key)))

        await orchestrator.process_message(USER, TextMessage("はい"), TOKEN)

        with pytest.raises(ProcessingError):
            await temp_storage.download(key)

    async def test_image_upload_is_discarded_when_write_is_stale(
        self, orchestrator, session_store, messaging_client, tmp_path
    ):
        await session_store.set(USER, make_state(ConversationStep.WAITING_IMAGE, title="T", content="C"))
        session_store.set = AsyncMock(side_effect=ConcurrentUpdateError("moved"))

        await orchestrator.process_message(USER, ImageMessage("img-1"), TOKEN)

        assert last_reply_text(messaging_client) == replies.CONCURRENT_UPDATE
        assert list((tmp_path / "temp-images").iterdir()) == []



class TestPublisherHandoff:
    """Tests for handing finished posts downstream."""

    async def test_publisher_receives_post(self, orchestrator_with_publisher, session_store, publisher):
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **DRAFT))

        await orchestrator_with_publisher.process_message(USER, TextMessage("yes"), TOKEN)

        publisher.publish.assert_awaited_once()
        user_id, post = publisher.publish.call_args.args
        assert user_id == USER
        assert post.title == "T"
        assert post.tags == ["行事"]

    async def test_publisher_failure_keeps_draft(
        self, orchestrator_with_publisher, session_store, publisher, messaging_client
    ):
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **DRAFT))
        publisher.publish.side_effect = ExternalServiceError("push failed", "github", "公開に失敗しました。")

        await orchestrator_with_publisher.process_message(USER, TextMessage("はい"), TOKEN)

        state = await session_store.get(USER)
        assert state.step is ConversationStep.CONFIRMING
        assert state.data.title == "T"
        assert last_reply_text(messaging_client) == "公開に失敗しました。"

    async def test_failed_publish_can_be_confirmed_again(
        self, orchestrator_with_publisher, session_store, publisher
    ):
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **DRAFT))
        publisher.publish.side_effect = [ExternalServiceError("push failed", "github"), None]

        await orchestrator_with_publisher.process_message(USER, TextMessage("はい"), TOKEN)
        await orchestrator_with_publisher.process_message(USER, TextMessage("はい"), TOKEN)

        assert publisher.publish.await_count == 2
        assert (await session_store.get(USER)).step is ConversationStep.IDLE

    async def test_duplicate_confirmation_publishes_once(
        self, orchestrator_with_publisher, session_store, publisher
    ):
        """Two concurrent yes answers to the same draft hand it off once."""
        await session_store.set(USER, make_state(ConversationStep.CONFIRMING, **DRAFT))

        async def slow_publish(user_id, post):
            await asyncio.sleep(0.05)

        publisher.publish.side_effect = slow_publish

        await asyncio.gather(
            orchestrator_with_publisher.process_message(USER, TextMessage("はい"), "t1"),
            orchestrator_with_publisher.process_message(USER, TextMessage("はい"), "t2"),
        )

        assert publisher.publish.await_count == 1
        state = await session_store.get(USER)
        assert state.step is ConversationStep.IDLE
        assert state.data == PostData()



class TestDispatcherSeam:
    """Tests for how dispatch results are applied."""

    async def test_reply_sent_after_write(self, session_store, messaging_client, image_pipeline):
        order = []
        dispatcher = Mock()
        dispatcher.flow = Mock(create_initial_state=create_idle_state)
        dispatcher.dispatch = AsyncMock(
            return_value=DispatchResult(reply="ok", next_state=make_state(ConversationStep.WAITING_TITLE))
        )
        original_set = session_store.set

        async def recording_set(user_id, state):
            order.append("set")
            return await original_set(user_id, state)

        async def recording_reply(token, messages):
            order.append("reply")

        session_store.set = recording_set
        messaging_client.reply_message = AsyncMock(side_effect=recording_reply)
        orchestrator = ConversationOrchestrator(session_store, messaging_client, dispatcher, image_pipeline)

        await orchestrator.process_message(USER, TextMessage("x"), TOKEN)

        assert order == ["set", "reply"]


class TestLifecycleEvents:
    """Tests for follow / unfollow handling."""

    async def test_join_creates_session_and_welcomes(self, orchestrator, session_store, messaging_client):
        await orchestrator.handle_user_join(USER, TOKEN)

        state = await session_store.get(USER)
        assert state.step is ConversationStep.IDLE
        assert last_reply_text(messaging_client) == replies.WELCOME

    async def test_rejoin_keeps_session(self, orchestrator, session_store):
        await session_store.set(USER, make_state(ConversationStep.WAITING_CONTENT, title="T"))

        await orchestrator.handle_user_join(USER, TOKEN)

        assert (await session_store.get(USER)).step is ConversationStep.WAITING_CONTENT

    async def test_leave_deletes_session(self, orchestrator, session_store):
        await session_store.set(USER, make_state(ConversationStep.WAITING_TITLE))

        await orchestrator.handle_user_leave(USER)

        assert await session_store.get(USER) is None

    async def test_leave_failure_is_logged_only(self, orchestrator, session_store):
        session_store.delete = AsyncMock(side_effect=RuntimeError("db gone"))

        await orchestrator.handle_user_leave(USER)

    async def test_reset_session(self, orchestrator, session_store):
        await session_store.set(USER, make_state(ConversationStep.WAITING_CONTENT, title="T"))

        await orchestrator.reset_session(USER)

        assert (await session_store.get(USER)).step is ConversationStep.IDLE


class TestStats:
    """Tests for get_conversation_stats()."""

    async def test_stats(self, orchestrator, session_store):
        await session_store.set("a", make_state(ConversationStep.IDLE))
        await session_store.set("b", make_state(ConversationStep.WAITING_TITLE))
        await session_store.set("c", make_state(ConversationStep.CONFIRMING, **DRAFT))

        stats = await orchestrator.get_conversation_stats()

        assert stats.total_users == 3
        assert stats.active_conversations == 2
        assert stats.step_distribution == {"idle": 1, "waiting_title": 1, "confirming": 1}

    async def test_store_without_stats(self, orchestrator, session_store):
        session_store.get_stats = AsyncMock(return_value=None)

        stats = await orchestrator.get_conversation_stats()

        assert stats.total_users == 0
        assert stats.active_conversations == 0
        assert stats.step_distribution == {}

    async def test_stats_from_store_counts(self, orchestrator, session_store):
        session_store.get_stats = AsyncMock(
            return_value=SessionStats(total_sessions=5, step_counts={"idle": 5})
        )

        stats = await orchestrator.get_conversation_stats()

        assert stats.active_conversations == 0
