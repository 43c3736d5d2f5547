"""Pytest configuration and fixtures."""

import io
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from PIL import Image

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

FIXED_NOW = datetime(2024, 3, 15, 12, 30, 45, 123000, tzinfo=timezone.utc)

TEST_TAGS = ("お絵かき", "ねこ劇場", "おばけ", "行事")


def make_image_bytes(
    width: int = 100,
    height: int = 100,
    image_format: str = "JPEG",
    color=(200, 120, 40),
    **save_options,
) -> bytes:
    """Encode a solid-color image in memory."""
    mode = "RGBA" if image_format == "PNG" else "RGB"
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 255)
    output = io.BytesIO()
    Image.new(mode, (width, height), color).save(output, format=image_format, **save_options)
    return output.getvalue()


@pytest.fixture
def config(tmp_path):
    """Application config pointing at throwaway locations."""
    from blogbot.config import (
        BlogConfig,
        Config,
        ImageStorageConfig,
        LineConfig,
        SessionStoreConfig,
    )

    return Config(
        line=LineConfig(
            channel_secret="test-secret",
            channel_access_token="test-token",
        ),
        blog=BlogConfig(
            base_url="https://blog.example.com",
            available_tags=TEST_TAGS,
        ),
        session_store=SessionStoreConfig(db_path=":memory:"),
        image_storage=ImageStorageConfig(directory=tmp_path / "temp-images"),
    )


@pytest_asyncio.fixture
async def session_store():
    """Create in-memory session store for testing."""
    from blogbot.storage import SQLiteSessionStore

    store = SQLiteSessionStore(":memory:")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def temp_storage(tmp_path):
    """Local temporary image storage in a per-test directory."""
    from blogbot.images import LocalTempImageStorage

    return LocalTempImageStorage(tmp_path / "temp-images")


@pytest.fixture
def image_pipeline(temp_storage):
    """Image pipeline with a fixed clock."""
    from blogbot.images import ImagePipeline

    return ImagePipeline(temp_storage, clock=lambda: FIXED_NOW)


@pytest.fixture
def messaging_client():
    """Create mock LINE client."""
    client = Mock()
    client.download_content = AsyncMock(return_value=make_image_bytes())
    client.reply_message = AsyncMock(return_value=None)
    client.close = AsyncMock(return_value=None)
    return client


@pytest.fixture
def dispatcher(config, image_pipeline, messaging_client):
    """Create MessageDispatcher for testing."""
    from blogbot.conversation import MessageDispatcher

    return MessageDispatcher(
        config=config.blog,
        image_pipeline=image_pipeline,
        messaging_client=messaging_client,
    )


@pytest.fixture
def orchestrator(session_store, messaging_client, dispatcher, image_pipeline):
    """Create ConversationOrchestrator for testing."""
    from blogbot.conversation import ConversationOrchestrator

    return ConversationOrchestrator(
        session_store=session_store,
        messaging_client=messaging_client,
        dispatcher=dispatcher,
        image_pipeline=image_pipeline,
    )


def last_reply_text(messaging_client) -> str:
    """Text of the most recent reply sent through the mock client."""
    _, messages = messaging_client.reply_message.call_args.args
    assert len(messages) == 1
    return messages[0].text
