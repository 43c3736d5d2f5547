"""Conversation-related data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ConversationStep(str, Enum):
    """Steps of the post-creation flow, in flow order."""

    IDLE = "idle"
    WAITING_TITLE = "waiting_title"
    WAITING_CONTENT = "waiting_content"
    WAITING_IMAGE = "waiting_image"
    WAITING_TAGS = "waiting_tags"
    CONFIRMING = "confirming"


@dataclass
class PostData:
    """Partially-filled blog post accumulated across steps."""

    title: str | None = None
    content: str | None = None
    image_url: str | None = None  # temporary storage reference
    image_path: str | None = None  # repository-relative path
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "content": self.content,
            "image_url": self.image_url,
            "image_path": self.image_path,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PostData":
        return cls(
            title=data.get("title"),
            content=data.get("content"),
            image_url=data.get("image_url"),
            image_path=data.get("image_path"),
            tags=list(data.get("tags") or []),
        )


@dataclass
class ConversationState:
    """Persisted progress of one user through the flow."""

    step: ConversationStep
    data: PostData
    created_at: datetime
    updated_at: datetime
    version: int = 0  # 0 = never persisted


def create_idle_state(version: int = 0) -> ConversationState:
    """Create a fresh IDLE state with empty post data."""
    now = datetime.now(timezone.utc)
    return ConversationState(
        step=ConversationStep.IDLE,
        data=PostData(),
        created_at=now,
        updated_at=now,
        version=version,
    )


@dataclass
class SessionStats:
    """Raw session counts reported by a store that supports it."""

    total_sessions: int
    step_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class ConversationStats:
    """Conversation statistics for monitoring."""

    total_users: int = 0
    active_conversations: int = 0
    step_distribution: dict[str, int] = field(default_factory=dict)
