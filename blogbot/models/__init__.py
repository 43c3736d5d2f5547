"""Core data models for the blog bot."""

from .conversation import (
    ConversationState,
    ConversationStats,
    ConversationStep,
    PostData,
    SessionStats,
    create_idle_state,
)
from .images import ImageValidationResult, ProcessedImage
from .messages import (
    ImageMessage,
    ImageReply,
    InboundMessage,
    ReplyMessage,
    TextMessage,
    TextReply,
    UnsupportedMessage,
)

__all__ = [
    # Conversation
    "ConversationStep",
    "ConversationState",
    "PostData",
    "SessionStats",
    "ConversationStats",
    "create_idle_state",
    # Images
    "ImageValidationResult",
    "ProcessedImage",
    # Messages
    "TextMessage",
    "ImageMessage",
    "UnsupportedMessage",
    "InboundMessage",
    "TextReply",
    "ImageReply",
    "ReplyMessage",
]
