"""Conversation module."""

from .dispatcher import DispatchResult, MessageDispatcher, parse_tag_selection
from .flow import ConversationFlow
from .orchestrator import ConversationOrchestrator, IPostPublisher

__all__ = [
    "ConversationFlow",
    "ConversationOrchestrator",
    "DispatchResult",
    "IPostPublisher",
    "MessageDispatcher",
    "parse_tag_selection",
]
