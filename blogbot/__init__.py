"""LINE blog bot core module."""

from .app import Application, IApplication
from .config import Config, load_config
from .conversation import (
    ConversationFlow,
    ConversationOrchestrator,
    IPostPublisher,
    MessageDispatcher,
)
from .images import ImagePipeline, ITempImageStorage, LocalTempImageStorage
from .line import IMessagingClient, LineClient
from .models import (
    ConversationState,
    ConversationStep,
    ImageMessage,
    PostData,
    TextMessage,
    TextReply,
)
from .storage import ISessionStore, SQLiteSessionStore

__all__ = [
    # Application
    "Application",
    "IApplication",
    "Config",
    "load_config",
    # Models
    "ConversationStep",
    "ConversationState",
    "PostData",
    "TextMessage",
    "ImageMessage",
    "TextReply",
    # Components
    "ISessionStore",
    "SQLiteSessionStore",
    "ITempImageStorage",
    "LocalTempImageStorage",
    "ImagePipeline",
    "IMessagingClient",
    "LineClient",
    "ConversationFlow",
    "MessageDispatcher",
    "ConversationOrchestrator",
    "IPostPublisher",
]
