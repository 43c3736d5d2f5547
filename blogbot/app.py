"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import Config
from .conversation import (
    ConversationOrchestrator,
    IPostPublisher,
    MessageDispatcher,
)
from .images import ImagePipeline, create_image_pipeline
from .line import IMessagingClient, LineClient
from .logging_config import get_logger
from .storage import ISessionStore, create_session_store

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def config(self) -> Config:
        ...

    @property
    def orchestrator(self) -> ConversationOrchestrator:
        ...


class Application:
    """Main application bootstrap."""

    def __init__(self, config: Config, publisher: IPostPublisher | None = None):
        self._config = config
        self._publisher = publisher

        # Components (will be initialized in start())
        self._session_store: ISessionStore | None = None
        self._line_client: IMessagingClient | None = None
        self._image_pipeline: ImagePipeline | None = None
        self._dispatcher: MessageDispatcher | None = None
        self._orchestrator: ConversationOrchestrator | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Session store (no dependencies)
        self._session_store = create_session_store(self._config.session_store)
        await self._session_store.init()
        logger.info("Session store initialized (%s)", self._config.session_store.type)

        # 2. LINE client (no internal dependencies)
        self._line_client = LineClient(self._config.line)
        logger.info("LINE client initialized")

        # 3. Image pipeline (temporary storage chosen by config)
        self._image_pipeline = create_image_pipeline(self._config)
        logger.info("Image pipeline initialized (%s)", self._config.image_storage.type)

        # 4. Dispatcher (depends on image pipeline + LINE client)
        self._dispatcher = MessageDispatcher(
            config=self._config.blog,
            image_pipeline=self._image_pipeline,
            messaging_client=self._line_client,
        )

        # 5. Orchestrator (depends on everything above)
        self._orchestrator = ConversationOrchestrator(
            session_store=self._session_store,
            messaging_client=self._line_client,
            dispatcher=self._dispatcher,
            image_pipeline=self._image_pipeline,
            publisher=self._publisher,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._orchestrator = None
        self._dispatcher = None
        if self._line_client:
            await self._line_client.close()
            self._line_client = None
        if self._session_store:
            await self._session_store.close()
            logger.info("Session store closed")

    @property
    def config(self) -> Config:
        return self._config

    @property
    def session_store(self) -> ISessionStore:
        """Get session store instance."""
        if not self._session_store:
            raise RuntimeError("Application not started")
        return self._session_store

    @property
    def orchestrator(self) -> ConversationOrchestrator:
        """Get orchestrator instance."""
        if not self._orchestrator:
            raise RuntimeError("Application not started")
        return self._orchestrator
