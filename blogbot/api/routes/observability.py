"""Health and statistics routes."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import IApplication
from ...logging_config import get_logger
from ...models import ConversationStats

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    timestamp: datetime


class StatsResponse(BaseModel):
    """Response model for conversation statistics."""

    total_users: int
    active_conversations: int
    step_distribution: dict[str, int]


def create_observability_router(app: IApplication) -> APIRouter:
    """Create observability router."""
    router = APIRouter(tags=["observability"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check() -> dict:
        """Liveness check."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}

    @router.get("/api/stats", response_model=StatsResponse)
    async def get_stats() -> dict:
        """Conversation counts per step."""
        try:
            stats = await app.orchestrator.get_conversation_stats()
        except Exception:
            logger.error("Failed to collect conversation stats", exc_info=True)
            stats = ConversationStats()

        return {
            "total_users": stats.total_users,
            "active_conversations": stats.active_conversations,
            "step_distribution": stats.step_distribution,
        }

    return router
