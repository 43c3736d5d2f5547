"""LINE Messaging API client."""

from collections.abc import Sequence
from typing import Protocol

import httpx

from ..config import LineConfig
from ..errors import ExternalServiceError
from ..logging_config import get_logger
from ..models import ReplyMessage

logger = get_logger(__name__)

SERVICE = "line_api"
MAX_REPLY_MESSAGES = 5


class IMessagingClient(Protocol):
    """The chat platform as seen by the conversation engine."""

    async def download_content(self, message_id: str) -> bytes:
        """Download the binary content of a message (e.g. an image)."""
        ...

    async def reply_message(
        self, reply_token: str, messages: Sequence[ReplyMessage]
    ) -> None:
        """Reply with 1 to 5 messages."""
        ...

    async def close(self) -> None:
        """Release the HTTP client."""
        ...


class LineClient:
    """Thin LINE Messaging API client; no retries."""

    def __init__(
        self,
        config: LineConfig,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {config.channel_access_token}"}

    async def close(self) -> None:
        await self._client.aclose()

    async def reply_message(
        self, reply_token: str, messages: Sequence[ReplyMessage]
    ) -> None:
        """Send reply messages to the user."""
        if not reply_token:
            raise ExternalServiceError("Reply token is required", SERVICE)
        if not messages:
            raise ExternalServiceError("At least one message is required", SERVICE)
        if len(messages) > MAX_REPLY_MESSAGES:
            raise ExternalServiceError(
                f"Maximum {MAX_REPLY_MESSAGES} messages allowed per reply", SERVICE
            )

        try:
            response = await self._client.post(
                f"{self._config.api_base_url}/message/reply",
                headers=self._headers,
                json={
                    "replyToken": reply_token,
                    "messages": [message.to_payload() for message in messages],
                },
            )
        except httpx.HTTPError as e:
            logger.error("LINE API reply request failed: %s", e)
            raise ExternalServiceError(
                f"Failed to send reply message: {e}",
                SERVICE,
                "メッセージの送信に失敗しました。しばらく時間をおいて再度お試しください。",
            ) from e

        if response.status_code != 200:
            logger.error(
                "LINE API reply error: %s %s",
                response.status_code,
                response.text,
            )
            raise ExternalServiceError(
                f"LINE API reply failed: {response.status_code}",
                SERVICE,
                "メッセージの送信に失敗しました。しばらく時間をおいて再度お試しください。",
            )

        logger.debug("Reply sent with %s message(s)", len(messages))

    async def download_content(self, message_id: str) -> bytes:
        """Download message content (image bytes) from LINE."""
        if not message_id:
            raise ExternalServiceError("Message ID is required", SERVICE)

        try:
            response = await self._client.get(
                f"{self._config.data_api_base_url}/message/{message_id}/content",
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            logger.error("LINE API content request failed: %s", e)
            raise ExternalServiceError(
                f"Failed to download content: {e}",
                SERVICE,
                "画像のダウンロードに失敗しました。",
            ) from e

        if response.status_code != 200:
            logger.error(
                "LINE API download error: %s %s",
                response.status_code,
                response.text,
            )
            raise ExternalServiceError(
                f"LINE API download failed: {response.status_code}",
                SERVICE,
                "画像のダウンロードに失敗しました。",
            )

        logger.info("Downloaded content for %s: %s bytes", message_id, len(response.content))
        return response.content
