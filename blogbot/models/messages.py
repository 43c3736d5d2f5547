"""Inbound and outbound chat message models."""

from dataclasses import dataclass
from typing import Union


@dataclass
class TextMessage:
    """A text message sent by the user."""

    text: str


@dataclass
class ImageMessage:
    """An image message; bytes are fetched from the platform by id."""

    message_id: str


@dataclass
class UnsupportedMessage:
    """Any other message type (sticker, video, location, ...)."""

    type: str


InboundMessage = Union[TextMessage, ImageMessage, UnsupportedMessage]


@dataclass
class TextReply:
    """A plain-text reply."""

    text: str

    def to_payload(self) -> dict:
        return {"type": "text", "text": self.text}


@dataclass
class ImageReply:
    """An image reply referencing publicly reachable URLs."""

    original_content_url: str
    preview_image_url: str

    def to_payload(self) -> dict:
        return {
            "type": "image",
            "originalContentUrl": self.original_content_url,
            "previewImageUrl": self.preview_image_url,
        }


ReplyMessage = Union[TextReply, ImageReply]
