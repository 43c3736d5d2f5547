"""LINE module."""

from .client import IMessagingClient, LineClient

__all__ = ["IMessagingClient", "LineClient"]
