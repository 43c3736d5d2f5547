"""Temporary storage for processed images awaiting publication."""

import asyncio
from pathlib import Path
from typing import Protocol

from ..errors import ProcessingError
from ..logging_config import get_logger

logger = get_logger(__name__)


class ITempImageStorage(Protocol):
    """Holds image bytes between upload and publication."""

    async def upload(self, data: bytes, filename: str) -> str:
        """Store bytes under filename. Returns an opaque storage key."""
        ...

    async def download(self, key: str) -> bytes:
        """Fetch bytes previously stored under key."""
        ...

    async def cleanup(self, key: str) -> None:
        """Remove the object. Best-effort: never raises."""
        ...


class LocalTempImageStorage:
    """Temporary image storage backed by a local directory."""

    KEY_PREFIX = "temp-images/"

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not key.startswith(self.KEY_PREFIX):
            raise ProcessingError(
                f"Unknown temporary storage key: {key}",
                "一時保存された画像が見つかりませんでした。",
            )
        name = key[len(self.KEY_PREFIX):]
        path = (self._directory / name).resolve()
        if path.parent != self._directory.resolve():
            raise ProcessingError(f"Invalid temporary storage key: {key}")
        return path

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def upload(self, data: bytes, filename: str) -> str:
        """Write bytes to the temp directory."""
        key = f"{self.KEY_PREFIX}{filename}"
        try:
            path = self._path_for(key)
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            logger.error("Temporary image upload failed: %s", e, exc_info=True)
            raise ProcessingError(
                f"Failed to store image {filename}: {e}",
                "画像の一時保存に失敗しました。",
            ) from e

        logger.info("Stored temporary image %s (%s bytes)", key, len(data))
        return key

    async def download(self, key: str) -> bytes:
        """Read bytes back from the temp directory."""
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Temporary image download failed: %s", e)
            raise ProcessingError(
                f"Failed to read temporary image {key}: {e}",
                "一時保存された画像の取得に失敗しました。",
            ) from e

    async def cleanup(self, key: str) -> None:
        """Delete the file; failures are logged and swallowed."""
        try:
            path = self._path_for(key)
            await asyncio.to_thread(path.unlink, True)
            logger.info("Cleaned up temporary image %s", key)
        except (OSError, ProcessingError) as e:
            logger.warning("Failed to clean up temporary image %s: %s", key, e)
