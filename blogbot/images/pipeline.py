"""Image validation, resizing and naming before temporary storage."""

import asyncio
import io
import random
import string
from collections.abc import Callable
from datetime import datetime, timezone

from PIL import Image, UnidentifiedImageError

from ..errors import BlogBotError, ProcessingError, ValidationError
from ..logging_config import get_logger
from ..models import ImageValidationResult, ProcessedImage
from .storage import ITempImageStorage

logger = get_logger(__name__)

# Pillow reports multi-picture JPEGs (common from phone cameras) as MPO.
FORMAT_ALIASES = {"jpg": "jpeg", "mpo": "jpeg"}

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_format(image_format: str) -> str:
    """Lower-case a format name and fold aliases onto their canonical name."""
    image_format = image_format.lower()
    return FORMAT_ALIASES.get(image_format, image_format)


class ImagePipeline:
    """
    Validates an image payload, shrinks it if oversized, names it and hands
    it to temporary storage.

    Each stage is callable on its own; process_image runs them in order.
    Removing the temporary object afterwards is the caller's job
    (cleanup_temp_storage).
    """

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
    MAX_WIDTH = 2048
    MAX_HEIGHT = 2048
    RESIZE_QUALITY = 85
    SUPPORTED_FORMATS = ("jpeg", "png", "webp", "gif")

    def __init__(
        self,
        temp_storage: ITempImageStorage,
        image_root: str = "source/images",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._temp_storage = temp_storage
        self._image_root = image_root.rstrip("/")
        self._clock = clock

    def validate_image(self, data: bytes) -> ImageValidationResult:
        """Read format and dimensions and check them against policy."""
        size = len(data)
        if size >= self.MAX_FILE_SIZE:
            raise ValidationError(
                f"Image file too large: {size} bytes",
                f"画像ファイルが大きすぎます。最大{self.MAX_FILE_SIZE // (1024 * 1024)}MBまでです。",
            )

        try:
            # Image.open only parses the header; pixel data stays undecoded.
            with Image.open(io.BytesIO(data)) as image:
                raw_format = image.format
                width, height = image.size
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as e:
            logger.info("Image metadata could not be read: %s", e)
            raise ValidationError(
                f"Image validation failed: {e}",
                "画像の検証に失敗しました。",
            ) from e

        if not raw_format or not width or not height:
            raise ValidationError(
                "Invalid image metadata",
                "画像の形式を読み取れませんでした。",
            )

        image_format = normalize_format(raw_format)
        if image_format not in self.SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported image format: {image_format}",
                f"サポートされていない画像形式です: {image_format.upper()}",
            )

        return ImageValidationResult(
            is_valid=True,
            mime_type=f"image/{image_format}",
            width=width,
            height=height,
            size=size,
            format=image_format,
        )

    def resize_image_if_needed(
        self, data: bytes, validation: ImageValidationResult
    ) -> bytes:
        """Shrink to fit MAX_WIDTH x MAX_HEIGHT, re-encoding as JPEG.

        Returns the input object unchanged when no resize is needed.
        """
        if validation.width <= self.MAX_WIDTH and validation.height <= self.MAX_HEIGHT:
            return data

        logger.info(
            "Resizing image from %sx%s to fit %sx%s",
            validation.width,
            validation.height,
            self.MAX_WIDTH,
            self.MAX_HEIGHT,
        )

        try:
            with Image.open(io.BytesIO(data)) as image:
                # thumbnail keeps the aspect ratio and never enlarges
                image.thumbnail(
                    (self.MAX_WIDTH, self.MAX_HEIGHT), Image.Resampling.LANCZOS
                )
                if image.mode not in ("RGB", "L"):
                    image = image.convert("RGB")
                output = io.BytesIO()
                image.save(output, format="JPEG", quality=self.RESIZE_QUALITY)
        except (OSError, ValueError) as e:
            logger.error("Image resize failed: %s", e, exc_info=True)
            raise ProcessingError(
                f"Image resize failed: {e}",
                "画像のリサイズに失敗しました。",
            ) from e

        resized = output.getvalue()
        logger.info("Image resized: %s -> %s bytes", len(data), len(resized))
        return resized

    def generate_filename(self, image_format: str | None = None) -> str:
        """Timestamped filename that sorts by creation time."""
        now = self._clock().astimezone(timezone.utc)
        timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
        suffix = "".join(random.choices(SUFFIX_ALPHABET, k=6))
        extension = normalize_format(image_format) if image_format else "jpeg"
        return f"{timestamp}-{suffix}.{extension}"

    def generate_image_path(self, filename: str | None = None) -> str:
        """Repository-relative path bucketed by year and month."""
        now = self._clock().astimezone(timezone.utc)
        filename = filename or self.generate_filename()
        return f"{self._image_root}/{now.year}/{now.month:02d}/{filename}"

    async def process_image(self, data: bytes) -> ProcessedImage:
        """Validate, resize if needed, name and upload an image."""
        try:
            validation = await asyncio.to_thread(self.validate_image, data)
            processed = await asyncio.to_thread(
                self.resize_image_if_needed, data, validation
            )

            if processed is not data:
                validation = await asyncio.to_thread(self.validate_image, processed)

            filename = self.generate_filename(validation.format)
            relative_path = self.generate_image_path(filename)

            temp_storage_key = await self._temp_storage.upload(processed, filename)
        except BlogBotError:
            raise
        except Exception as e:
            logger.error("Image processing failed: %s", e, exc_info=True)
            raise ProcessingError(
                f"Image processing failed: {e}",
                "画像の処理に失敗しました。",
            ) from e

        return ProcessedImage(
            data=processed,
            filename=filename,
            relative_path=relative_path,
            temp_storage_key=temp_storage_key,
            mime_type=validation.mime_type,
            size=validation.size,
        )

    async def download_from_temp_storage(self, key: str) -> bytes:
        """Fetch a previously uploaded image."""
        return await self._temp_storage.download(key)

    async def cleanup_temp_storage(self, key: str) -> None:
        """Remove a temporary image. Never raises."""
        try:
            await self._temp_storage.cleanup(key)
        except Exception as e:
            logger.warning("Temporary image cleanup failed for %s: %s", key, e)
