"""Image module."""

from .factory import create_image_pipeline, create_temp_image_storage
from .pipeline import ImagePipeline
from .storage import ITempImageStorage, LocalTempImageStorage

__all__ = [
    "ImagePipeline",
    "ITempImageStorage",
    "LocalTempImageStorage",
    "create_image_pipeline",
    "create_temp_image_storage",
]
