"""Factory for the image pipeline and its temporary storage."""

from ..config import Config
from .pipeline import ImagePipeline
from .storage import ITempImageStorage, LocalTempImageStorage


def create_temp_image_storage(config: Config) -> ITempImageStorage:
    """Create the configured temporary image storage."""
    storage_config = config.image_storage
    if storage_config.type == "local":
        return LocalTempImageStorage(storage_config.directory)

    raise ValueError(f"Unsupported image storage type: {storage_config.type}")


def create_image_pipeline(config: Config) -> ImagePipeline:
    """Create an image pipeline wired to the configured temporary storage."""
    return ImagePipeline(
        temp_storage=create_temp_image_storage(config),
        image_root=config.blog.image_root,
    )
