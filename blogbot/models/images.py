"""Image pipeline data models."""

from dataclasses import dataclass


@dataclass
class ImageValidationResult:
    """Metadata read while validating an image payload."""

    is_valid: bool
    mime_type: str
    width: int
    height: int
    size: int
    format: str


@dataclass
class ProcessedImage:
    """An image ready to be referenced from a post."""

    data: bytes
    filename: str
    relative_path: str
    temp_storage_key: str
    mime_type: str
    size: int
