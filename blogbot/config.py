"""Project-level configuration and path helpers."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_DB_PATH = DATA_DIR / "sessions.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_IMAGE_TEMP_DIR = DATA_DIR / "temp-images"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]

DEFAULT_TAGS = (
    "お絵かき",
    "ねこ劇場",
    "おばけ",
    "つぽWorks",
    "今日のKさん",
    "今日のつぽ劇場",
    "今日の母劇場",
    "今日の自分劇場",
    "行事",
    "超落書きシリーズ",
)

REQUIRED_ENV_VARS = (
    "LINE_CHANNEL_SECRET",
    "LINE_CHANNEL_ACCESS_TOKEN",
    "BLOG_BASE_URL",
)

SESSION_STORE_TYPES = ("sqlite",)
IMAGE_STORAGE_TYPES = ("local",)


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_data_path(env_value: PathLike | None, default: Path) -> Path:
    """Resolve a directory setting relative to the project root."""
    if not env_value:
        return default

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass(frozen=True)
class LineConfig:
    """LINE Messaging API credentials and endpoints."""

    channel_secret: str
    channel_access_token: str
    api_base_url: str = "https://api.line.me/v2/bot"
    data_api_base_url: str = "https://api-data.line.me/v2/bot"


@dataclass(frozen=True)
class BlogConfig:
    """Blog-facing settings: public URL, image root and tag catalogue."""

    base_url: str
    image_root: str = "source/images"
    available_tags: tuple[str, ...] = DEFAULT_TAGS


@dataclass(frozen=True)
class SessionStoreConfig:
    """Which session store to build and how long sessions live."""

    type: str = "sqlite"
    db_path: PathLike = DEFAULT_DB_PATH
    ttl_seconds: int = 24 * 60 * 60


@dataclass(frozen=True)
class ImageStorageConfig:
    """Which temporary image storage to build."""

    type: str = "local"
    directory: Path = DEFAULT_IMAGE_TEMP_DIR


@dataclass(frozen=True)
class Config:
    """Application configuration, built once at startup."""

    line: LineConfig
    blog: BlogConfig
    session_store: SessionStoreConfig = field(default_factory=SessionStoreConfig)
    image_storage: ImageStorageConfig = field(default_factory=ImageStorageConfig)


def _parse_tags(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_TAGS
    tags = tuple(tag.strip() for tag in raw.split(",") if tag.strip())
    return tags or DEFAULT_TAGS


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def load_config(env: Mapping[str, str] | None = None) -> Config:
    """
    Build the application configuration from environment variables.

    Args:
        env: Mapping to read from. Defaults to os.environ.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required variables are missing or values are invalid.
    """
    if env is None:
        env = os.environ

    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    base_url = env["BLOG_BASE_URL"]
    if not _is_http_url(base_url):
        raise ValueError("BLOG_BASE_URL must be a valid http(s) URL")

    store_type = env.get("SESSION_STORE_TYPE", "sqlite").lower()
    if store_type not in SESSION_STORE_TYPES:
        raise ValueError(f"Unsupported SESSION_STORE_TYPE: {store_type}")

    image_storage_type = env.get("IMAGE_STORAGE_TYPE", "local").lower()
    if image_storage_type not in IMAGE_STORAGE_TYPES:
        raise ValueError(f"Unsupported IMAGE_STORAGE_TYPE: {image_storage_type}")

    try:
        ttl_seconds = int(env.get("SESSION_TTL_SECONDS", str(24 * 60 * 60)))
    except ValueError:
        raise ValueError("SESSION_TTL_SECONDS must be an integer") from None
    if ttl_seconds <= 0:
        raise ValueError("SESSION_TTL_SECONDS must be positive")

    return Config(
        line=LineConfig(
            channel_secret=env["LINE_CHANNEL_SECRET"],
            channel_access_token=env["LINE_CHANNEL_ACCESS_TOKEN"],
        ),
        blog=BlogConfig(
            base_url=base_url,
            image_root=env.get("BLOG_IMAGE_ROOT", "source/images").strip("/"),
            available_tags=_parse_tags(env.get("BLOG_TAGS")),
        ),
        session_store=SessionStoreConfig(
            type=store_type,
            db_path=resolve_db_path(env.get("DATABASE_URL")),
            ttl_seconds=ttl_seconds,
        ),
        image_storage=ImageStorageConfig(
            type=image_storage_type,
            directory=resolve_data_path(
                env.get("IMAGE_TEMP_DIR"), DEFAULT_IMAGE_TEMP_DIR
            ),
        ),
    )
