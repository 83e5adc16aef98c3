"""Configuration loading from .env file."""

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from .api import API_BASE


@dataclass
class Config:
    """Application configuration."""

    # Service application keys
    consumer_key: str
    consumer_secret: str
    api_url: str

    # Storage
    data_dir: Path
    state_file: Path

    # Network budgets (seconds)
    connect_timeout: float
    request_timeout: float
    online_check_host: str

    # Sync
    list_limit: int

    # Article download
    embed_images: bool
    max_image_bytes: int

    # Logging
    log_level: str


def load_config(env_file: Path | None = None) -> Config:
    """
    Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. Defaults to .env in current directory.

    Returns:
        Config object with all settings.

    Raises:
        ValueError: If required configuration is missing.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    # Required settings
    consumer_key = os.getenv("PAPERSYNC_CONSUMER_KEY")
    consumer_secret = os.getenv("PAPERSYNC_CONSUMER_SECRET")

    if not consumer_key:
        raise ValueError("PAPERSYNC_CONSUMER_KEY is required")
    if not consumer_secret:
        raise ValueError("PAPERSYNC_CONSUMER_SECRET is required")

    # Optional settings with defaults
    api_url = os.getenv("PAPERSYNC_API_URL", API_BASE).rstrip("/")
    data_dir = Path(os.getenv("PAPERSYNC_DATA_DIR", "papersync-data"))
    state_file = os.getenv("PAPERSYNC_STATE_FILE")

    return Config(
        consumer_key=consumer_key,
        consumer_secret=consumer_secret,
        api_url=api_url,
        data_dir=data_dir,
        state_file=Path(state_file) if state_file else data_dir / "state.json",
        connect_timeout=float(os.getenv("PAPERSYNC_CONNECT_TIMEOUT", "10")),
        request_timeout=float(os.getenv("PAPERSYNC_REQUEST_TIMEOUT", "30")),
        online_check_host=os.getenv("PAPERSYNC_ONLINE_CHECK_HOST") or urlparse(api_url).hostname or "",
        list_limit=int(os.getenv("PAPERSYNC_LIST_LIMIT", "200")),
        embed_images=os.getenv("PAPERSYNC_EMBED_IMAGES", "true").lower() == "true",
        max_image_bytes=int(os.getenv("PAPERSYNC_MAX_IMAGE_BYTES", str(1024 * 1024))),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
