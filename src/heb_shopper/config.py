"""
Runtime configuration for the shopping agent.
Values come from HEB_SHOPPER_* environment variables with sane defaults.
"""

import os
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, validator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

ENV_PREFIX = "HEB_SHOPPER_"

DEFAULT_DB_PATH = Path("data") / "heb_shopper.db"
DEFAULT_PROFILE_DIR = Path.home() / ".cache" / "heb-shopper" / "chromium"


class ShopperConfig(BaseModel):
    """All tunables for the controller, drivers, API and UI."""
    store_base_url: str = "https://www.heb.com"
    search_path: str = "/search/?q="

    # Waits (seconds)
    product_wait_seconds: float = 8.0
    add_control_wait_seconds: float = 2.0
    poll_interval_seconds: float = 0.2
    settle_seconds: float = 1.0
    inter_item_delay_seconds: float = 1.5
    navigation_timeout_seconds: float = 20.0

    driver_mode: Literal["persistent", "page-script"] = "persistent"
    checkpoint_db_path: str = str(DEFAULT_DB_PATH)
    user_data_dir: str = str(DEFAULT_PROFILE_DIR)
    headless: bool = False

    ollama_model: str = "qwen2.5:7b"
    ollama_host: str = "http://localhost:11434"

    api_base_url: str = "http://localhost:8000"
    max_log_entries: int = 100

    @validator(
        "product_wait_seconds",
        "add_control_wait_seconds",
        "poll_interval_seconds",
        "settle_seconds",
        "inter_item_delay_seconds",
        "navigation_timeout_seconds",
    )
    def check_non_negative(cls, v):
        if v < 0:
            raise ValueError("Must be non-negative")
        return v

    @validator("max_log_entries")
    def check_positive(cls, v):
        if v <= 0:
            raise ValueError("Must be positive")
        return v

    @property
    def search_url_prefix(self) -> str:
        return self.store_base_url.rstrip("/") + self.search_path


# field name -> env suffix
_ENV_FIELDS = {
    "store_base_url": "STORE_URL",
    "search_path": "SEARCH_PATH",
    "product_wait_seconds": "PRODUCT_WAIT",
    "add_control_wait_seconds": "ADD_CONTROL_WAIT",
    "settle_seconds": "SETTLE",
    "inter_item_delay_seconds": "ITEM_DELAY",
    "navigation_timeout_seconds": "NAV_TIMEOUT",
    "driver_mode": "DRIVER_MODE",
    "checkpoint_db_path": "DB",
    "user_data_dir": "PROFILE_DIR",
    "headless": "HEADLESS",
    "ollama_model": "OLLAMA_MODEL",
    "ollama_host": "OLLAMA_HOST",
    "api_base_url": "API_URL",
}


def load_config(environ=None) -> ShopperConfig:
    """
    Build a ShopperConfig from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated configuration; raises ValueError on bad values.
    """
    environ = os.environ if environ is None else environ
    overrides = {}
    for field, suffix in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        if field == "headless":
            overrides[field] = value.strip().lower() in ("1", "true", "yes", "on")
        else:
            overrides[field] = value

    try:
        config = ShopperConfig(**overrides)
    except Exception as e:
        logger.error(f"[CONFIG] Invalid configuration: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    logger.info(f"[CONFIG] Driver mode: {config.driver_mode}, store: {config.store_base_url}")
    return config
