import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / ".env")


def _as_bool(value: str, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    shard1_url: str = os.getenv("SHARD1_URL", "https://products-api-database1.vercel.app/")
    shard2_url: str = os.getenv("SHARD2_URL", "https://products-api-database2.vercel.app/")
    shard_timeout_seconds: float = float(os.getenv("SHARD_TIMEOUT_SECONDS", "10"))
    shard_max_retries: int = int(os.getenv("SHARD_MAX_RETRIES", "2"))
    shard_retry_backoff_seconds: float = float(os.getenv("SHARD_RETRY_BACKOFF_SECONDS", "1.0"))
    shard_result_limit: int = int(os.getenv("SHARD_RESULT_LIMIT", "500"))
    test_duration_days: int = int(os.getenv("TEST_DURATION_DAYS", "3"))
    tracker_api_url: str = os.getenv("TRACKER_API_URL", "")
    tracker_api_token: str = os.getenv("TRACKER_API_TOKEN", "")
    request_timeout_seconds: int = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "12"))
    product_cache_path: str = os.getenv("PRODUCT_CACHE_PATH", "")
    product_cache_max_size: int = int(os.getenv("PRODUCT_CACHE_MAX_SIZE", "1000"))
    product_cache_max_age_days: int = int(os.getenv("PRODUCT_CACHE_MAX_AGE_DAYS", "30"))
    debug_log: bool = _as_bool(os.getenv("DEBUG_LOG", "0"))
    gradio_server_name: str = os.getenv("GRADIO_SERVER_NAME", "0.0.0.0")
    gradio_server_port: int = int(os.getenv("GRADIO_SERVER_PORT", "7860"))


settings = Settings()


def configure_logging(debug: bool | None = None) -> None:
    level = logging.DEBUG if (settings.debug_log if debug is None else debug) else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    # httpx logs full request URLs at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
