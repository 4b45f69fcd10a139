# catalog/config.py
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .logger import get_logger

logger = get_logger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "/data/config.json")

# Per-document ceiling of the hosted document database
DEFAULT_MAX_DOCUMENT_BYTES = 1024 * 1024
DEFAULT_ITEMS_PER_BATCH = 250
DEFAULT_SAFETY_MARGIN_PERCENT = 80


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d.", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s.", name, raw, default)
        return default


@dataclass
class Settings:
    backend: str = "sqlite"
    db_path: str = "/data/catalog.sqlite3"
    store_url: str = ""
    store_timeout: float = 30.0
    batch_collection: str = "productBatches"
    index_collection: str = "globalindex"
    flash_sale_collection: str = "flashSale"
    batch_prefix: str = "batch_"
    max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES
    items_per_batch: int = DEFAULT_ITEMS_PER_BATCH
    safety_margin_percent: int = DEFAULT_SAFETY_MARGIN_PERCENT
    retry_attempts: int = 3
    retry_wait_initial: float = 1.0
    retry_wait_max: float = 30.0
    backup_dir: str = "/data/backups"
    batches: List[str] = field(default_factory=list)
    recipients: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            backend=os.getenv("STORE_BACKEND", "sqlite").strip().lower(),
            db_path=os.getenv("DB_PATH", "/data/catalog.sqlite3"),
            store_url=os.getenv("STORE_URL", "").strip(),
            store_timeout=_env_float("STORE_TIMEOUT", 30.0),
            batch_collection=os.getenv("BATCH_COLLECTION", "productBatches"),
            index_collection=os.getenv("INDEX_COLLECTION", "globalindex"),
            flash_sale_collection=os.getenv("FLASH_SALE_COLLECTION", "flashSale"),
            batch_prefix=os.getenv("BATCH_PREFIX", "batch_"),
            max_document_bytes=_env_int("MAX_DOCUMENT_BYTES", DEFAULT_MAX_DOCUMENT_BYTES),
            items_per_batch=_env_int("ITEMS_PER_BATCH", DEFAULT_ITEMS_PER_BATCH),
            safety_margin_percent=_env_int(
                "SAFETY_MARGIN_PERCENT", DEFAULT_SAFETY_MARGIN_PERCENT
            ),
            retry_attempts=max(1, _env_int("RETRY_ATTEMPTS", 3)),
            retry_wait_initial=_env_float("RETRY_WAIT_INITIAL", 1.0),
            retry_wait_max=_env_float("RETRY_WAIT_MAX", 30.0),
            backup_dir=os.getenv("BACKUP_DIR", "/data/backups"),
        )


def load_config(path: str = CONFIG_PATH, settings: Settings | None = None) -> Settings:
    """
    Overlay the optional JSON config file onto environment settings.

    Recognised keys:
      - batches: explicit list of batch ids, in order (otherwise discovered)
      - recipients: report recipients, overriding EMAIL_TO
    """
    settings = settings or Settings.from_env()
    if not os.path.exists(path):
        logger.info("No config file at %s; batches will be discovered.", path)
        return settings

    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg: Dict[str, Any] = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Failed to load config at %s: %s", path, e)
        raise SystemExit(1)

    if not isinstance(cfg, dict):
        logger.error("Config at %s must be a JSON object.", path)
        raise SystemExit(1)

    batches = cfg.get("batches")
    if batches is not None:
        if not isinstance(batches, list) or not all(
            isinstance(b, str) and b.strip() for b in batches
        ):
            logger.error("Config 'batches' must be a list of non-empty strings.")
            raise SystemExit(1)
        settings.batches = [b.strip() for b in batches]

    recipients = cfg.get("recipients")
    if isinstance(recipients, list):
        settings.recipients = [
            r.strip() for r in recipients if isinstance(r, str) and r.strip()
        ]

    return settings
