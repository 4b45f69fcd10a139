# catalog/flash_sale.py
import dataclasses
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pytz

from .batch_store import BatchStore, now_utc_iso
from .consistency import RepairReport
from .errors import CatalogError, InvalidRecord
from .logger import get_logger

logger = get_logger(__name__)

CONFIG_KEY = "config"


def parse_timestamp(value: str) -> datetime.datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        ts = datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidRecord(f"bad timestamp {value!r}") from e
    if ts.tzinfo is None:
        ts = pytz.UTC.localize(ts)
    return ts


@dataclass
class FlashSaleConfig:
    is_active: bool
    end_time: datetime.datetime | None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FlashSaleConfig":
        end_raw = record.get("endTime")
        return cls(
            is_active=bool(record.get("isActive")),
            end_time=parse_timestamp(end_raw) if isinstance(end_raw, str) and end_raw.strip() else None,
            extra={k: v for k, v in record.items() if k not in ("isActive", "endTime")},
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.extra)
        record["isActive"] = self.is_active
        record["endTime"] = self.end_time.isoformat() if self.end_time else None
        return record

    def expired(self, now: datetime.datetime) -> bool:
        return self.end_time is not None and now > self.end_time

def expire_flash_sale(
    store: BatchStore,
    backend,
    collection: str = "flashSale",
    now: datetime.datetime | None = None,
    report: RepairReport | None = None,
) -> List[str]:
    """
    End an active flash sale whose end time has passed.

    Clears the flash-sale flag and price on every item, rewrites the batches
    that changed, then deactivates the config. Returns the cleared item ids.

    Without ``report`` the first batch failure propagates. With it, each
    failing batch is recorded there and skipped, and the config stays
    active so the next run clears what was missed.
    """
    now = now or datetime.datetime.now(tz=pytz.UTC)
    record = backend.get(collection, CONFIG_KEY)
    if record is None:
        logger.debug("No flash sale config at %s/%s.", collection, CONFIG_KEY)
        return []

    config = FlashSaleConfig.from_record(record)
    if not config.is_active:
        logger.debug("Flash sale already inactive.")
        return []
    if not config.expired(now):
        logger.info("Flash sale still active until %s.", config.end_time)
        return []

    logger.info("Flash sale ended at %s; clearing flash sale items.", config.end_time)
    cleared: List[str] = []
    failed = False
    for batch_id in store.registry.batch_ids():
        try:
            cleared.extend(_clear_batch(store, batch_id))
        except CatalogError as e:
            if report is None:
                raise
            logger.error("Failed to clear flash sale items in %s: %s", batch_id, e)
            report.add_error(batch_id, f"flash sale expiry: {e}")
            failed = True

    if report is not None:
        report.flash_sale_cleared.extend(cleared)
    if failed:
        logger.warning("Cleared %d flash sale items; config left active for retry.", len(cleared))
        return cleared

    config.is_active = False
    updated = config.to_record()
    updated["updatedAt"] = now_utc_iso()
    backend.put(collection, CONFIG_KEY, updated)
    logger.info("Cleared %d flash sale items; config deactivated.", len(cleared))
    return cleared


def _clear_batch(store: BatchStore, batch_id: str) -> List[str]:
    batch = store.get_batch(batch_id)
    cleared: List[str] = []
    items = []
    for item in batch.items:
        if item.is_flash_sale or item.flash_sale_price is not None:
            item = dataclasses.replace(item, is_flash_sale=False, flash_sale_price=None)
            cleared.append(item.item_id)
        items.append(item)
    if cleared:
        batch.items = items
        store.put_batch(batch, expected_revision=batch.revision)
    return cleared
