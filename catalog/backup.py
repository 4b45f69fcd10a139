# catalog/backup.py
import datetime
import json
import re
from pathlib import Path
from typing import List

import pytz

from .batch_store import BatchStore
from .consistency import RepairReport
from .errors import CatalogError, InvalidRecord, NotFound
from .logger import get_logger
from .models import Batch

logger = get_logger(__name__)

_BACKUP_NAME = re.compile(r"^(?P<batch_id>.+)_backup_\d{8}T\d{6}Z\.json$")


def _timestamp() -> str:
    return datetime.datetime.now(tz=pytz.UTC).strftime("%Y%m%dT%H%M%SZ")


def backup_batches(
    store: BatchStore, backup_dir: str | Path, report: RepairReport | None = None
) -> List[Path]:
    """
    Write every batch's stored record to <batch_id>_backup_<timestamp>.json.

    With ``report`` a batch that cannot be read is recorded there and
    skipped; otherwise the error propagates.
    """
    directory = Path(backup_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = _timestamp()

    written: List[Path] = []
    for batch_id in store.registry.batch_ids():
        try:
            batch = store.get_batch(batch_id)
        except CatalogError as e:
            if report is None:
                raise
            logger.error("Failed to back up %s: %s", batch_id, e)
            report.add_error(batch_id, f"backup: {e}")
            continue
        path = directory / f"{batch_id}_backup_{stamp}.json"
        path.write_text(json.dumps(batch.to_record(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Backed up %s (%d items) to %s", batch_id, len(batch.items), path)
        written.append(path)
    return written


def restore_backup(store: BatchStore, path: str | Path) -> Batch:
    """Write a backup file back over its batch, keeping the backed-up aggregates."""
    path = Path(path)
    m = _BACKUP_NAME.match(path.name)
    if not m:
        raise InvalidRecord(f"not a batch backup file: {path.name}")
    batch_id = m.group("batch_id")

    try:
        record = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise InvalidRecord(f"backup {path} is not valid JSON: {e}") from e

    batch = Batch.from_record(batch_id, record)
    try:
        # Revision continues from the stored batch, not the backup
        batch.revision = store.get_batch(batch_id).revision
    except NotFound:
        pass
    written = store.put_batch(batch, refresh_aggregates=False)
    logger.info("Restored %s from %s (%d items).", batch_id, path, len(batch.items))
    return written
