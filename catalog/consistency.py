# catalog/consistency.py
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .batch_store import BatchStore, now_utc_iso
from .errors import CatalogError, InvalidRecord
from .index import CatalogIndex
from .logger import get_logger
from .models import CatalogIndexEntry

logger = get_logger(__name__)


@dataclass
class RepairReport:
    batches_scanned: int = 0
    items_indexed: int = 0
    aggregates_corrected: List[str] = field(default_factory=list)
    items_normalized: List[str] = field(default_factory=list)
    duplicates: List[Dict[str, Any]] = field(default_factory=list)
    flash_sale_cleared: List[str] = field(default_factory=list)
    entries_written: int = 0
    entries_removed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    dry_run: bool = False
    started_at: str = ""
    finished_at: str = ""

    def add_error(self, batch_id: str, error: Exception | str) -> None:
        self.errors.append({"batchId": batch_id, "message": str(error)})

    @property
    def has_changes(self) -> bool:
        return bool(
            self.aggregates_corrected
            or self.items_normalized
            or self.flash_sale_cleared
            or self.entries_written
            or self.entries_removed
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchesScanned": self.batches_scanned,
            "itemsIndexed": self.items_indexed,
            "aggregatesCorrected": list(self.aggregates_corrected),
            "itemsNormalized": list(self.items_normalized),
            "duplicates": [dict(d) for d in self.duplicates],
            "flashSaleCleared": list(self.flash_sale_cleared),
            "entriesWritten": self.entries_written,
            "entriesRemoved": self.entries_removed,
            "errors": [dict(e) for e in self.errors],
            "dryRun": self.dry_run,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


class ConsistencyJob:
    """
    Recompute derived state from the batches.

    Per batch: read it, rewrite it if its cached aggregates are stale or
    any item record is not in canonical form, and project its items. Then
    bring the index in line with the projections. A CatalogError on one
    batch is reported and only that batch is skipped.

    Running the job twice with no writes in between performs no writes
    the second time.
    """

    def __init__(self, store: BatchStore, index: CatalogIndex):
        self.store = store
        self.index = index

    def run(
        self,
        prune_orphans: bool = True,
        dry_run: bool = False,
        report: RepairReport | None = None,
    ) -> RepairReport:
        """Scan every batch; ``report`` may carry errors from earlier steps of the same run."""
        if report is None:
            report = RepairReport(started_at=now_utc_iso())
        report.dry_run = dry_run
        projections: Dict[str, CatalogIndexEntry] = {}
        owners: Dict[str, str] = {}
        complete = True

        for batch_id in self.store.registry.batch_ids():
            if not self._scan_batch(batch_id, report, projections, owners, dry_run):
                complete = False

        report.items_indexed = len(projections)
        self._sync_index(report, projections, owners, dry_run)

        if prune_orphans and complete:
            self._prune_orphans(report, projections, dry_run)
        elif prune_orphans:
            logger.warning("Skipping orphan pruning: not every batch was read.")

        report.finished_at = now_utc_iso()
        logger.info(
            "Repair finished: %d batches, %d items indexed, %d aggregates corrected, "
            "%d entries written, %d removed, %d errors.",
            report.batches_scanned,
            report.items_indexed,
            len(report.aggregates_corrected),
            report.entries_written,
            report.entries_removed,
            len(report.errors),
        )
        return report

    def _scan_batch(self, batch_id, report, projections, owners, dry_run) -> bool:
        try:
            batch = self.store.get_batch(batch_id)
        except CatalogError as e:
            logger.error("Failed to read %s: %s", batch_id, e)
            report.add_error(batch_id, e)
            return False

        report.batches_scanned += 1
        stale = batch.aggregates_stale()
        normalized = list(batch.normalized_ids)

        if stale or normalized:
            if stale:
                logger.warning(
                    "Aggregates of %s are stale (stored count=%s, actual=%d).",
                    batch_id, batch.aggregates.count, len(batch.items),
                )
            if normalized:
                logger.info("Normalizing %d item records in %s.", len(normalized), batch_id)
            if not dry_run:
                try:
                    self.store.put_batch(batch, expected_revision=batch.revision)
                except CatalogError as e:
                    logger.error("Failed to write repaired %s: %s", batch_id, e)
                    report.add_error(batch_id, e)
                    return False
            if stale:
                report.aggregates_corrected.append(batch_id)
            report.items_normalized.extend(normalized)

        for item in batch.items:
            previous = owners.get(item.item_id)
            if previous is not None:
                # Later batch wins; the earlier copy stays in its batch until migrated
                logger.warning(
                    "Item %s found in %s and %s; indexing the copy in %s.",
                    item.item_id, previous, batch_id, batch_id,
                )
                report.duplicates.append(
                    {"itemId": item.item_id, "batchIds": [previous, batch_id], "winner": batch_id}
                )
            projections[item.item_id] = CatalogIndexEntry.project(item, batch_id)
            owners[item.item_id] = batch_id
        return True

    def _sync_index(self, report, projections, owners, dry_run) -> None:
        for item_id, entry in projections.items():
            try:
                try:
                    current = self.index.get(item_id)
                except InvalidRecord:
                    current = None
                if current == entry:
                    continue
                if not dry_run:
                    self.index.upsert(entry)
                report.entries_written += 1
            except CatalogError as e:
                logger.error("Failed to index %s: %s", item_id, e)
                report.add_error(owners[item_id], f"index entry {item_id}: {e}")

    def _prune_orphans(self, report, projections, dry_run) -> None:
        try:
            indexed_ids = self.index.item_ids()
        except CatalogError as e:
            logger.error("Failed to list %s: %s", self.index.collection, e)
            report.add_error(self.index.collection, e)
            return

        for item_id in indexed_ids:
            if item_id in projections:
                continue
            try:
                if not dry_run:
                    self.index.remove(item_id)
                report.entries_removed += 1
            except CatalogError as e:
                logger.error("Failed to remove orphan %s: %s", item_id, e)
                report.add_error(self.index.collection, f"index entry {item_id}: {e}")
