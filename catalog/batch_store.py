# catalog/batch_store.py
import datetime
import json
from typing import Any, Dict

import pytz
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from .config import DEFAULT_ITEMS_PER_BATCH, DEFAULT_MAX_DOCUMENT_BYTES, DEFAULT_SAFETY_MARGIN_PERCENT
from .errors import NotFound, SizeExceeded, StoreUnavailable, WriteConflict
from .logger import get_logger
from .models import Batch, Item
from .registry import BatchRegistry

logger = get_logger(__name__)


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def serialized_size(record: Dict[str, Any]) -> int:
    return len(json.dumps(record, ensure_ascii=False).encode("utf-8"))


class BatchStore:
    """
    Whole-document persistence of batches.

    There are no partial updates: changing one item means get_batch(),
    editing the Batch in memory, and put_batch() of the full document.
    Without expected_revision a write is last-writer-wins, so two writers
    starting from the same read lose one of their changes.
    """

    def __init__(
        self,
        backend,
        registry: BatchRegistry,
        max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES,
        items_per_batch: int = DEFAULT_ITEMS_PER_BATCH,
        safety_margin_percent: int = DEFAULT_SAFETY_MARGIN_PERCENT,
        retry_attempts: int = 3,
        retry_wait_initial: float = 1.0,
        retry_wait_max: float = 30.0,
    ):
        if max_document_bytes <= 0:
            raise ValueError("max_document_bytes must be positive")
        if items_per_batch <= 0:
            raise ValueError("items_per_batch must be positive")
        self.backend = backend
        self.registry = registry
        self.max_document_bytes = max_document_bytes
        self.items_per_batch = items_per_batch
        self.safety_margin_percent = safety_margin_percent
        self._retrying = Retrying(
            retry=retry_if_exception_type(StoreUnavailable),
            wait=wait_exponential_jitter(initial=retry_wait_initial, max=retry_wait_max),
            stop=stop_after_attempt(max(1, retry_attempts)),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @classmethod
    def from_settings(cls, backend, registry: BatchRegistry, settings) -> "BatchStore":
        return cls(
            backend,
            registry,
            max_document_bytes=settings.max_document_bytes,
            items_per_batch=settings.items_per_batch,
            safety_margin_percent=settings.safety_margin_percent,
            retry_attempts=settings.retry_attempts,
            retry_wait_initial=settings.retry_wait_initial,
            retry_wait_max=settings.retry_wait_max,
        )

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.warning(
            "Store unavailable (attempt %d): %s; retrying.",
            retry_state.attempt_number,
            retry_state.outcome.exception(),
        )

    def _call(self, fn, *args):
        return self._retrying(fn, *args)

    def _read_record(self, batch_id: str) -> Dict[str, Any] | None:
        return self._call(
            self.backend.get, self.registry.collection, self.registry.key_for(batch_id)
        )

    def get_batch(self, batch_id: str) -> Batch:
        record = self._read_record(batch_id)
        if record is None:
            raise NotFound(f"batch {batch_id} not found in {self.registry.collection}")
        return Batch.from_record(batch_id, record)

    def put_batch(
        self,
        batch: Batch,
        expected_revision: int | None = None,
        refresh_aggregates: bool = True,
    ) -> Batch:
        """
        Overwrite the stored batch with ``batch`` and return what was written.

        Raises SizeExceeded (nothing written) when the document would be over
        the ceiling, and WriteConflict when expected_revision is given and the
        stored revision has moved on.
        """
        # Round-trip every item so a malformed one fails here, not on read
        items = [Item.from_record(it.to_record()) for it in batch.items]

        if expected_revision is not None:
            current = self._read_record(batch.batch_id)
            current_revision = int((current or {}).get("revision") or 0)
            if current_revision != expected_revision:
                raise WriteConflict(
                    f"batch {batch.batch_id} is at revision {current_revision}, "
                    f"expected {expected_revision}"
                )

        written = Batch(
            batch_id=batch.batch_id,
            items=items,
            aggregates=batch.aggregates,
            revision=(expected_revision if expected_revision is not None else batch.revision) + 1,
            updated_at=now_utc_iso(),
            extra=dict(batch.extra),
        )
        if refresh_aggregates:
            written.refresh_aggregates()

        record = written.to_record()
        size = serialized_size(record)
        if size > self.max_document_bytes:
            raise SizeExceeded(batch.batch_id, size, self.max_document_bytes)

        self._call(
            self.backend.put,
            self.registry.collection,
            self.registry.key_for(batch.batch_id),
            record,
        )
        self.registry.register(batch.batch_id)
        logger.debug(
            "Wrote %s (%d items, %d bytes, revision %d).",
            batch.batch_id, len(items), size, written.revision,
        )
        return written

    def delete_batch(self, batch_id: str) -> None:
        self._call(
            self.backend.delete, self.registry.collection, self.registry.key_for(batch_id)
        )
        self.registry.unregister(batch_id)
        logger.info("Deleted %s from %s.", batch_id, self.registry.collection)

    def serialized_size(self, batch: Batch) -> int:
        return serialized_size(batch.to_record())

    def capacity_report(self, batch: Batch) -> Dict[str, Any]:
        """
        Estimate how many items of this batch's average size fit under the
        ceiling, with and without the safety margin.
        """
        size = self.serialized_size(batch)
        count = len(batch.items)
        avg_item = (
            sum(serialized_size(it.to_record()) for it in batch.items) / count
            if count
            else 0.0
        )
        hard_capacity = int(self.max_document_bytes // avg_item) if avg_item else 0
        recommended = int(hard_capacity * self.safety_margin_percent / 100)
        return {
            "batchId": batch.batch_id,
            "itemCount": count,
            "documentBytes": size,
            "maxDocumentBytes": self.max_document_bytes,
            "averageItemBytes": round(avg_item, 1),
            "hardCapacity": hard_capacity,
            "recommendedCapacity": recommended,
            "itemsPerBatch": self.items_per_batch,
            "withinRecommendation": count == 0 or self.items_per_batch <= recommended,
        }
