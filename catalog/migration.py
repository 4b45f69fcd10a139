# catalog/migration.py
from typing import Dict, List

from .batch_store import BatchStore
from .errors import SizeExceeded
from .logger import get_logger
from .models import Batch, Item

logger = get_logger(__name__)


def collect_items(batches: List[Batch]) -> List[Item]:
    """
    All items in batch order. A duplicated id keeps the position of its
    first occurrence and the contents of its last.
    """
    order: List[str] = []
    latest: Dict[str, Item] = {}
    for batch in batches:
        for item in batch.items:
            if item.item_id in latest:
                logger.warning(
                    "Merging duplicate item %s (copy in %s wins).", item.item_id, batch.batch_id
                )
            else:
                order.append(item.item_id)
            latest[item.item_id] = item
    return [latest[iid] for iid in order]


def repartition(store: BatchStore, items_per_batch: int | None = None) -> List[str]:
    """
    Re-bucket every item into batch_1..batch_n of ``items_per_batch`` items.

    This is the only operation that moves items between batches. All
    batches are read and every new batch is size-checked before the first
    write, so a read failure or an oversized target leaves the store
    untouched. Returns the batch ids written.
    """
    size = items_per_batch or store.items_per_batch
    if size <= 0:
        raise ValueError("items_per_batch must be positive")

    old_batches = {bid: store.get_batch(bid) for bid in store.registry.batch_ids()}
    items = collect_items(list(old_batches.values()))

    planned: List[Batch] = []
    for number, start in enumerate(range(0, len(items), size), start=1):
        batch_id = store.registry.batch_id_for(number)
        previous = old_batches.get(batch_id)
        batch = Batch(
            batch_id=batch_id,
            items=items[start:start + size],
            revision=previous.revision if previous else 0,
            extra=dict(previous.extra) if previous else {},
        )
        batch.refresh_aggregates()
        planned.append(batch)

    for batch in planned:
        batch_size = store.serialized_size(batch)
        if batch_size > store.max_document_bytes:
            raise SizeExceeded(batch.batch_id, batch_size, store.max_document_bytes)

    logger.info(
        "Repartitioning %d items from %d batches into %d batches of %d.",
        len(items), len(old_batches), len(planned), size,
    )

    new_ids = [b.batch_id for b in planned]
    for batch in planned:
        store.put_batch(batch)
    for batch_id in old_batches:
        if batch_id not in new_ids:
            store.delete_batch(batch_id)

    store.items_per_batch = size
    return new_ids
