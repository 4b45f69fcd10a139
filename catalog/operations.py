# catalog/operations.py
"""
Operator-facing edits to the batched catalog.

Every function here is a full read-modify-write of one batch. None of them
touch the index; run the consistency job afterwards to refresh it.
"""

import dataclasses
from typing import Any, Tuple

from .batch_store import BatchStore
from .errors import InvalidRecord, NotFound, SizeExceeded
from .logger import get_logger
from .models import Batch, Item

logger = get_logger(__name__)

_IMMUTABLE_FIELDS = {"extra"}


def find_item(store: BatchStore, item_id: str) -> Tuple[Batch, Item]:
    """Scan batches in registry order; the last batch holding the id wins."""
    found: Tuple[Batch, Item] | None = None
    for batch_id in store.registry.batch_ids():
        batch = store.get_batch(batch_id)
        item = batch.find(item_id)
        if item is not None:
            found = (batch, item)
    if found is None:
        raise NotFound(f"item {item_id} not found in any batch")
    return found


def _new_batch(store: BatchStore, item: Item) -> str:
    batch_id = store.registry.next_batch_id()
    store.put_batch(Batch(batch_id=batch_id, items=[item]))
    logger.info("Started %s for item %s.", batch_id, item.item_id)
    return batch_id


def add_item(store: BatchStore, item: Item) -> str:
    """
    Append ``item`` to the current batch and return the batch id it landed in.

    A full batch (items_per_batch reached, or the write would exceed the
    document ceiling) makes the item start the next batch instead.
    """
    try:
        find_item(store, item.item_id)
    except NotFound:
        pass
    else:
        raise InvalidRecord(f"item {item.item_id} already exists")

    current_id = store.registry.current()
    if current_id is None:
        return _new_batch(store, item)

    batch = store.get_batch(current_id)
    if len(batch.items) >= store.items_per_batch:
        logger.info(
            "%s holds %d items (target %d); starting a new batch.",
            current_id, len(batch.items), store.items_per_batch,
        )
        return _new_batch(store, item)

    batch.items.append(item)
    try:
        store.put_batch(batch)
    except SizeExceeded as e:
        logger.warning("%s; starting a new batch.", e)
        return _new_batch(store, item)

    logger.info("Added item %s to %s.", item.item_id, current_id)
    return current_id


def update_item(store: BatchStore, item_id: str, **changes: Any) -> Item:
    """Apply attribute changes to one item and rewrite its batch."""
    bad = set(changes) & _IMMUTABLE_FIELDS
    unknown = set(changes) - {f.name for f in dataclasses.fields(Item)}
    if bad or unknown:
        raise InvalidRecord(f"cannot update fields: {sorted(bad | unknown)}")

    batch, item = find_item(store, item_id)
    updated = dataclasses.replace(item, **changes)
    batch.items = [updated if it is item else it for it in batch.items]
    store.put_batch(batch)
    logger.info("Updated item %s in %s: %s", item_id, batch.batch_id, sorted(changes))
    return updated


def remove_item(store: BatchStore, item_id: str) -> Item:
    batch, item = find_item(store, item_id)
    batch.items = [it for it in batch.items if it is not item]
    store.put_batch(batch)
    logger.info("Removed item %s from %s.", item_id, batch.batch_id)
    return item
