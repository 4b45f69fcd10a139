# catalog/index.py
from typing import List

from .errors import NotFound
from .logger import get_logger
from .models import CatalogIndexEntry

logger = get_logger(__name__)


class CatalogIndex:
    """
    Per-item lookup documents derived from batch contents.

    This is a cache: nothing here checks it against the batches, and only
    the consistency job is expected to write it.
    """

    def __init__(self, backend, collection: str = "globalindex"):
        self.backend = backend
        self.collection = collection

    def lookup(self, item_id: str) -> CatalogIndexEntry:
        record = self.backend.get(self.collection, item_id)
        if record is None:
            raise NotFound(f"item {item_id} not in {self.collection}")
        return CatalogIndexEntry.from_record(record)

    def get(self, item_id: str) -> CatalogIndexEntry | None:
        try:
            return self.lookup(item_id)
        except NotFound:
            return None

    def upsert(self, entry: CatalogIndexEntry) -> None:
        self.backend.put(self.collection, entry.item_id, entry.to_record())

    def remove(self, item_id: str) -> None:
        self.backend.delete(self.collection, item_id)
        logger.debug("Removed %s from %s.", item_id, self.collection)

    def item_ids(self) -> List[str]:
        return self.backend.keys(self.collection)
