# catalog/registry.py
import re
from typing import Iterable, List, Optional

from .logger import get_logger

logger = get_logger(__name__)


class BatchRegistry:
    """
    Ordered set of batch ids living in one collection.

    Batch ids are logical names ("batch_3"); the store key is the same
    string today but every component goes through key_for() so the two
    can diverge.
    """

    def __init__(self, collection: str = "productBatches", prefix: str = "batch_", batch_ids: Iterable[str] = ()):
        self.collection = collection
        self.prefix = prefix
        self._pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        self._ids: List[str] = []
        for batch_id in batch_ids:
            self.register(batch_id)

    @classmethod
    def from_ids(cls, batch_ids: Iterable[str], collection: str = "productBatches", prefix: str = "batch_") -> "BatchRegistry":
        return cls(collection=collection, prefix=prefix, batch_ids=batch_ids)

    @classmethod
    def discover(cls, backend, collection: str = "productBatches", prefix: str = "batch_") -> "BatchRegistry":
        registry = cls(collection=collection, prefix=prefix)
        skipped = []
        for key in backend.keys(collection):
            if registry.number_of(key) is None:
                skipped.append(key)
                continue
            registry.register(key)
        if skipped:
            logger.debug("Ignoring non-batch documents in %s: %s", collection, skipped)
        logger.info("Discovered %d batches in %s.", len(registry), collection)
        return registry

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(list(self._ids))

    def __contains__(self, batch_id: str) -> bool:
        return batch_id in self._ids

    def number_of(self, batch_id: str) -> Optional[int]:
        m = self._pattern.match(batch_id)
        return int(m.group(1)) if m else None

    def _sort_key(self, batch_id: str):
        number = self.number_of(batch_id)
        # Numbered batches first in numeric order, anything else after by name
        return (0, number, "") if number is not None else (1, 0, batch_id)

    def batch_ids(self) -> List[str]:
        return list(self._ids)

    def key_for(self, batch_id: str) -> str:
        return batch_id

    def register(self, batch_id: str) -> None:
        if not batch_id:
            raise ValueError("batch id must be non-empty")
        if batch_id in self._ids:
            return
        self._ids.append(batch_id)
        self._ids.sort(key=self._sort_key)

    def unregister(self, batch_id: str) -> None:
        if batch_id in self._ids:
            self._ids.remove(batch_id)

    def current(self) -> Optional[str]:
        """The batch new items are appended to."""
        return self._ids[-1] if self._ids else None

    def batch_id_for(self, number: int) -> str:
        return f"{self.prefix}{number}"

    def next_batch_id(self) -> str:
        numbers = [n for n in (self.number_of(b) for b in self._ids) if n is not None]
        return self.batch_id_for(max(numbers, default=0) + 1)
