# backends/memory.py
import json
from typing import Any, Dict, List, Optional

from .base import DocumentStore


class MemoryStore(DocumentStore):
    """
    In-process store. Documents are kept as JSON text so writes fail the
    same way a remote store would on non-serializable values.
    """

    name = "memory"

    def __init__(self):
        self._docs: Dict[str, Dict[str, str]] = {}

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        raw = self._docs.get(collection, {}).get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, collection: str, key: str, value: Dict[str, Any]) -> None:
        self._docs.setdefault(collection, {})[key] = json.dumps(value)

    def delete(self, collection: str, key: str) -> None:
        self._docs.get(collection, {}).pop(key, None)

    def keys(self, collection: str) -> List[str]:
        return sorted(self._docs.get(collection, {}))
