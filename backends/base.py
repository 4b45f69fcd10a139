# backends/base.py
from typing import Any, Dict, List, Optional


class DocumentStore:
    """
    Minimal document-store capability the catalog is written against.

    Values are JSON-serializable dicts addressed by (collection, key).
    Implementations raise catalog.errors.StoreUnavailable for transient
    I/O failures and return None from get() for absent documents.
    """

    name = "abstract"

    def ensure(self) -> None:
        """Prepare underlying storage (create tables, check reachability)."""

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, collection: str, key: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, collection: str, key: str) -> None:
        raise NotImplementedError

    def keys(self, collection: str) -> List[str]:
        raise NotImplementedError
