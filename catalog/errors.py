# catalog/errors.py
class CatalogError(Exception):
    """Base class for batch catalog failures."""


class NotFound(CatalogError):
    """Requested batch, item or index entry is absent."""


class SizeExceeded(CatalogError):
    """Serialized batch would exceed the store's per-document ceiling."""

    def __init__(self, batch_id: str, size: int, limit: int | None = None):
        bound = f"limit {limit}" if limit is not None else "rejected by the store"
        super().__init__(f"batch {batch_id} serializes to {size} bytes ({bound})")
        self.batch_id = batch_id
        self.size = size
        self.limit = limit


class WriteConflict(CatalogError):
    """Stored revision no longer matches the revision the writer read."""


class StoreUnavailable(CatalogError):
    """Transient I/O failure talking to the document store."""


class InvalidRecord(CatalogError):
    """Stored or submitted record cannot be turned into a typed object."""
