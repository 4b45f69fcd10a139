# backends/__init__.py
from . import http
from . import memory
from . import sqlite

BACKENDS = {
    "memory": lambda settings: memory.MemoryStore(),
    "sqlite": lambda settings: sqlite.SQLiteStore(settings.db_path),
    "http": lambda settings: http.HTTPStore(settings.store_url, timeout=settings.store_timeout),
}


def open_backend(settings):
    factory = BACKENDS.get(settings.backend)
    if not factory:
        raise ValueError(
            f"Unknown store backend '{settings.backend}' (expected one of {sorted(BACKENDS)})"
        )
    store = factory(settings)
    store.ensure()
    return store
