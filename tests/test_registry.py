from backends.memory import MemoryStore
from catalog.registry import BatchRegistry


def test_ids_are_kept_in_numeric_order():
    registry = BatchRegistry.from_ids(["batch_10", "batch_2", "batch_1"])
    assert registry.batch_ids() == ["batch_1", "batch_2", "batch_10"]
    assert registry.current() == "batch_10"
    assert registry.next_batch_id() == "batch_11"


def test_empty_registry():
    registry = BatchRegistry()
    assert registry.current() is None
    assert registry.next_batch_id() == "batch_1"
    assert len(registry) == 0


def test_register_is_idempotent_and_unregister_removes():
    registry = BatchRegistry()
    registry.register("batch_1")
    registry.register("batch_1")
    assert registry.batch_ids() == ["batch_1"]
    registry.unregister("batch_1")
    registry.unregister("batch_1")
    assert registry.batch_ids() == []


def test_discover_ignores_non_batch_documents():
    backend = MemoryStore()
    for key in ("batch_2", "globalIndex", "batch_1", "batch_x"):
        backend.put("productBatches", key, {})
    backend.put("other", "batch_3", {})

    registry = BatchRegistry.discover(backend, "productBatches")

    assert registry.batch_ids() == ["batch_1", "batch_2"]
    assert registry.key_for("batch_2") == "batch_2"


def test_custom_prefix():
    registry = BatchRegistry.from_ids(["shard-1"], prefix="shard-")
    assert registry.next_batch_id() == "shard-2"
