import pytest

from catalog.batch_store import BatchStore
from catalog.errors import SizeExceeded
from catalog.migration import repartition
from catalog.models import Batch
from tests.factories import BATCHES, make_item


def _ids(store, batch_id):
    return [it.item_id for it in store.get_batch(batch_id).items]


def test_repartition_into_smaller_batches_preserves_order(store, registry, backend):
    store.put_batch(Batch("batch_1", items=[make_item(f"p{i}") for i in range(5)]))
    store.put_batch(Batch("batch_2", items=[make_item("p5"), make_item("p6")]))

    written = repartition(store, items_per_batch=3)

    assert written == ["batch_1", "batch_2", "batch_3"]
    assert registry.batch_ids() == written
    assert _ids(store, "batch_1") == ["p0", "p1", "p2"]
    assert _ids(store, "batch_2") == ["p3", "p4", "p5"]
    assert _ids(store, "batch_3") == ["p6"]
    assert store.get_batch("batch_3").aggregates.count == 1
    assert store.items_per_batch == 3


def test_repartition_into_fewer_batches_deletes_surplus(store, registry, backend):
    for n in range(1, 4):
        store.put_batch(Batch(f"batch_{n}", items=[make_item(f"p{n}")]))

    written = repartition(store, items_per_batch=10)

    assert written == ["batch_1"]
    assert _ids(store, "batch_1") == ["p1", "p2", "p3"]
    assert backend.keys(BATCHES) == ["batch_1"]
    assert registry.batch_ids() == ["batch_1"]


def test_repartition_merges_duplicates_keeping_last_copy(store):
    store.put_batch(Batch("batch_1", items=[make_item("dup", price=1), make_item("a")]))
    store.put_batch(Batch("batch_2", items=[make_item("dup", price=2)]))

    repartition(store, items_per_batch=10)

    batch = store.get_batch("batch_1")
    assert [it.item_id for it in batch.items] == ["dup", "a"]
    assert batch.find("dup").price == 2


def test_repartition_keeps_batch_extras_and_advances_revision(store):
    store.put_batch(Batch("batch_1", items=[make_item("a")], extra={"flashSaleConfig": {"isActive": True}}))
    before = store.get_batch("batch_1").revision

    repartition(store, items_per_batch=5)

    batch = store.get_batch("batch_1")
    assert batch.extra == {"flashSaleConfig": {"isActive": True}}
    assert batch.revision > before


def test_repartition_checks_sizes_before_writing(backend, registry):
    store = BatchStore(backend, registry, max_document_bytes=6000, retry_attempts=1)
    store.put_batch(Batch("batch_1", items=[make_item("a", description="x" * 2000)]))
    store.put_batch(Batch("batch_2", items=[make_item("b", description="y" * 2000)]))
    store.put_batch(Batch("batch_3", items=[make_item("c", description="z" * 2000)]))
    before = {k: backend.get(BATCHES, k) for k in backend.keys(BATCHES)}

    with pytest.raises(SizeExceeded):
        repartition(store, items_per_batch=3)

    assert {k: backend.get(BATCHES, k) for k in backend.keys(BATCHES)} == before
