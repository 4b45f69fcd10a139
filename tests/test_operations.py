import pytest

from catalog.batch_store import BatchStore
from catalog.errors import InvalidRecord, NotFound
from catalog.models import Batch
from catalog.operations import add_item, find_item, remove_item, update_item
from tests.factories import make_item


def test_add_item_to_empty_catalog_starts_batch_1(store, registry):
    batch_id = add_item(store, make_item("a"))

    assert batch_id == "batch_1"
    assert registry.batch_ids() == ["batch_1"]
    assert store.get_batch("batch_1").aggregates.count == 1


def test_add_item_appends_to_current_batch(store):
    store.put_batch(Batch("batch_1", items=[make_item("a", price=90000)]))

    add_item(store, make_item("b", price=40000))

    batch = store.get_batch("batch_1")
    assert [it.item_id for it in batch.items] == ["a", "b"]
    assert batch.aggregates.min_price == 40000


def test_add_item_rolls_over_when_batch_is_full(backend, registry):
    store = BatchStore(backend, registry, items_per_batch=2, retry_attempts=1)
    add_item(store, make_item("a"))
    add_item(store, make_item("b"))

    assert add_item(store, make_item("c")) == "batch_2"
    assert [it.item_id for it in store.get_batch("batch_2").items] == ["c"]


def test_add_item_rolls_over_when_document_would_be_too_large(backend, registry):
    store = BatchStore(backend, registry, max_document_bytes=3000, retry_attempts=1)
    add_item(store, make_item("a", description="x" * 900))

    assert add_item(store, make_item("b", description="y" * 900)) == "batch_1"
    assert add_item(store, make_item("c", description="z" * 900)) == "batch_2"
    assert store.get_batch("batch_1").aggregates.count == 2


def test_add_item_rejects_existing_id(store):
    add_item(store, make_item("a"))
    with pytest.raises(InvalidRecord):
        add_item(store, make_item("a"))


def test_update_item_rewrites_owning_batch(store):
    store.put_batch(Batch("batch_1", items=[make_item("a")]))
    store.put_batch(Batch("batch_2", items=[make_item("b", price=100000)]))

    updated = update_item(store, "b", is_flash_sale=True, flash_sale_price=75000)

    assert updated.flash_sale_price == 75000
    batch = store.get_batch("batch_2")
    assert batch.find("b").is_flash_sale is True
    assert batch.aggregates.has_flash_sale is True
    assert store.get_batch("batch_1").aggregates.has_flash_sale is False


def test_update_item_rejects_unknown_and_extra_fields(store):
    store.put_batch(Batch("batch_1", items=[make_item("a")]))
    with pytest.raises(InvalidRecord):
        update_item(store, "a", extra={"colour": "red"})
    with pytest.raises(InvalidRecord):
        update_item(store, "a", colour="red")


def test_remove_item(store):
    store.put_batch(Batch("batch_1", items=[make_item("a"), make_item("b")]))

    removed = remove_item(store, "a")

    assert removed.item_id == "a"
    batch = store.get_batch("batch_1")
    assert [it.item_id for it in batch.items] == ["b"]
    assert batch.aggregates.count == 1


def test_find_item_missing(store):
    store.put_batch(Batch("batch_1", items=[make_item("a")]))
    with pytest.raises(NotFound):
        find_item(store, "zzz")


def test_mutations_do_not_touch_index(store, index):
    add_item(store, make_item("a"))
    assert index.item_ids() == []
