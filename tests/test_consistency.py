from catalog.models import Batch, CatalogIndexEntry, Item
from tests.factories import BATCHES, INDEX, make_item, raw_product


def _seed(store, batch_id, items):
    return store.put_batch(Batch(batch_id, items=items))


def _index_snapshot(backend):
    return {key: backend.get(INDEX, key) for key in backend.keys(INDEX)}


def _batch_snapshot(backend):
    return {key: backend.get(BATCHES, key) for key in backend.keys(BATCHES)}


def test_index_completeness(store, index, job):
    _seed(store, "batch_1", [make_item("a"), make_item("b", is_featured=True)])
    _seed(store, "batch_2", [make_item("c", is_flash_sale=True, flash_sale_price=50000)])

    report = job.run()

    assert report.batches_scanned == 2
    assert report.items_indexed == 3
    assert report.entries_written == 3
    for batch_id in ("batch_1", "batch_2"):
        for item in store.get_batch(batch_id).items:
            assert index.lookup(item.item_id) == CatalogIndexEntry.project(item, batch_id)


def test_aggregate_correctness(store, backend, job):
    backend.put(
        BATCHES,
        "batch_1",
        {
            "products": [
                raw_product("a", price=80000),
                raw_product("b", price=60000, isFlashSale=True),
            ],
            "totalProducts": 9,
            "minPrice": 0,
            "maxPrice": 0,
            "hasFlashSale": False,
            "hasFeatured": True,
        },
    )
    store.registry.register("batch_1")

    report = job.run()

    batch = store.get_batch("batch_1")
    assert report.aggregates_corrected == ["batch_1"]
    assert batch.aggregates.count == len(batch.items) == 2
    assert batch.aggregates.min_price == min(it.price for it in batch.items)
    assert batch.aggregates.max_price == max(it.price for it in batch.items)
    assert batch.aggregates.has_flash_sale == any(it.is_flash_sale for it in batch.items)
    assert batch.aggregates.has_featured is False


def test_second_run_changes_nothing(store, backend, job):
    backend.put(
        BATCHES,
        "batch_1",
        {"products": [raw_product("a"), {"id": "b", "name": "Tunik", "featured": 1}], "totalProducts": 7},
    )
    store.registry.register("batch_1")
    backend.put(INDEX, "ghost", {"id": "ghost", "name": "Removed"})

    first = job.run()
    assert first.has_changes

    index_after_first = _index_snapshot(backend)
    batches_after_first = _batch_snapshot(backend)

    second = job.run()

    assert not second.has_changes
    assert second.aggregates_corrected == []
    assert second.entries_written == 0
    assert second.entries_removed == 0
    assert _index_snapshot(backend) == index_after_first
    assert _batch_snapshot(backend) == batches_after_first


def test_drift_repair_scenario(store, backend, index, job):
    items = [make_item("a"), make_item("b"), make_item("c")]
    backend.put(
        BATCHES,
        "batch_1",
        {"products": [it.to_record() for it in items], "totalProducts": 5},
    )
    store.registry.register("batch_1")
    for item in items[:2]:
        index.upsert(CatalogIndexEntry.project(item, "batch_1"))

    report = job.run()

    assert store.get_batch("batch_1").aggregates.count == 3
    assert report.aggregates_corrected == ["batch_1"]
    assert report.entries_written == 1
    for item in items:
        assert index.lookup(item.item_id) == CatalogIndexEntry.project(item, "batch_1")


def test_partial_failure_isolation(store, backend, index, job):
    backend.put(BATCHES, "batch_1", {"products": [raw_product("a"), raw_product("b")], "totalProducts": 4})
    _seed(store, "batch_2", [make_item("c")])
    store.registry.register("batch_1")
    backend.fail_get("batch_2")

    report = job.run()

    assert report.batches_scanned == 1
    assert report.aggregates_corrected == ["batch_1"]
    assert len(report.errors) == 1
    assert report.errors[0]["batchId"] == "batch_2"
    assert "outage" in report.errors[0]["message"]
    backend.failing_gets.clear()
    assert store.get_batch("batch_1").aggregates.count == 2
    assert index.lookup("a").batch_id == "batch_1"
    assert index.lookup("b").batch_id == "batch_1"


def test_unreadable_batch_does_not_prune_its_index_entries(store, backend, index, job):
    _seed(store, "batch_1", [make_item("a")])
    _seed(store, "batch_2", [make_item("c")])
    job.run()

    backend.fail_get("batch_2")
    report = job.run()

    assert report.entries_removed == 0
    assert index.lookup("c").batch_id == "batch_2"


def test_invalid_batch_is_reported_and_skipped(store, backend, job):
    backend.put(BATCHES, "batch_1", {"products": [{"name": "missing id"}]})
    store.registry.register("batch_1")
    _seed(store, "batch_2", [make_item("c")])

    report = job.run()

    assert [e["batchId"] for e in report.errors] == ["batch_1"]
    assert report.batches_scanned == 1
    assert report.items_indexed == 1


def test_out_of_range_price_is_normalized_not_fatal(store, backend, index, job):
    _seed(store, "batch_1", [make_item("a")])
    backend.put(BATCHES, "batch_2", {"products": [raw_product("b", price="1e999")]})
    store.registry.register("batch_2")

    report = job.run()

    assert report.errors == []
    assert report.items_normalized == ["b"]
    assert backend.get(BATCHES, "batch_2")["products"][0]["price"] == 0
    assert index.lookup("b").batch_id == "batch_2"


def test_missing_registered_batch_is_reported(store, job):
    store.registry.register("batch_3")
    report = job.run()
    assert report.errors == [{"batchId": "batch_3", "message": "batch batch_3 not found in productBatches"}]


def test_duplicate_item_last_batch_scanned_wins(store, index, job):
    _seed(store, "batch_1", [make_item("dup", price=100000)])
    _seed(store, "batch_2", [make_item("dup", price=120000), make_item("x")])

    report = job.run()

    entry = index.lookup("dup")
    assert entry.batch_id == "batch_2"
    assert entry.price == 120000
    assert report.duplicates == [{"itemId": "dup", "batchIds": ["batch_1", "batch_2"], "winner": "batch_2"}]
    assert report.items_indexed == 2
    # Both copies stay where they are; only a migration moves items
    assert store.get_batch("batch_1").find("dup") is not None


def test_orphan_index_entries_are_removed(store, index, job):
    _seed(store, "batch_1", [make_item("a")])
    index.upsert(CatalogIndexEntry.project(make_item("deleted"), "batch_1"))

    report = job.run()

    assert report.entries_removed == 1
    assert index.get("deleted") is None


def test_orphans_kept_when_pruning_disabled(store, index, job):
    _seed(store, "batch_1", [make_item("a")])
    index.upsert(CatalogIndexEntry.project(make_item("deleted"), "batch_1"))

    report = job.run(prune_orphans=False)

    assert report.entries_removed == 0
    assert index.get("deleted") is not None


def test_stale_index_fields_are_overwritten(store, index, job):
    _seed(store, "batch_1", [make_item("a", price=150000, stock=2)])
    job.run()

    batch = store.get_batch("batch_1")
    batch.items[0].stock = 0
    store.put_batch(batch)
    assert index.lookup("a").stock == 2

    report = job.run()

    assert report.entries_written == 1
    assert index.lookup("a").stock == 0


def test_legacy_flags_are_normalized(store, backend, index, job):
    backend.put(
        BATCHES,
        "batch_1",
        {"products": [{"id": "a", "name": "Gamis", "featured": True, "price": 90000}]},
    )
    store.registry.register("batch_1")

    report = job.run()

    stored = backend.get(BATCHES, "batch_1")["products"][0]
    assert report.items_normalized == ["a"]
    assert stored["isFeatured"] is True
    assert "featured" not in stored
    assert index.lookup("a").is_featured is True
    assert Item.from_record(stored).to_record() == stored


def test_dry_run_writes_nothing(store, backend, job):
    backend.put(BATCHES, "batch_1", {"products": [raw_product("a")], "totalProducts": 3})
    store.registry.register("batch_1")
    before = _batch_snapshot(backend)

    report = job.run(dry_run=True)

    assert report.dry_run
    assert report.aggregates_corrected == ["batch_1"]
    assert report.entries_written == 1
    assert _batch_snapshot(backend) == before
    assert backend.keys(INDEX) == []


def test_report_to_dict_uses_wire_names(store, job):
    _seed(store, "batch_1", [make_item("a")])
    data = job.run().to_dict()

    assert data["batchesScanned"] == 1
    assert data["itemsIndexed"] == 1
    assert data["aggregatesCorrected"] == []
    assert data["errors"] == []
