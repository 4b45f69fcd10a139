"""
Shared fixtures: an in-memory document store wired into a BatchStore and
CatalogIndex the same way repair.py wires the configured backend.
"""
import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from catalog.batch_store import BatchStore
from catalog.consistency import ConsistencyJob
from catalog.index import CatalogIndex
from catalog.registry import BatchRegistry
from tests.factories import BATCHES, INDEX, FlakyStore


@pytest.fixture
def backend():
    return FlakyStore()


@pytest.fixture
def registry():
    return BatchRegistry(collection=BATCHES)


@pytest.fixture
def store(backend, registry):
    return BatchStore(backend, registry, retry_attempts=1, retry_wait_initial=0, retry_wait_max=0)


@pytest.fixture
def index(backend):
    return CatalogIndex(backend, INDEX)


@pytest.fixture
def job(store, index):
    return ConsistencyJob(store, index)
