"""Pytest fixtures: temp sqlite databases and the in-memory queue."""
import logging

import pytest

from broker.memory import InMemoryQueueClient
from common.errors import TransientStoreError
from inventory_service.store import InventoryStore, UnitOfWorkFactory
from order_service.store import OrderStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

QUEUE = "order-placed"


@pytest.fixture
def queue_client() -> InMemoryQueueClient:
    client = InMemoryQueueClient(max_delivery_count=3)
    yield client
    client.close()


@pytest.fixture
def inventory(tmp_path) -> InventoryStore:
    store = InventoryStore(str(tmp_path / "inventory.db"))
    store.init()
    store.upsert_product(1, "Chai", 10)
    store.upsert_product(2, "Chang", 20)
    return store


@pytest.fixture
def orders(tmp_path) -> OrderStore:
    store = OrderStore(str(tmp_path / "orders.db"))
    store.init()
    return store


class SpyFactory:
    """Wraps a UnitOfWorkFactory and records what each unit of work did."""

    def __init__(self, inner: UnitOfWorkFactory, fail_on_save: bool = False):
        self.inner = inner
        self.fail_on_save = fail_on_save
        self.created = []
        self.writes = []

    def __call__(self):
        uow = self.inner()
        spy = self

        original_save = uow.save_stock

        def save_stock(product_id, units_in_stock):
            spy.writes.append((product_id, units_in_stock))
            original_save(product_id, units_in_stock)
            if spy.fail_on_save:
                raise TransientStoreError("disk I/O error")

        uow.save_stock = save_stock
        self.created.append(uow)
        return uow


@pytest.fixture
def spy_factory(inventory) -> SpyFactory:
    return SpyFactory(inventory.unit_of_work_factory())
