"""Tests for the per-message decision procedure."""
import json
import logging
from decimal import Decimal

import pytest

from conftest import SpyFactory
from inventory_service.deduction import Abandon, Complete, DeadLetter, decide, parse_message
from common.errors import DeserializationError


def _body(order_id, items, **extra) -> bytes:
    payload = {
        "orderId": order_id,
        "customerId": "ALFKI",
        "placedAt": "2024-05-01T10:00:00Z",
        "items": items,
    }
    payload.update(extra)
    return json.dumps(payload).encode("utf-8")


def _stock(inventory, product_id):
    return inventory.get_product(product_id).units_in_stock


def test_deducts_quantity(inventory, spy_factory):
    verdict = decide(_body(101, [{"productId": 1, "quantity": 5, "unitPrice": 18.0}]), spy_factory)

    assert verdict == Complete()
    assert _stock(inventory, 1) == 5


def test_deduction_clamps_at_zero(inventory, spy_factory):
    inventory.upsert_product(1, "Chai", 5)

    verdict = decide(_body(102, [{"productId": 1, "quantity": 50, "unitPrice": 18.0}]), spy_factory)

    assert verdict == Complete()
    assert _stock(inventory, 1) == 0


@pytest.mark.parametrize("body", [
    b"{not valid json",
    b"",
    b"[1, 2, 3]",
    b'{"customerId": "ALFKI", "items": []}',
    b'{"orderId": "abc", "items": []}',
    b'{"orderId": 1, "items": [{"productId": "x", "quantity": 1}]}',
    b'{"orderId": 1, "items": [{"productId": 1, "quantity": -4}]}',
    b'{"orderId": 1, "items": {"productId": 1}}',
    b"\xff\xfe\x00garbage",
])
def test_malformed_body_is_dead_lettered(body, inventory, spy_factory):
    verdict = decide(body, spy_factory)

    assert isinstance(verdict, DeadLetter)
    assert verdict.reason == "DeserializationFailed"
    assert verdict.description
    assert spy_factory.created == []
    assert _stock(inventory, 1) == 10


def test_empty_items_complete_without_touching_store(inventory, spy_factory):
    verdict = decide(_body(103, []), spy_factory)

    assert verdict == Complete()
    assert spy_factory.created == []
    assert spy_factory.writes == []


def test_null_body_completes_as_no_op(inventory, spy_factory):
    verdict = decide(b"null", spy_factory)

    assert verdict == Complete()
    assert spy_factory.created == []
    assert _stock(inventory, 1) == 10


def test_property_names_match_case_insensitively(inventory, spy_factory):
    body = b'{"OrderId": 101, "Items": [{"ProductId": 1, "Quantity": 5, "UnitPrice": 18.0}]}'

    verdict = decide(body, spy_factory)

    assert verdict == Complete()
    assert _stock(inventory, 1) == 5


def test_missing_items_field_treated_as_empty(spy_factory):
    verdict = decide(b'{"orderId": 103}', spy_factory)

    assert verdict == Complete()
    assert spy_factory.created == []


def test_unknown_product_is_skipped_with_warning(inventory, spy_factory, caplog):
    with caplog.at_level(logging.WARNING, logger="inventory_service.deduction"):
        verdict = decide(_body(104, [{"productId": 999, "quantity": 3, "unitPrice": 1}]), spy_factory)

    assert verdict == Complete()
    assert spy_factory.writes == []
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "999" in warnings[0].getMessage()


def test_unknown_product_does_not_block_other_items(inventory, spy_factory):
    items = [
        {"productId": 1, "quantity": 2, "unitPrice": 18.0},
        {"productId": 999, "quantity": 3, "unitPrice": 1.0},
        {"productId": 2, "quantity": 7, "unitPrice": 19.0},
    ]

    verdict = decide(_body(105, items), spy_factory)

    assert verdict == Complete()
    assert _stock(inventory, 1) == 8
    assert _stock(inventory, 2) == 13
    assert spy_factory.writes == [(1, 8), (2, 13)]


def test_every_product_decreases_by_its_quantity(inventory, spy_factory):
    inventory.upsert_product(3, "Aniseed Syrup", 13)
    items = [
        {"productId": 1, "quantity": 10, "unitPrice": 18.0},
        {"productId": 2, "quantity": 1, "unitPrice": 19.0},
        {"productId": 3, "quantity": 4, "unitPrice": 10.0},
    ]

    verdict = decide(_body(106, items), spy_factory)

    assert verdict == Complete()
    assert [_stock(inventory, p) for p in (1, 2, 3)] == [0, 19, 9]


def test_repeated_product_lines_deduct_cumulatively(inventory, spy_factory):
    items = [
        {"productId": 1, "quantity": 4, "unitPrice": 18.0},
        {"productId": 1, "quantity": 4, "unitPrice": 18.0},
    ]

    assert decide(_body(107, items), spy_factory) == Complete()
    assert _stock(inventory, 1) == 2


def test_store_failure_abandons_without_partial_writes(inventory):
    spy = SpyFactory(inventory.unit_of_work_factory(), fail_on_save=True)
    items = [
        {"productId": 1, "quantity": 1, "unitPrice": 18.0},
        {"productId": 2, "quantity": 1, "unitPrice": 19.0},
    ]

    verdict = decide(_body(108, items), spy)

    assert verdict == Abandon("TransientStoreError")
    assert spy.writes == [(1, 9)]
    assert _stock(inventory, 1) == 10
    assert _stock(inventory, 2) == 20


def test_unreachable_database_abandons(tmp_path):
    from inventory_service.store import UnitOfWorkFactory

    # A directory is not a database file.
    factory = UnitOfWorkFactory(str(tmp_path))

    verdict = decide(_body(109, [{"productId": 1, "quantity": 1, "unitPrice": 1}]), factory)

    assert verdict == Abandon("TransientStoreError")


def test_unexpected_fault_is_abandoned_not_raised(inventory):
    def broken_factory():
        raise RuntimeError("boom")

    verdict = decide(_body(110, [{"productId": 1, "quantity": 1, "unitPrice": 1}]), broken_factory)

    assert verdict == Abandon("WorkerFault")
    assert _stock(inventory, 1) == 10


def test_unit_of_work_created_per_message_and_released(inventory, spy_factory):
    body = _body(111, [{"productId": 1, "quantity": 1, "unitPrice": 18.0}])

    decide(body, spy_factory)
    decide(body, spy_factory)

    assert len(spy_factory.created) == 2
    assert spy_factory.created[0] is not spy_factory.created[1]
    assert all(uow.conn is None for uow in spy_factory.created)


def test_redelivered_message_deducts_again(inventory, spy_factory):
    # No dedup key travels with the event: a redelivery is applied again.
    body = _body(112, [{"productId": 1, "quantity": 3, "unitPrice": 18.0}])

    decide(body, spy_factory)
    decide(body, spy_factory)

    assert _stock(inventory, 1) == 4


def test_parse_message_accepts_snake_case_and_decimal_price():
    message = parse_message(
        b'{"order_id": 7, "customer_id": "BONAP", "items": '
        b'[{"product_id": 3, "quantity": 2, "unit_price": 10.25}]}'
    )

    assert message.order_id == 7
    assert message.items[0].unit_price == Decimal("10.25")


def test_parse_message_raises_deserialization_error():
    with pytest.raises(DeserializationError):
        parse_message(b"{not valid json")
