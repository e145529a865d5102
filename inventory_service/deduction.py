"""Decide what to do with one OrderPlaced message.

``decide`` turns message bytes plus the current inventory into a verdict.
It touches the store only through a unit of work from the factory it is
given and never talks to the broker; the worker executes the verdict.

Error classification:

* JSON ``null`` body -> ``Complete``, nothing to do
* malformed body -> ``DeadLetter("DeserializationFailed")``, never retried
* unknown product -> item skipped with a warning, verdict unaffected
* storage failure -> ``Abandon``, nothing committed, broker redelivers
* anything else -> logged as a worker fault, ``Abandon``
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from pydantic import TypeAdapter

from common.errors import (DeserializationError, ReferenceNotFound, TransientStoreError,
                           WorkerFault)
from inventory_service.models import OrderPlacedMessage
from inventory_service.store import InventoryUnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Complete:
    pass


@dataclass(frozen=True)
class Abandon:
    reason: str = ""


@dataclass(frozen=True)
class DeadLetter:
    reason: str
    description: str = ""


Verdict = Union[Complete, Abandon, DeadLetter]

UowFactory = Callable[[], InventoryUnitOfWork]


_message_adapter = TypeAdapter(Optional[OrderPlacedMessage])


def parse_message(body: bytes) -> Optional[OrderPlacedMessage]:
    """Parse one message body; a JSON ``null`` gives None."""
    try:
        return _message_adapter.validate_json(body)
    except ValueError as exc:
        raise DeserializationError(str(exc)) from exc


def apply_deductions(message: OrderPlacedMessage, uow_factory: UowFactory) -> int:
    """Deduct every item's quantity inside one unit of work.

    Returns the number of products written. Stock is clamped at zero.
    """
    written = 0
    with uow_factory() as uow:
        for item in message.items:
            try:
                product = uow.get_product(item.product_id)
            except ReferenceNotFound:
                logger.warning("Product %s not found in inventory, skipping.", item.product_id)
                continue

            previous = product.units_in_stock
            updated = max(0, previous - item.quantity)
            uow.save_stock(product.product_id, updated)
            written += 1
            logger.info("Product %s (%s): stock %s -> %s (deducted %s)",
                        product.product_id, product.product_name, previous, updated, item.quantity)
        uow.commit()
    return written


def decide(body: bytes, uow_factory: UowFactory) -> Verdict:
    try:
        message = parse_message(body)
    except DeserializationError as exc:
        logger.error("Cannot deserialize OrderPlaced message, dead-lettering: %s", exc)
        return DeadLetter(DeserializationError.reason, str(exc))

    if message is None:
        logger.info("Received a null OrderPlaced message, nothing to do.")
        return Complete()

    if not message.items:
        logger.info("OrderId=%s has no items, nothing to deduct.", message.order_id)
        return Complete()

    try:
        apply_deductions(message, uow_factory)
    except TransientStoreError as exc:
        logger.error("Store error processing OrderId=%s, abandoning for retry: %s",
                     message.order_id, exc)
        return Abandon("TransientStoreError")
    except Exception as exc:
        fault = WorkerFault(f"Unexpected error processing OrderId={message.order_id}: {exc!r}")
        logger.exception("%s, abandoning for retry.", fault)
        return Abandon(type(fault).__name__)

    logger.info("OrderId=%s processed. Stock updated.", message.order_id)
    return Complete()
