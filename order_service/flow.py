import logging
from typing import List

from order_service.models import Order, OrderItemRequest, OrderPlacedEvent
from order_service.publisher import OrderEventPublisher
from order_service.store import OrderStore

logger = logging.getLogger(__name__)


class OrderSubmissionFlow:
    def __init__(self, store: OrderStore, publisher: OrderEventPublisher):
        self.store = store
        self.publisher = publisher

    def submit(self, customer_id: str, items: List[OrderItemRequest]) -> Order:
        """Save the order, then announce it.

        Raises ValueError for an order without items. Raises PublishFailure
        when the order was saved but its event could not be enqueued; the
        order is not rolled back.
        """
        if not items:
            raise ValueError("Order must contain at least one item.")

        order = self.store.insert_order(customer_id, items)
        # Publish only after the insert committed.
        self.publisher.publish(OrderPlacedEvent.from_order(order))
        return order
