import logging

from broker import BrokerError, Envelope, QueueClient
from broker.config import ORDER_PLACED_QUEUE, ORDER_PLACED_SUBJECT
from common.errors import PublishFailure
from order_service.models import OrderPlacedEvent

logger = logging.getLogger(__name__)


class OrderEventPublisher:
    """Enqueues OrderPlaced events on the order-placed queue.

    Only call ``publish`` once the order is committed. There is no retry
    here: if the broker refuses the message the order stays committed without
    an event and the caller gets a PublishFailure.
    """

    def __init__(self, client: QueueClient, queue_name: str = ORDER_PLACED_QUEUE):
        self.queue_name = queue_name
        self._sender = client.create_sender(queue_name)
        logger.info("OrderEventPublisher connected to queue '%s'", queue_name)

    def publish(self, event: OrderPlacedEvent) -> Envelope:
        envelope = Envelope(subject=ORDER_PLACED_SUBJECT, body=event.to_json())
        try:
            self._sender.send(envelope)
        except BrokerError as exc:
            logger.error("Publishing OrderPlaced for OrderId=%s failed: %s", event.order_id, exc)
            raise PublishFailure(event.order_id, exc) from exc
        logger.info("Published OrderPlaced event for OrderId=%s", event.order_id)
        return envelope
