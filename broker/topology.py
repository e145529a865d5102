import logging

from broker.config import (DEAD_LETTER_EXCHANGE, DEAD_LETTER_QUEUE, MAX_DELIVERY_COUNT,
                           ORDER_PLACED_QUEUE)

logger = logging.getLogger(__name__)


def queue_arguments(dead_letter_exchange: str = DEAD_LETTER_EXCHANGE,
                    max_delivery_count: int = MAX_DELIVERY_COUNT) -> dict:
    # Quorum queues dead-letter once the number of returned deliveries exceeds
    # x-delivery-limit, so a limit of N-1 allows N deliveries in total.
    return {
        "x-queue-type": "quorum",
        "x-dead-letter-exchange": dead_letter_exchange,
        "x-delivery-limit": max(max_delivery_count - 1, 0),
    }


def declare_topology(channel, queue: str = ORDER_PLACED_QUEUE,
                     dead_letter_exchange: str = DEAD_LETTER_EXCHANGE,
                     dead_letter_queue: str = DEAD_LETTER_QUEUE,
                     max_delivery_count: int = MAX_DELIVERY_COUNT) -> None:
    # Dead Letter Exchange & Queue
    channel.exchange_declare(exchange=dead_letter_exchange, exchange_type="fanout", durable=True)
    channel.queue_declare(queue=dead_letter_queue, durable=True)
    channel.queue_bind(queue=dead_letter_queue, exchange=dead_letter_exchange)
    logger.info("DLX '%s' -> DLQ '%s'", dead_letter_exchange, dead_letter_queue)

    # Work queue, published to through the default exchange
    channel.queue_declare(
        queue=queue, durable=True,
        arguments=queue_arguments(dead_letter_exchange, max_delivery_count),
    )
    logger.info("Queue '%s' (max deliveries %s)", queue, max_delivery_count)


def setup_infrastructure() -> None:
    from broker.rabbitmq import RabbitQueueClient

    client = RabbitQueueClient()
    connection = client.connect()
    try:
        declare_topology(connection.channel())
    finally:
        connection.close()
    logger.info("Infrastructure ready")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    setup_infrastructure()
