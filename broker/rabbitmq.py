import logging
import threading
import time
from typing import Optional

import pika
import pika.exceptions

from broker.client import QueueClient, QueueReceiver, QueueSender
from broker.config import (CONNECT_DELAY_S, CONNECT_RETRIES, DEAD_LETTER_EXCHANGE, DEAD_LETTER_QUEUE,
                           MAX_DELIVERY_COUNT, RABBITMQ_HOST, RABBITMQ_PASSWORD, RABBITMQ_PORT,
                           RABBITMQ_USER, RABBITMQ_VHOST)
from broker.envelope import Envelope
from broker.errors import BrokerError
from broker.topology import declare_topology

logger = logging.getLogger(__name__)

DEAD_LETTER_REASON_HEADER = "x-dead-letter-reason"
DEAD_LETTER_DESCRIPTION_HEADER = "x-dead-letter-description"
DELIVERY_COUNT_HEADER = "x-delivery-count"


def _properties(envelope: Envelope, extra_headers: Optional[dict] = None) -> pika.BasicProperties:
    headers = dict(envelope.headers)
    if extra_headers:
        headers.update(extra_headers)
    return pika.BasicProperties(
        delivery_mode=2,
        content_type=envelope.content_type,
        message_id=envelope.message_id,
        type=envelope.subject,
        headers=headers or None,
    )


def _close_quietly(connection) -> None:
    if connection is not None and connection.is_open:
        try:
            connection.close()
        except pika.exceptions.AMQPError:
            logger.debug("Ignoring error while closing a broken connection", exc_info=True)


class RabbitSender(QueueSender):
    # FastAPI runs sync routes on a threadpool and pika channels are not
    # thread-safe, so publishes are serialized.
    def __init__(self, connect, queue: str):
        self._connect = connect
        self.queue = queue
        self.connection = None
        self.channel = None
        self._lock = threading.Lock()

    def _ensure_channel(self):
        if self.channel is not None and self.channel.is_open:
            # Idle between requests: service heartbeats, and notice a link
            # the broker already closed before publishing on it.
            try:
                self.connection.process_data_events(time_limit=0)
            except pika.exceptions.AMQPError:
                logger.warning("Connection for '%s' went stale, reconnecting", self.queue)
                self._drop()
        if self.channel is None or not self.channel.is_open:
            self.connection = self._connect()
            self.channel = self.connection.channel()
            self.channel.confirm_delivery()
        return self.channel

    def send(self, envelope: Envelope) -> None:
        with self._lock:
            try:
                self._ensure_channel().basic_publish(
                    exchange="",
                    routing_key=self.queue,
                    body=envelope.body,
                    properties=_properties(envelope),
                    mandatory=True,
                )
            except pika.exceptions.AMQPError as exc:
                self._drop()
                raise BrokerError(f"Publish to '{self.queue}' failed: {exc!r}") from exc

    def _drop(self):
        _close_quietly(self.connection)
        self.connection = None
        self.channel = None

    def close(self) -> None:
        with self._lock:
            self._drop()


class RabbitReceiver(QueueReceiver):
    """Single-consumer receiver with prefetch 1.

    With prefetch 1 the broker hands out the next message only after the
    current one is acked or nacked, which is what keeps deductions strictly
    sequential.
    """

    def __init__(self, connection, queue: str, dead_letter_queue: str = DEAD_LETTER_QUEUE):
        self.connection = connection
        self.queue = queue
        self.dead_letter_queue = dead_letter_queue
        self.channel = connection.channel()
        self.channel.basic_qos(prefetch_count=1)
        self.channel.confirm_delivery()
        self._messages = None

    def receive(self, timeout: float) -> Optional[Envelope]:
        try:
            if self._messages is None:
                self._messages = self.channel.consume(
                    self.queue, auto_ack=False, inactivity_timeout=timeout,
                )
            method, properties, body = next(self._messages)
        except pika.exceptions.AMQPError as exc:
            raise BrokerError(f"Receive from '{self.queue}' failed: {exc!r}") from exc

        if method is None:
            return None
        headers = dict(properties.headers or {})
        return Envelope(
            subject=properties.type or "",
            body=body,
            message_id=properties.message_id or "",
            content_type=properties.content_type or "",
            delivery_count=int(headers.get(DELIVERY_COUNT_HEADER, 0)) + 1,
            headers=headers,
            lock_token=method.delivery_tag,
        )

    def complete(self, envelope: Envelope) -> None:
        self._settle(self.channel.basic_ack, envelope.lock_token)

    def abandon(self, envelope: Envelope) -> None:
        self._settle(self.channel.basic_nack, envelope.lock_token, requeue=True)

    def dead_letter(self, envelope: Envelope, reason: str, description: str = "") -> None:
        # Republish with the reason attached, then ack. A plain reject would
        # route through the DLX but lose the reason.
        try:
            self.channel.basic_publish(
                exchange="",
                routing_key=self.dead_letter_queue,
                body=envelope.body,
                properties=_properties(envelope, {
                    DEAD_LETTER_REASON_HEADER: reason,
                    DEAD_LETTER_DESCRIPTION_HEADER: description,
                }),
            )
        except pika.exceptions.AMQPError as exc:
            raise BrokerError(f"Dead-letter of {envelope.message_id} failed: {exc!r}") from exc
        self._settle(self.channel.basic_ack, envelope.lock_token)

    def _settle(self, op, delivery_tag, **kwargs):
        try:
            op(delivery_tag=delivery_tag, **kwargs)
        except pika.exceptions.AMQPError as exc:
            raise BrokerError(f"Settling delivery {delivery_tag} failed: {exc!r}") from exc

    def close(self) -> None:
        try:
            if self.channel.is_open:
                # Unacked prefetched messages go back to the queue.
                self.channel.cancel()
            if self.connection.is_open:
                self.connection.close()
        except pika.exceptions.AMQPError:
            logger.warning("Error while closing receiver on '%s'", self.queue, exc_info=True)


class RabbitQueueClient(QueueClient):
    def __init__(self, host: str = RABBITMQ_HOST, port: int = RABBITMQ_PORT,
                 user: str = RABBITMQ_USER, password: str = RABBITMQ_PASSWORD,
                 vhost: str = RABBITMQ_VHOST, retries: int = CONNECT_RETRIES,
                 delay: float = CONNECT_DELAY_S, declare: bool = True,
                 max_delivery_count: int = MAX_DELIVERY_COUNT,
                 dead_letter_exchange: str = DEAD_LETTER_EXCHANGE,
                 dead_letter_queue: str = DEAD_LETTER_QUEUE):
        super().__init__()
        credentials = pika.PlainCredentials(user, password)
        self.params = pika.ConnectionParameters(
            host=host, port=port,
            virtual_host=vhost, credentials=credentials,
        )
        self.retries = retries
        self.delay = delay
        self.declare = declare
        self.max_delivery_count = max_delivery_count
        self.dead_letter_exchange = dead_letter_exchange
        self.dead_letter_queue = dead_letter_queue
        self._declared = set()

    def connect(self) -> pika.BlockingConnection:
        for attempt in range(1, self.retries + 1):
            try:
                return pika.BlockingConnection(self.params)
            except pika.exceptions.AMQPConnectionError:
                logger.warning("RabbitMQ not ready, retry %s/%s", attempt, self.retries)
                time.sleep(self.delay)
        raise BrokerError("Cannot connect to RabbitMQ")

    def _declare(self, connection, queue: str) -> None:
        if not self.declare or queue in self._declared:
            return
        try:
            channel = connection.channel()
            try:
                declare_topology(
                    channel, queue=queue,
                    dead_letter_exchange=self.dead_letter_exchange,
                    dead_letter_queue=self.dead_letter_queue,
                    max_delivery_count=self.max_delivery_count,
                )
            finally:
                if channel.is_open:
                    channel.close()
        except pika.exceptions.AMQPError as exc:
            raise BrokerError(f"Declaring '{queue}' failed: {exc!r}") from exc
        self._declared.add(queue)

    def _open_sender(self, queue: str) -> RabbitSender:
        def connect():
            connection = self.connect()
            try:
                self._declare(connection, queue)
            except BrokerError:
                _close_quietly(connection)
                raise
            return connection

        return RabbitSender(connect, queue)

    def _open_receiver(self, queue: str) -> RabbitReceiver:
        connection = self.connect()
        try:
            self._declare(connection, queue)
            return RabbitReceiver(connection, queue, self.dead_letter_queue)
        except BrokerError:
            _close_quietly(connection)
            raise
        except pika.exceptions.AMQPError as exc:
            _close_quietly(connection)
            raise BrokerError(f"Opening receiver on '{queue}' failed: {exc!r}") from exc
