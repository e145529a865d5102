import logging
import threading

from broker import BrokerError, Envelope, QueueClient, QueueReceiver
from broker.config import ORDER_PLACED_QUEUE, RECEIVE_TIMEOUT_S
from inventory_service.config import RECONNECT_DELAY_S, SHUTDOWN_TIMEOUT_S
from inventory_service.deduction import Complete, DeadLetter, UowFactory, Verdict, decide

logger = logging.getLogger(__name__)


class StockDeductionConsumer:
    """Background worker draining the order-placed queue.

    Runs on one dedicated thread for the lifetime of the inventory process
    and handles one message at a time: the next message is not received
    until the current one has been completed, abandoned or dead-lettered.
    It owns a unit-of-work factory, never a database connection.
    """

    def __init__(self, client: QueueClient, uow_factory: UowFactory,
                 queue_name: str = ORDER_PLACED_QUEUE,
                 receive_timeout: float = RECEIVE_TIMEOUT_S,
                 reconnect_delay: float = RECONNECT_DELAY_S):
        self.client = client
        self.uow_factory = uow_factory
        self.queue_name = queue_name
        self.receive_timeout = receive_timeout
        self.reconnect_delay = reconnect_delay
        self._stopping = threading.Event()
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self.run, name="stock-deduction-consumer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = SHUTDOWN_TIMEOUT_S) -> None:
        """Stop receiving and wait for the in-flight message to settle."""
        logger.info("StockDeductionConsumer stopping...")
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("StockDeductionConsumer did not stop within %ss", timeout)

    def run(self) -> None:
        logger.info("StockDeductionConsumer subscribed to queue '%s'", self.queue_name)
        while not self._stopping.is_set():
            try:
                receiver = self.client.create_receiver(self.queue_name)
            except BrokerError as exc:
                logger.error("Cannot open receiver on '%s', retrying in %ss: %s",
                             self.queue_name, self.reconnect_delay, exc)
                self._stopping.wait(self.reconnect_delay)
                continue
            except Exception:
                logger.exception("Unexpected error opening receiver on '%s', retrying in %ss",
                                 self.queue_name, self.reconnect_delay)
                self._stopping.wait(self.reconnect_delay)
                continue

            try:
                self._drain(receiver)
            except BrokerError as exc:
                # Whatever was in flight is unacked and will be redelivered.
                logger.error("Broker error on '%s', reconnecting in %ss: %s",
                             self.queue_name, self.reconnect_delay, exc)
                self._stopping.wait(self.reconnect_delay)
            except Exception:
                logger.exception("Worker fault on '%s', reopening receiver in %ss",
                                 self.queue_name, self.reconnect_delay)
                self._stopping.wait(self.reconnect_delay)
            finally:
                self.client.release(receiver)
        logger.info("StockDeductionConsumer stopped.")

    def _drain(self, receiver: QueueReceiver) -> None:
        while not self._stopping.is_set():
            envelope = receiver.receive(self.receive_timeout)
            if envelope is None:
                continue
            self.handle(receiver, envelope)

    def handle(self, receiver: QueueReceiver, envelope: Envelope) -> Verdict:
        logger.info("Received message %s (delivery %s) from queue: %s",
                    envelope.message_id, envelope.delivery_count,
                    envelope.body.decode("utf-8", errors="replace"))

        verdict = decide(envelope.body, self.uow_factory)

        if isinstance(verdict, Complete):
            receiver.complete(envelope)
        elif isinstance(verdict, DeadLetter):
            receiver.dead_letter(envelope, verdict.reason, verdict.description)
        else:
            receiver.abandon(envelope)
            logger.warning("Message %s abandoned (%s) on delivery %s",
                           envelope.message_id, verdict.reason, envelope.delivery_count)
        return verdict
