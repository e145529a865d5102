import dataclasses
import itertools
import logging
import threading
from collections import deque
from typing import Dict, List, Optional

from broker.client import QueueClient, QueueReceiver, QueueSender
from broker.config import MAX_DELIVERY_COUNT
from broker.envelope import DeadLetteredMessage, Envelope
from broker.errors import BrokerError

logger = logging.getLogger(__name__)

MAX_DELIVERY_COUNT_EXCEEDED = "MaxDeliveryCountExceeded"


class InMemoryQueue:
    """Point-to-point queue with locks, redelivery counting and a DLQ.

    Abandoned messages go to the back of the queue, so a retried message can
    end up behind newer ones. Once a message has been delivered
    ``max_delivery_count`` times, abandoning it dead-letters it instead.
    """

    def __init__(self, name: str, max_delivery_count: int = MAX_DELIVERY_COUNT):
        self.name = name
        self.max_delivery_count = max_delivery_count
        self._cond = threading.Condition()
        self._ready = deque()
        self._locked: Dict[int, Envelope] = {}
        self._tokens = itertools.count(1)
        self.completed: List[Envelope] = []
        self.dead_letters: List[DeadLetteredMessage] = []

    def enqueue(self, envelope: Envelope) -> None:
        with self._cond:
            self._ready.append(dataclasses.replace(envelope, delivery_count=0, lock_token=None))
            self._cond.notify()

    def lock_next(self, timeout: float) -> Optional[Envelope]:
        with self._cond:
            if not self._cond.wait_for(lambda: self._ready, timeout=timeout):
                return None
            stored = self._ready.popleft()
            stored.delivery_count += 1
            token = next(self._tokens)
            self._locked[token] = stored
            return dataclasses.replace(stored, headers=dict(stored.headers), lock_token=token)

    def _unlock(self, envelope: Envelope) -> Envelope:
        try:
            return self._locked.pop(envelope.lock_token)
        except KeyError:
            raise BrokerError(f"Lock lost for message {envelope.message_id}") from None

    def complete(self, envelope: Envelope) -> None:
        with self._cond:
            self.completed.append(self._unlock(envelope))

    def abandon(self, envelope: Envelope) -> None:
        with self._cond:
            stored = self._unlock(envelope)
            if stored.delivery_count >= self.max_delivery_count:
                logger.warning("Message %s hit %s deliveries, dead-lettering",
                               stored.message_id, stored.delivery_count)
                self.dead_letters.append(DeadLetteredMessage(
                    stored, MAX_DELIVERY_COUNT_EXCEEDED,
                    f"Delivered {stored.delivery_count} times",
                ))
                return
            self._ready.append(stored)
            self._cond.notify()

    def dead_letter(self, envelope: Envelope, reason: str, description: str = "") -> None:
        with self._cond:
            self.dead_letters.append(DeadLetteredMessage(self._unlock(envelope), reason, description))

    def __len__(self):
        with self._cond:
            return len(self._ready)


class InMemorySender(QueueSender):
    def __init__(self, queue: InMemoryQueue):
        self.queue = queue

    def send(self, envelope: Envelope) -> None:
        self.queue.enqueue(envelope)


class InMemoryReceiver(QueueReceiver):
    def __init__(self, queue: InMemoryQueue):
        self.queue = queue
        self._held = set()

    def receive(self, timeout: float) -> Optional[Envelope]:
        envelope = self.queue.lock_next(timeout)
        if envelope is not None:
            self._held.add(envelope.lock_token)
        return envelope

    def complete(self, envelope: Envelope) -> None:
        self.queue.complete(envelope)
        self._held.discard(envelope.lock_token)

    def abandon(self, envelope: Envelope) -> None:
        self.queue.abandon(envelope)
        self._held.discard(envelope.lock_token)

    def dead_letter(self, envelope: Envelope, reason: str, description: str = "") -> None:
        self.queue.dead_letter(envelope, reason, description)
        self._held.discard(envelope.lock_token)

    def close(self) -> None:
        # Like a lock expiring: anything still held is handed back.
        for token in list(self._held):
            self.queue.abandon(Envelope(subject="", body=b"", lock_token=token))
        self._held.clear()


class InMemoryQueueClient(QueueClient):
    def __init__(self, max_delivery_count: int = MAX_DELIVERY_COUNT):
        super().__init__()
        self.max_delivery_count = max_delivery_count
        self._queues: Dict[str, InMemoryQueue] = {}
        self._lock = threading.Lock()

    def queue(self, name: str) -> InMemoryQueue:
        with self._lock:
            if name not in self._queues:
                self._queues[name] = InMemoryQueue(name, self.max_delivery_count)
            return self._queues[name]

    def _open_sender(self, queue: str) -> InMemorySender:
        return InMemorySender(self.queue(queue))

    def _open_receiver(self, queue: str) -> InMemoryReceiver:
        return InMemoryReceiver(self.queue(queue))
