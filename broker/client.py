from abc import ABC, abstractmethod
from typing import Optional

from broker.config import QUEUE_BACKEND
from broker.envelope import Envelope


class QueueSender(ABC):
    @abstractmethod
    def send(self, envelope: Envelope) -> None:
        """Durably enqueue one envelope. Raises BrokerError on failure."""

    def close(self) -> None:
        pass


class QueueReceiver(ABC):
    """Receive-with-lock side of a point-to-point queue.

    Every envelope returned by ``receive`` stays locked to this receiver
    until exactly one of ``complete``, ``abandon`` or ``dead_letter`` is
    called for it.
    """

    @abstractmethod
    def receive(self, timeout: float) -> Optional[Envelope]:
        """Wait up to ``timeout`` seconds for the next message, or return None."""

    @abstractmethod
    def complete(self, envelope: Envelope) -> None:
        ...

    @abstractmethod
    def abandon(self, envelope: Envelope) -> None:
        ...

    @abstractmethod
    def dead_letter(self, envelope: Envelope, reason: str, description: str = "") -> None:
        ...

    def close(self) -> None:
        pass


class QueueClient(ABC):
    """Process-wide handle on the broker.

    Built once at startup, handed by reference to whoever needs a sender or
    receiver, and closed at shutdown. Closing the client closes every link it
    created.
    """

    def __init__(self):
        self._links = []

    @abstractmethod
    def _open_sender(self, queue: str) -> QueueSender:
        ...

    @abstractmethod
    def _open_receiver(self, queue: str) -> QueueReceiver:
        ...

    def create_sender(self, queue: str) -> QueueSender:
        sender = self._open_sender(queue)
        self._links.append(sender)
        return sender

    def create_receiver(self, queue: str) -> QueueReceiver:
        receiver = self._open_receiver(queue)
        self._links.append(receiver)
        return receiver

    def release(self, link) -> None:
        """Close one link early, e.g. a receiver whose connection dropped."""
        if link in self._links:
            self._links.remove(link)
        link.close()

    def close(self) -> None:
        while self._links:
            self._links.pop().close()


def create_client(backend: str = QUEUE_BACKEND) -> QueueClient:
    if backend == "rabbitmq":
        from broker.rabbitmq import RabbitQueueClient
        return RabbitQueueClient()
    if backend == "memory":
        from broker.memory import InMemoryQueueClient
        return InMemoryQueueClient()
    raise ValueError(f"Unknown QUEUE_BACKEND: {backend!r}")
