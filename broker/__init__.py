from broker.client import QueueClient, QueueReceiver, QueueSender, create_client
from broker.envelope import DeadLetteredMessage, Envelope
from broker.errors import BrokerError

__all__ = [
    "BrokerError",
    "DeadLetteredMessage",
    "Envelope",
    "QueueClient",
    "QueueReceiver",
    "QueueSender",
    "create_client",
]
