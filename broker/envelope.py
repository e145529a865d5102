import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from broker.config import CONTENT_TYPE_JSON


@dataclass
class Envelope:
    """Wire unit moved through the queue.

    ``delivery_count`` is 1 on first delivery and grows by one on every
    redelivery after an abandon. ``lock_token`` is whatever the backend needs
    to settle this delivery (an AMQP delivery tag, for instance) and is unset
    on envelopes that have not been received yet.
    """

    subject: str
    body: bytes
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    content_type: str = CONTENT_TYPE_JSON
    delivery_count: int = 1
    headers: dict = field(default_factory=dict)
    lock_token: Optional[Any] = None


@dataclass(frozen=True)
class DeadLetteredMessage:
    envelope: Envelope
    reason: str
    description: str = ""
