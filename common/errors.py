class PipelineError(Exception):
    """Base class for order/inventory pipeline failures."""


class DeserializationError(PipelineError):
    """Message body is not a valid OrderPlaced event. Never retried."""

    reason = "DeserializationFailed"


class ReferenceNotFound(PipelineError):
    """An order item points at a product inventory does not know about."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class TransientStoreError(PipelineError):
    """Storage failed in a way a later delivery attempt may not hit."""


class PublishFailure(PipelineError):
    """The order was committed but its event could not be enqueued."""

    def __init__(self, order_id: int, cause: Exception):
        super().__init__(f"Failed to publish OrderPlaced for OrderId={order_id}: {cause}")
        self.order_id = order_id


class WorkerFault(PipelineError):
    """Unclassified exception raised while handling a message."""
