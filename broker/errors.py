class BrokerError(Exception):
    """The queue could not be reached or rejected an operation."""
