class KarpenterOVHError(Exception):
    """Base exception for karpenter-ovhcloud."""

    pass


class NodeClaimNotFoundError(KarpenterOVHError):
    """Raised when a node claim, its pool or its node no longer exists.

    Callers should stop retrying the entity rather than escalate. Delete also
    raises it on success to signal that the instance is gone.
    """

    pass


class InsufficientCapacityError(KarpenterOVHError):
    """Raised when a request cannot be satisfied with the current configuration."""

    pass


class NodeClassNotFoundError(KarpenterOVHError):
    """Raised when the node class referenced by a node claim cannot be found."""

    pass


class NodeClassNotReadyError(KarpenterOVHError):
    """Raised when the referenced node class reports a non-ready condition."""

    pass


class ConfigurationError(KarpenterOVHError):
    """Raised for missing or malformed input. Never retried."""

    pass


class NodeWaitTimeoutError(KarpenterOVHError):
    """Raised when no ready node shows up in a pool before the deadline."""

    pass


class RetryExhaustedError(KarpenterOVHError):
    """Raised when a retryable remote call keeps failing past its attempt budget."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{operation} failed after {attempts} attempts: {last_error}")
