"""order-notifications — reliable notifications for ``order.created`` events."""

from .envelope import EventEnvelope, InboundMessage
from .exceptions import (
    ConfigurationError,
    DeadLetterWriteError,
    EnvelopeValidationError,
    ErrorKind,
    InfrastructureError,
    NotificationServiceError,
)
from .processor import EventProcessor, Outcome, ProcessResult
from .retry import RetryPolicy

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DeadLetterWriteError",
    "EnvelopeValidationError",
    "ErrorKind",
    "EventEnvelope",
    "EventProcessor",
    "InboundMessage",
    "InfrastructureError",
    "NotificationServiceError",
    "Outcome",
    "ProcessResult",
    "RetryPolicy",
]
