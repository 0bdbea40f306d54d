"""Exception hierarchy for the order-notifications service."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification attached to failed attempts and outcome log entries."""

    VALIDATION = "validation"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    TIMEOUT = "timeout"
    INFRASTRUCTURE = "infrastructure"


class NotificationServiceError(Exception):
    """Root exception for the entire service."""


class ConfigurationError(NotificationServiceError):
    """Raised when required settings are absent or malformed at startup.

    Carries structured errors: ``{setting: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class EnvelopeValidationError(NotificationServiceError):
    """Raised when an inbound message cannot be decoded into an EventEnvelope.

    Permanent: a malformed message can never succeed, so it is rejected and
    never retried.
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, reason: str, event_id: str | None = None) -> None:
        self.reason = reason
        self.event_id = event_id
        super().__init__(reason)


class ChannelError(NotificationServiceError):
    """Base class for failures reported by a notification channel."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} delivery failed: {reason}")


class TransientDispatchError(ChannelError):
    """Channel temporarily unavailable; the attempt may be retried."""


class DispatchTimeoutError(TransientDispatchError):
    """Dispatch did not finish within the configured timeout."""

    kind = ErrorKind.TIMEOUT


class PermanentDispatchError(ChannelError):
    """Channel rejected the notification for good (e.g. invalid recipient)."""

    kind = ErrorKind.PERMANENT


class InfrastructureError(NotificationServiceError):
    """Base class for failures of the service's own backing stores and transport.

    Retried at the loop level; never consumes a notification attempt.
    """

    kind = ErrorKind.INFRASTRUCTURE


class DedupStoreUnavailableError(InfrastructureError):
    """Raised when the dedup store cannot be read or written."""


class LedgerUnavailableError(InfrastructureError):
    """Raised when the retry ledger cannot be read or written."""


class MessageSourceError(InfrastructureError):
    """Raised when the broker connection fails."""


class DeadLetterWriteError(InfrastructureError):
    """Raised when a dead-letter record could not be durably written.

    Fatal to the message being processed: it stays uncommitted so that it is
    redelivered rather than lost.
    """

    def __init__(self, message: str, event_id: str | None = None) -> None:
        self.event_id = event_id
        super().__init__(message)


class InvalidStateTransitionError(NotificationServiceError):
    """Raised when the consumption loop is driven through an illegal transition."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition from {current} to {requested}")
