"""Exceptions for queue-exchange."""

from __future__ import annotations

from enum import Enum


class QueueExchangeError(Exception):
    """Root exception for the entire queue-exchange toolkit."""


class ConfigurationError(QueueExchangeError):
    """Raised when required broker settings are missing or invalid."""


class InvalidStateError(QueueExchangeError):
    """Raised on an illegal processor lifecycle transition.

    Usage: ``QueueProcessor.start()`` raises this when the processor is
    already running or still stopping.
    """


class SubmitErrorKind(str, Enum):
    """Why a producer submission failed."""

    SERIALIZATION_FAILED = "serialization_failed"
    BROKER_REJECTED = "broker_rejected"
    CLOSED = "closed"


class SubmitError(QueueExchangeError):
    """Raised when a record cannot be handed to the broker.

    The original failure, if any, is chained as ``__cause__``.
    """

    def __init__(self, kind: SubmitErrorKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or kind.value)


class HandlerFailure(QueueExchangeError):
    """A delivery could not be decoded or its handler raised.

    Never propagated out of the processor: it only carries the dead-letter
    reason and description.
    """

    def __init__(self, message_id: str, cause: BaseException) -> None:
        self.message_id = message_id
        self.cause = cause
        super().__init__(f"Message {message_id} failed: {cause}")

    @property
    def reason(self) -> str:
        return type(self.cause).__name__

    @property
    def description(self) -> str:
        return str(self.cause)


class InfrastructureError(QueueExchangeError):
    """Base class for all infrastructure-related errors."""


class MessagingError(InfrastructureError):
    """Base class for all messaging-related infrastructure errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class MessagingSerializationError(MessagingError):
    """Raised when message serialization or deserialization fails."""


class SettlementError(MessagingError):
    """Raised when a complete or dead-letter call fails.

    The message is left unsettled; the broker redelivers it once its lock
    expires.
    """

    def __init__(
        self,
        message: str,
        *,
        message_id: str | None = None,
        action: str | None = None,
    ) -> None:
        self.message_id = message_id
        self.action = action
        super().__init__(message)


class PipelineFault(MessagingError):
    """A broker fault not attributable to a single message (e.g. receive failure)."""
