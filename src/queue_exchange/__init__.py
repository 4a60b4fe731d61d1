"""Queue-based message exchange — producer, bounded processor, settlement."""

from __future__ import annotations

from .envelope import MessageEnvelope, OutboundMessage
from .error_sink import CompositeErrorSink, ErrorContext, IErrorSink, LoggingErrorSink
from .events import EventEnvelope, EventPublisher
from .exceptions import (
    ConfigurationError,
    HandlerFailure,
    InfrastructureError,
    InvalidStateError,
    MessagingConnectionError,
    MessagingError,
    MessagingSerializationError,
    PipelineFault,
    QueueExchangeError,
    SettlementError,
    SubmitError,
    SubmitErrorKind,
)
from .instrumentation import HookRegistry, get_hook_registry, set_hook_registry
from .ports import IQueueReceiver, IQueueSender
from .processor import (
    ProcessingOutcome,
    ProcessorOptions,
    ProcessorState,
    QueueProcessor,
)
from .producer import QueueProducer
from .records import Order
from .serialization import RecordSerializer
from .settings import BrokerSettings

__all__ = [
    "BrokerSettings",
    "CompositeErrorSink",
    "ConfigurationError",
    "ErrorContext",
    "EventEnvelope",
    "EventPublisher",
    "HandlerFailure",
    "HookRegistry",
    "IErrorSink",
    "IQueueReceiver",
    "IQueueSender",
    "InfrastructureError",
    "InvalidStateError",
    "LoggingErrorSink",
    "MessageEnvelope",
    "MessagingConnectionError",
    "MessagingError",
    "MessagingSerializationError",
    "Order",
    "OutboundMessage",
    "PipelineFault",
    "ProcessingOutcome",
    "ProcessorOptions",
    "ProcessorState",
    "QueueExchangeError",
    "QueueProcessor",
    "QueueProducer",
    "RecordSerializer",
    "SettlementError",
    "SubmitError",
    "SubmitErrorKind",
    "get_hook_registry",
    "set_hook_registry",
]
