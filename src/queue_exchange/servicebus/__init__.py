"""Azure Service Bus transport adapter (optional extra: queue-exchange[servicebus])."""

from __future__ import annotations

from .connection import ServiceBusConnectionManager
from .receiver import ServiceBusQueueReceiver
from .sender import ServiceBusQueueSender

__all__ = [
    "ServiceBusConnectionManager",
    "ServiceBusQueueReceiver",
    "ServiceBusQueueSender",
]
