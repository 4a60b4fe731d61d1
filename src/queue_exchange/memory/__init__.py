"""In-memory broker adapters for testing."""

from __future__ import annotations

from .broker import InMemoryQueueBroker
from .receiver import InMemoryQueueReceiver
from .sender import InMemoryQueueSender

__all__ = [
    "InMemoryQueueBroker",
    "InMemoryQueueReceiver",
    "InMemoryQueueSender",
]
