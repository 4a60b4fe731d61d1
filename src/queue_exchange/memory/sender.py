"""InMemoryQueueSender — IQueueSender backed by an InMemoryQueueBroker."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import MessagingConnectionError
from ..ports import IQueueSender

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..envelope import OutboundMessage
    from .broker import InMemoryQueueBroker


class InMemoryQueueSender(IQueueSender):
    """Enqueues on a shared broker; use the same broker for the receiver."""

    def __init__(self, broker: InMemoryQueueBroker) -> None:
        self._broker = broker
        self._closed = False
        self.sent: list[OutboundMessage] = []

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_messages(self, messages: Sequence[OutboundMessage]) -> None:
        if self._closed:
            raise MessagingConnectionError("Sender is closed")
        self._broker.enqueue(messages)
        self.sent.extend(messages)

    async def close(self) -> None:
        self._closed = True
