"""InMemoryQueueReceiver — IQueueReceiver backed by an InMemoryQueueBroker."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import MessagingConnectionError
from ..ports import IQueueReceiver

if TYPE_CHECKING:
    from ..envelope import MessageEnvelope
    from .broker import InMemoryQueueBroker


class InMemoryQueueReceiver(IQueueReceiver):
    """Pulls from a shared broker. Must be opened before receiving."""

    def __init__(self, broker: InMemoryQueueBroker) -> None:
        self._broker = broker
        self._open = False
        self.open_count = 0
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_open(self) -> None:
        if not self._open:
            raise MessagingConnectionError("Receiver is not open; call open() first")

    async def open(self) -> None:
        self._open = True
        self.open_count += 1

    async def receive(
        self, max_count: int, max_wait_time: float
    ) -> list[MessageEnvelope]:
        self._ensure_open()
        return await self._broker.receive(max_count, max_wait_time)

    async def complete(self, envelope: MessageEnvelope) -> None:
        self._broker.complete(envelope)

    async def dead_letter(
        self,
        envelope: MessageEnvelope,
        *,
        reason: str | None = None,
        description: str | None = None,
    ) -> None:
        self._broker.dead_letter(envelope, reason=reason, description=description)

    async def close(self) -> None:
        if self._open:
            self._open = False
            self.close_count += 1
