from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .envelope import MessageEnvelope, OutboundMessage


@runtime_checkable
class IQueueSender(Protocol):
    """
    Port for enqueueing messages on a broker queue.

    Infrastructure packages provide concrete adapters.
    """

    async def send_messages(self, messages: Sequence[OutboundMessage]) -> None:
        """
        Submit *messages* as one broker-side batch.

        Either all messages are accepted or none are.

        Raises:
            MessagingError: The broker rejected or could not accept the batch.
        """
        ...

    async def close(self) -> None:
        """Release the underlying sender. Idempotent."""
        ...


@runtime_checkable
class IQueueReceiver(Protocol):
    """
    Port for pulling and settling messages from a broker queue.

    Received messages are locked by the broker until settled or until the
    lock expires, after which they are redelivered.
    """

    async def open(self) -> None:
        """Acquire the underlying receiver. Called once per processor start."""
        ...

    async def receive(
        self, max_count: int, max_wait_time: float
    ) -> list[MessageEnvelope]:
        """
        Wait up to *max_wait_time* seconds for at most *max_count* envelopes.

        Returns an empty list when nothing arrived in time.

        Raises:
            MessagingError: Connection or protocol fault.
        """
        ...

    async def complete(self, envelope: MessageEnvelope) -> None:
        """
        Acknowledge *envelope*: it is fully processed and must not be redelivered.

        Raises:
            SettlementError: The settlement call itself failed.
        """
        ...

    async def dead_letter(
        self,
        envelope: MessageEnvelope,
        *,
        reason: str | None = None,
        description: str | None = None,
    ) -> None:
        """
        Route *envelope* to the dead-letter destination.

        Raises:
            SettlementError: The settlement call itself failed.
        """
        ...

    async def close(self) -> None:
        """Release the underlying receiver. Idempotent."""
        ...
