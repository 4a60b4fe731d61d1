"""In-memory queue broker for testing — peek-lock delivery and dead-lettering."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..envelope import MessageEnvelope
from ..exceptions import MessagingConnectionError, SettlementError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..envelope import OutboundMessage


@dataclass
class _Stored:
    message: OutboundMessage
    enqueued_at: datetime
    delivery_count: int = 0


class InMemoryQueueBroker:
    """Single queue with lock-until-settled delivery.

    Received messages stay locked until completed or dead-lettered;
    ``expire_locks()`` plays the broker's lease expiry and puts every
    unsettled message back with its delivery count incremented. Set
    ``available = False`` to simulate an unreachable broker and
    ``fail_settlement = True`` to make settlement calls fail.
    """

    def __init__(self, queue_name: str = "orders") -> None:
        self.queue_name = queue_name
        self.available = True
        self.fail_settlement = False
        self.completed: list[MessageEnvelope] = []
        self.dead_lettered: list[tuple[MessageEnvelope, str | None, str | None]] = []
        self._pending: deque[_Stored] = deque()
        self._locked: dict[str, _Stored] = {}
        self._arrived = asyncio.Event()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def locked_count(self) -> int:
        return len(self._locked)

    def _ensure_available(self) -> None:
        if not self.available:
            raise MessagingConnectionError(f"Broker for {self.queue_name} unavailable")

    def enqueue(self, messages: Sequence[OutboundMessage]) -> None:
        """Admit all messages or none."""
        self._ensure_available()
        now = datetime.now(timezone.utc)
        self._pending.extend(_Stored(message=m, enqueued_at=now) for m in messages)
        if self._pending:
            self._arrived.set()

    async def receive(
        self, max_count: int, max_wait_time: float
    ) -> list[MessageEnvelope]:
        """Lock and return up to max_count messages, waiting if none are queued."""
        self._ensure_available()
        if not self._pending:
            self._arrived.clear()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._arrived.wait(), timeout=max_wait_time)
            self._ensure_available()
        envelopes: list[MessageEnvelope] = []
        while self._pending and len(envelopes) < max_count:
            stored = self._pending.popleft()
            stored.delivery_count += 1
            lock_token = str(uuid.uuid4())
            self._locked[lock_token] = stored
            envelopes.append(
                MessageEnvelope(
                    message_id=stored.message.message_id,
                    payload=stored.message.body,
                    delivery_count=stored.delivery_count,
                    enqueued_at=stored.enqueued_at,
                    lock_token=lock_token,
                    content_type=stored.message.content_type,
                    properties=dict(stored.message.properties),
                )
            )
        return envelopes

    def _settle(self, envelope: MessageEnvelope, action: str) -> None:
        if self.fail_settlement or not self.available:
            raise MessagingConnectionError(
                f"{action} failed: broker for {self.queue_name} unavailable"
            )
        if envelope.lock_token is None or envelope.lock_token not in self._locked:
            raise SettlementError(
                f"Lock for message {envelope.message_id} is not held",
                message_id=envelope.message_id,
                action=action,
            )
        del self._locked[envelope.lock_token]

    def complete(self, envelope: MessageEnvelope) -> None:
        self._settle(envelope, "complete")
        self.completed.append(envelope)

    def dead_letter(
        self,
        envelope: MessageEnvelope,
        reason: str | None = None,
        description: str | None = None,
    ) -> None:
        self._settle(envelope, "dead_letter")
        self.dead_lettered.append((envelope, reason, description))

    def expire_locks(self) -> int:
        """Return every locked message to the queue; returns how many."""
        expired = list(self._locked.values())
        self._locked.clear()
        self._pending.extend(expired)
        if expired:
            self._arrived.set()
        return len(expired)

    def clear(self) -> None:
        """Drop all messages and settlement records (for test teardown)."""
        self._pending.clear()
        self._locked.clear()
        self.completed.clear()
        self.dead_lettered.clear()
