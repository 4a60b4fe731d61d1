"""ServiceBusQueueReceiver — IQueueReceiver with peek-lock and explicit settlement."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.exceptions import (
    ServiceBusAuthenticationError,
    ServiceBusConnectionError,
    ServiceBusError,
)

from ..envelope import MessageEnvelope
from ..exceptions import MessagingConnectionError, MessagingError, SettlementError
from ..ports import IQueueReceiver

if TYPE_CHECKING:
    from .connection import ServiceBusConnectionManager

logger = logging.getLogger(__name__)


def _to_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _to_envelope(message: Any) -> MessageEnvelope:
    """Convert a ServiceBusReceivedMessage to a MessageEnvelope.

    The SDK's ``delivery_count`` counts previous deliveries (0 on the first),
    so it is shifted by one.
    """
    body = message.body
    payload = body if isinstance(body, bytes) else b"".join(body)
    properties = {
        _to_text(k): _to_text(v)
        for k, v in (message.application_properties or {}).items()
    }
    return MessageEnvelope(
        message_id=str(message.message_id),
        payload=payload,
        delivery_count=(message.delivery_count or 0) + 1,
        enqueued_at=message.enqueued_time_utc,
        lock_token=str(message.lock_token),
        content_type=message.content_type,
        properties=properties,
    )


class ServiceBusQueueReceiver(IQueueReceiver):
    """Service Bus adapter implementing IQueueReceiver.

    Receives in PEEK_LOCK mode; the native message is held, keyed by lock
    token, until it is completed or dead-lettered.
    """

    def __init__(
        self,
        connection: ServiceBusConnectionManager,
        queue_name: str,
        *,
        prefetch_count: int = 0,
    ) -> None:
        """Configure receiver.

        Args:
            connection: Shared connection manager.
            queue_name: Queue to receive from.
            prefetch_count: SDK prefetch; 0 keeps no unlocked backlog client-side.
        """
        self._connection = connection
        self._queue_name = queue_name
        self._prefetch_count = prefetch_count
        self._receiver: Any = None
        self._locked: dict[str, Any] = {}

    @property
    def receiver(self) -> Any:
        if self._receiver is None:
            raise MessagingConnectionError("Receiver is not open; call open() first")
        return self._receiver

    async def open(self) -> None:
        if self._receiver is not None:
            return
        client = self._connection.get_client()
        self._receiver = client.get_queue_receiver(
            queue_name=self._queue_name,
            receive_mode=ServiceBusReceiveMode.PEEK_LOCK,
            prefetch_count=self._prefetch_count,
        )

    async def receive(
        self, max_count: int, max_wait_time: float
    ) -> list[MessageEnvelope]:
        try:
            messages = await self.receiver.receive_messages(
                max_message_count=max_count,
                max_wait_time=max_wait_time,
            )
        except (ServiceBusConnectionError, ServiceBusAuthenticationError) as e:
            raise MessagingConnectionError(str(e)) from e
        except ServiceBusError as e:
            raise MessagingError(str(e)) from e
        envelopes = []
        for message in messages:
            envelope = _to_envelope(message)
            self._locked[str(envelope.lock_token)] = message
            envelopes.append(envelope)
        return envelopes

    def _take(self, envelope: MessageEnvelope, action: str) -> Any:
        message = self._locked.pop(str(envelope.lock_token), None)
        if message is None:
            raise SettlementError(
                f"No locked message for {envelope.message_id}",
                message_id=envelope.message_id,
                action=action,
            )
        return message

    async def complete(self, envelope: MessageEnvelope) -> None:
        message = self._take(envelope, "complete")
        try:
            await self.receiver.complete_message(message)
        except ServiceBusError as e:
            raise SettlementError(
                str(e), message_id=envelope.message_id, action="complete"
            ) from e

    async def dead_letter(
        self,
        envelope: MessageEnvelope,
        *,
        reason: str | None = None,
        description: str | None = None,
    ) -> None:
        message = self._take(envelope, "dead_letter")
        try:
            await self.receiver.dead_letter_message(
                message, reason=reason, error_description=description
            )
        except ServiceBusError as e:
            raise SettlementError(
                str(e), message_id=envelope.message_id, action="dead_letter"
            ) from e

    async def close(self) -> None:
        if self._receiver is not None:
            receiver = self._receiver
            self._receiver = None
            self._locked.clear()
            await receiver.close()
            logger.debug("Receiver for %s closed", self._queue_name)
