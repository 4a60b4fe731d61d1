"""QueueProducer — serialize typed records and enqueue them on a broker queue."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel

from .envelope import OutboundMessage
from .exceptions import (
    MessagingError,
    MessagingSerializationError,
    SubmitError,
    SubmitErrorKind,
)
from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from .ports import IQueueSender
    from .serialization import RecordSerializer

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class QueueProducer(Generic[T]):
    """Submits domain records to a queue for durable enqueue.

    No implicit retry: a failed submission raises ``SubmitError`` and the
    caller decides what to do. Use as an async context manager so that the
    sender is released on every exit path::

        async with QueueProducer(sender, RecordSerializer(Order)) as producer:
            await producer.send(order)
    """

    def __init__(
        self,
        sender: IQueueSender,
        serializer: RecordSerializer[T],
        *,
        entity_path: str | None = None,
    ) -> None:
        """Configure producer.

        Args:
            sender: Broker sender the producer owns and closes.
            serializer: Encodes records to payload bytes.
            entity_path: Queue name, for logs and instrumentation only.
        """
        self._sender = sender
        self._serializer = serializer
        self._entity_path = entity_path
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _to_message(self, record: T | dict[str, Any]) -> OutboundMessage:
        try:
            body = self._serializer.encode(record)
        except MessagingSerializationError as e:
            raise SubmitError(SubmitErrorKind.SERIALIZATION_FAILED, str(e)) from e
        return OutboundMessage(body=body)

    async def _submit(self, messages: list[OutboundMessage]) -> None:
        try:
            await self._sender.send_messages(messages)
        except MessagingError as e:
            raise SubmitError(SubmitErrorKind.BROKER_REJECTED, str(e)) from e

    def _ensure_open(self) -> None:
        if self._closed:
            raise SubmitError(SubmitErrorKind.CLOSED, "Producer is closed")

    async def send(self, record: T | dict[str, Any]) -> None:
        """Serialize *record* and submit it as one message.

        Raises:
            SubmitError: ``SERIALIZATION_FAILED``, ``BROKER_REJECTED`` or ``CLOSED``.
        """
        self._ensure_open()
        message = self._to_message(record)
        attributes = {
            "entity_path": self._entity_path,
            "message_id": message.message_id,
            "message_type": self._serializer.record_type,
        }
        await get_hook_registry().execute_all(
            "producer.send", attributes, lambda: self._submit([message])
        )
        logger.debug("Sent message %s to %s", message.message_id, self._entity_path)

    async def send_batch(self, records: Sequence[T | dict[str, Any]]) -> None:
        """Submit all *records* as one broker-side batch.

        Every record is serialized before anything is sent, so a bad record
        means nothing is submitted. The broker admits the batch atomically.

        Raises:
            SubmitError: ``SERIALIZATION_FAILED``, ``BROKER_REJECTED`` or ``CLOSED``.
        """
        self._ensure_open()
        messages = [self._to_message(record) for record in records]
        if not messages:
            return
        attributes = {
            "entity_path": self._entity_path,
            "batch_size": len(messages),
            "message_type": self._serializer.record_type,
        }
        await get_hook_registry().execute_all(
            "producer.send_batch", attributes, lambda: self._submit(messages)
        )
        logger.debug(
            "Sent batch of %d messages to %s", len(messages), self._entity_path
        )

    async def close(self) -> None:
        """Release the sender. Idempotent; later sends raise ``CLOSED``."""
        if self._closed:
            return
        self._closed = True
        await self._sender.close()
        logger.info("Producer for %s closed", self._entity_path)

    async def __aenter__(self) -> QueueProducer[T]:
        self._ensure_open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
