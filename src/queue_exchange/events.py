"""EventPublisher — wrap records as events and hand them to a broker sender."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .envelope import OutboundMessage
from .exceptions import MessagingError, SubmitError, SubmitErrorKind
from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports import IQueueSender

logger = logging.getLogger(__name__)


class EventEnvelope(BaseModel):
    """Event wire schema: routing metadata around a JSON data section."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    subject: str
    event_type: str
    data_version: str = "1.0"
    event_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Any = None


def _data_of(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", by_alias=True)
    return item


class EventPublisher:
    """Publishes events through a sender.

    No retry, ordering or consistency logic of its own: a failure surfaces as
    ``SubmitError`` exactly as for ``QueueProducer``.
    """

    def __init__(self, sender: IQueueSender) -> None:
        self._sender = sender

    def _to_message(self, event: EventEnvelope) -> OutboundMessage:
        try:
            body = event.model_dump_json().encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SubmitError(SubmitErrorKind.SERIALIZATION_FAILED, str(e)) from e
        return OutboundMessage(
            message_id=event.id,
            body=body,
            subject=event.subject,
            properties={"event_type": event.event_type},
        )

    async def _submit(self, messages: list[OutboundMessage]) -> None:
        try:
            await self._sender.send_messages(messages)
        except MessagingError as e:
            raise SubmitError(SubmitErrorKind.BROKER_REJECTED, str(e)) from e

    async def publish(self, data: Any, event_type: str, subject: str) -> EventEnvelope:
        """Publish one event and return the envelope that was sent."""
        event = EventEnvelope(
            subject=subject, event_type=event_type, data=_data_of(data)
        )
        message = self._to_message(event)
        await get_hook_registry().execute_all(
            "events.publish",
            {"event.type": event_type, "subject": subject, "event.id": event.id},
            lambda: self._submit([message]),
        )
        logger.info("Published event %s with subject %s", event_type, subject)
        return event

    async def publish_batch(
        self,
        items: Sequence[Any],
        event_type_prefix: str,
        subject_prefix: str,
    ) -> list[EventEnvelope]:
        """Publish all items as one batch, all-or-nothing at the broker.

        Item ``i`` gets subject ``{subject_prefix}/{i}`` and event type
        ``{event_type_prefix}.{type name of the item}``.
        """
        events = [
            EventEnvelope(
                subject=f"{subject_prefix}/{index}",
                event_type=f"{event_type_prefix}.{type(item).__name__}",
                data=_data_of(item),
            )
            for index, item in enumerate(items)
        ]
        if not events:
            return []
        messages = [self._to_message(event) for event in events]
        await get_hook_registry().execute_all(
            "events.publish_batch",
            {"event.type": event_type_prefix, "batch_size": len(events)},
            lambda: self._submit(messages),
        )
        logger.info("Published batch of %d events", len(events))
        return events
