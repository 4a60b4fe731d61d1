"""ServiceBusQueueSender — IQueueSender over an azure-servicebus queue sender."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azure.servicebus import ServiceBusMessage
from azure.servicebus.exceptions import (
    ServiceBusAuthenticationError,
    ServiceBusConnectionError,
    ServiceBusError,
)

from ..exceptions import MessagingConnectionError, MessagingError
from ..ports import IQueueSender

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..envelope import OutboundMessage
    from .connection import ServiceBusConnectionManager

logger = logging.getLogger(__name__)


def _to_service_bus_message(message: OutboundMessage) -> ServiceBusMessage:
    return ServiceBusMessage(
        message.body,
        message_id=message.message_id,
        content_type=message.content_type,
        subject=message.subject,
        application_properties=dict(message.properties) or None,
    )


class ServiceBusQueueSender(IQueueSender):
    """Service Bus adapter implementing IQueueSender.

    A list of messages goes out in a single ``send_messages`` call, which the
    service admits as one batch; a list too large for one batch is rejected
    whole.
    """

    def __init__(
        self,
        connection: ServiceBusConnectionManager,
        queue_name: str,
    ) -> None:
        self._connection = connection
        self._queue_name = queue_name
        self._sender: Any = None

    def _get_sender(self) -> Any:
        if self._sender is None:
            client = self._connection.get_client()
            self._sender = client.get_queue_sender(queue_name=self._queue_name)
        return self._sender

    async def send_messages(self, messages: Sequence[OutboundMessage]) -> None:
        sender = self._get_sender()
        batch = [_to_service_bus_message(m) for m in messages]
        try:
            await sender.send_messages(batch)
        except (ServiceBusConnectionError, ServiceBusAuthenticationError) as e:
            raise MessagingConnectionError(str(e)) from e
        except (ServiceBusError, ValueError) as e:
            raise MessagingError(str(e)) from e
        logger.debug("Sent %d message(s) to %s", len(batch), self._queue_name)

    async def close(self) -> None:
        if self._sender is not None:
            sender = self._sender
            self._sender = None
            await sender.close()
