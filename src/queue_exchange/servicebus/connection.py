"""Service Bus client management and health check."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azure.servicebus.aio import ServiceBusClient
from azure.servicebus.exceptions import ServiceBusError

from ..exceptions import MessagingConnectionError

if TYPE_CHECKING:
    from collections.abc import Callable


class ServiceBusConnectionManager:
    """Owns one ``ServiceBusClient`` shared by senders and receivers.

    The client is created on first use from the namespace connection string
    and released by ``close()``.
    """

    def __init__(
        self,
        connection_string: str,
        *,
        client_factory: Callable[..., Any] | None = None,
        **client_kwargs: Any,
    ) -> None:
        """Configure connection string and optional client kwargs.

        Args:
            connection_string: Namespace connection string.
            client_factory: Builds the client from the connection string;
                default ``ServiceBusClient.from_connection_string``.
            **client_kwargs: Forwarded to the factory (e.g. ``transport_type``).
        """
        self._connection_string = connection_string
        self._client_factory = client_factory or ServiceBusClient.from_connection_string
        self._client_kwargs = client_kwargs
        self._client: Any = None

    def get_client(self) -> Any:
        """Return shared client; create if needed."""
        if self._client is None:
            try:
                self._client = self._client_factory(
                    self._connection_string, **self._client_kwargs
                )
            except (ValueError, ServiceBusError) as e:
                raise MessagingConnectionError(str(e)) from e
        return self._client

    async def close(self) -> None:
        """Close the client if open."""
        if self._client is not None:
            client = self._client
            self._client = None
            await client.close()

    async def health_check(self, queue_name: str) -> bool:
        """Return True if the queue can be peeked (lightweight check)."""
        try:
            client = self.get_client()
            async with client.get_queue_receiver(queue_name=queue_name) as receiver:
                await receiver.peek_messages(max_message_count=1)
            return True
        except Exception:  # noqa: BLE001
            return False
