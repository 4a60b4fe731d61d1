"""Pytest fixtures for queue-exchange tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from queue_exchange.envelope import OutboundMessage
from queue_exchange.error_sink import ErrorContext
from queue_exchange.memory import (
    InMemoryQueueBroker,
    InMemoryQueueReceiver,
    InMemoryQueueSender,
)
from queue_exchange.records import Order
from queue_exchange.serialization import RecordSerializer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class RecordingErrorSink:
    """Error sink that keeps every report for assertions."""

    def __init__(self) -> None:
        self.reports: list[tuple[BaseException, ErrorContext]] = []

    async def report(self, error: BaseException, context: ErrorContext) -> None:
        self.reports.append((error, context))

    def sources(self) -> list[str]:
        return [context.source for _, context in self.reports]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test after timeout seconds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


def _make_order(order_id: int = 1, **overrides: object) -> Order:
    values: dict[str, object] = {
        "id": order_id,
        "customer_name": f"Customer {order_id}",
        "price": Decimal("100.50"),
        "quantity": 3,
        "order_date": datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Order.model_validate(values)


@pytest.fixture
def broker() -> InMemoryQueueBroker:
    return InMemoryQueueBroker("orders")


@pytest.fixture
def sender(broker: InMemoryQueueBroker) -> InMemoryQueueSender:
    return InMemoryQueueSender(broker)


@pytest.fixture
def receiver(broker: InMemoryQueueBroker) -> InMemoryQueueReceiver:
    return InMemoryQueueReceiver(broker)


@pytest.fixture
def serializer() -> RecordSerializer[Order]:
    return RecordSerializer(Order)


@pytest.fixture
def error_sink() -> RecordingErrorSink:
    return RecordingErrorSink()


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory for valid orders; keyword overrides replace single fields."""
    return _make_order


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a predicate until it holds, failing the test after a timeout."""
    return _wait_until


@pytest.fixture
def enqueue_orders(
    broker: InMemoryQueueBroker, serializer: RecordSerializer[Order]
) -> Callable[[int], None]:
    """Put orders 0..count-1 on the broker as encoded messages."""

    def _enqueue(count: int) -> None:
        broker.enqueue(
            [
                OutboundMessage(body=serializer.encode(_make_order(i)))
                for i in range(count)
            ]
        )

    return _enqueue
