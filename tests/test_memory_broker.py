"""Tests for the in-memory broker, sender and receiver."""

from __future__ import annotations

import asyncio

import pytest

from queue_exchange.envelope import OutboundMessage
from queue_exchange.exceptions import MessagingConnectionError, SettlementError
from queue_exchange.memory import (
    InMemoryQueueBroker,
    InMemoryQueueReceiver,
    InMemoryQueueSender,
)


@pytest.mark.asyncio
async def test_receive_respects_max_count(broker: InMemoryQueueBroker) -> None:
    broker.enqueue([OutboundMessage(body=b"%d" % i) for i in range(5)])
    first = await broker.receive(2, 0.01)
    assert [e.payload for e in first] == [b"0", b"1"]
    assert broker.pending_count == 3
    assert broker.locked_count == 2


@pytest.mark.asyncio
async def test_receive_waits_for_arrival(broker: InMemoryQueueBroker) -> None:
    async def late_enqueue() -> None:
        await asyncio.sleep(0.02)
        broker.enqueue([OutboundMessage(body=b"late")])

    task = asyncio.create_task(late_enqueue())
    envelopes = await broker.receive(1, 1.0)
    await task
    assert [e.payload for e in envelopes] == [b"late"]


@pytest.mark.asyncio
async def test_receive_times_out_empty(broker: InMemoryQueueBroker) -> None:
    assert await broker.receive(3, 0.01) == []


@pytest.mark.asyncio
async def test_expired_locks_are_redelivered_with_incremented_count(
    broker: InMemoryQueueBroker,
) -> None:
    broker.enqueue([OutboundMessage(message_id="m-1", body=b"x")])
    (first,) = await broker.receive(1, 0.01)
    assert broker.expire_locks() == 1
    (second,) = await broker.receive(1, 0.01)
    assert second.message_id == "m-1"
    assert second.delivery_count == 2
    assert second.lock_token != first.lock_token


@pytest.mark.asyncio
async def test_settling_with_stale_lock_fails(broker: InMemoryQueueBroker) -> None:
    broker.enqueue([OutboundMessage(body=b"x")])
    (envelope,) = await broker.receive(1, 0.01)
    broker.complete(envelope)
    with pytest.raises(SettlementError) as exc_info:
        broker.dead_letter(envelope, reason="late")
    assert exc_info.value.action == "dead_letter"
    assert len(broker.completed) == 1


def test_unavailable_broker_admits_nothing(broker: InMemoryQueueBroker) -> None:
    broker.available = False
    with pytest.raises(MessagingConnectionError):
        broker.enqueue([OutboundMessage(body=b"a"), OutboundMessage(body=b"b")])
    assert broker.pending_count == 0


@pytest.mark.asyncio
async def test_closed_sender_rejects(sender: InMemoryQueueSender) -> None:
    await sender.close()
    with pytest.raises(MessagingConnectionError):
        await sender.send_messages([OutboundMessage(body=b"a")])


@pytest.mark.asyncio
async def test_receiver_must_be_opened(receiver: InMemoryQueueReceiver) -> None:
    with pytest.raises(MessagingConnectionError):
        await receiver.receive(1, 0.01)
    await receiver.open()
    assert await receiver.receive(1, 0.01) == []
    await receiver.close()
    await receiver.close()
    assert receiver.close_count == 1


@pytest.mark.asyncio
async def test_receiver_settles_through_broker(
    broker: InMemoryQueueBroker, receiver: InMemoryQueueReceiver
) -> None:
    broker.enqueue([OutboundMessage(body=b"a"), OutboundMessage(body=b"b")])
    await receiver.open()
    ok, bad = await receiver.receive(2, 0.01)
    await receiver.complete(ok)
    await receiver.dead_letter(bad, reason="ValueError", description="nope")
    assert broker.completed == [ok]
    assert broker.dead_lettered == [(bad, "ValueError", "nope")]
    assert broker.locked_count == 0
