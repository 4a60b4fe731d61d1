"""Sample drivers: ``python -m queue_exchange produce|consume``.

Both read ``SERVICE_BUS_CONNECTION_STRING`` and ``SERVICE_BUS_QUEUE_NAME``
(a ``.env`` file in the working directory is honoured).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .processor import ProcessorOptions, QueueProcessor
from .producer import QueueProducer
from .records import Order
from .serialization import RecordSerializer
from .servicebus import (
    ServiceBusConnectionManager,
    ServiceBusQueueReceiver,
    ServiceBusQueueSender,
)
from .settings import BrokerSettings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .envelope import MessageEnvelope
    from .ports import IQueueReceiver, IQueueSender

logger = logging.getLogger("queue_exchange.drivers")


def build_orders(count: int, now: datetime | None = None) -> list[Order]:
    """Sample orders: order ``i`` costs ``100 + 10i`` for ``1 + 2i`` items."""
    order_date = now or datetime.now(timezone.utc)
    return [
        Order(
            id=i,
            customer_name=f"Customer {i}",
            price=Decimal(100 + i * 10),
            quantity=1 + i * 2,
            order_date=order_date,
        )
        for i in range(count)
    ]


async def produce(
    sender: IQueueSender, count: int, *, entity_path: str | None = None
) -> int:
    """Send ``count`` sample orders one by one; the sender is closed on exit."""
    async with QueueProducer(
        sender, RecordSerializer(Order), entity_path=entity_path
    ) as producer:
        logger.info("Sending messages to %s...", entity_path)
        for order in build_orders(count):
            await producer.send(order)
    logger.info("%d messages sent successfully", count)
    return count


def make_order_handler(
    processing_delay: float = 0.0,
) -> Callable[[Order, MessageEnvelope], Awaitable[None]]:
    """Handler that logs each order, simulating ``processing_delay`` seconds of work."""

    async def handle(order: Order, envelope: MessageEnvelope) -> None:
        logger.info(
            "Received message: %s - %s - %s - %s - %s",
            order.id,
            order.customer_name,
            order.price,
            order.quantity,
            order.order_date.isoformat(),
        )
        if processing_delay > 0:
            await asyncio.sleep(processing_delay)

    return handle


async def consume(
    receiver: IQueueReceiver,
    stop_event: asyncio.Event,
    *,
    options: ProcessorOptions | None = None,
    entity_path: str | None = None,
    processing_delay: float = 0.0,
) -> None:
    """Process orders until ``stop_event`` is set, then drain and stop."""
    processor = QueueProcessor(
        receiver,
        RecordSerializer(Order),
        make_order_handler(processing_delay),
        options=options,
        entity_path=entity_path,
    )
    await processor.run_until_stopped(stop_event)
    logger.info("Processor stopped and resources released")


def _install_stop_signals(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)


async def _run(args: argparse.Namespace) -> None:
    settings = BrokerSettings.from_env()
    connection = ServiceBusConnectionManager(settings.connection_string)
    try:
        if args.command == "produce":
            sender = ServiceBusQueueSender(connection, settings.queue_name)
            await produce(sender, args.count, entity_path=settings.queue_name)
        else:
            stop_event = asyncio.Event()
            _install_stop_signals(stop_event)
            receiver = ServiceBusQueueReceiver(connection, settings.queue_name)
            await consume(
                receiver,
                stop_event,
                options=ProcessorOptions(max_concurrency=settings.max_concurrency),
                entity_path=settings.queue_name,
                processing_delay=args.processing_delay,
            )
    finally:
        await connection.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="queue_exchange")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)
    produce_cmd = sub.add_parser("produce", help="send sample orders")
    produce_cmd.add_argument("--count", type=int, default=10)
    consume_cmd = sub.add_parser("consume", help="process orders until interrupted")
    consume_cmd.add_argument("--processing-delay", type=float, default=1.0)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run(args))
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
