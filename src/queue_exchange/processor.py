"""QueueProcessor — bounded-concurrency pull, handle and settle."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .error_sink import ErrorContext, IErrorSink, LoggingErrorSink
from .exceptions import (
    HandlerFailure,
    InvalidStateError,
    PipelineFault,
    SettlementError,
)
from .instrumentation import HookRegistry, get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from .envelope import MessageEnvelope
    from .ports import IQueueReceiver
    from .serialization import RecordSerializer

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ProcessorState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ProcessingOutcome(str, Enum):
    """Result of handling one delivery; decides its settlement."""

    COMPLETED = "completed"
    FAILED = "failed"


class ProcessorOptions(BaseModel):
    """Fixed for the lifetime of one processor; build a new one to change it."""

    model_config = ConfigDict(frozen=True)

    max_concurrency: int = Field(default=2, ge=1)
    auto_complete: bool = False
    max_wait_time: float = Field(default=5.0, gt=0)
    error_backoff: float = Field(default=1.0, ge=0)

    @field_validator("auto_complete")
    @classmethod
    def _manual_completion_only(cls, value: bool) -> bool:
        if value:
            raise ValueError(
                "auto_complete is not supported: messages are completed only "
                "after their handler succeeds"
            )
        return value


class QueueProcessor(Generic[T]):
    """Pulls envelopes from a receiver and handles each on its own task.

    At most ``max_concurrency`` envelopes are in flight at any instant; the
    single pull loop suspends while the ceiling is reached. For every
    delivery the handler is invoked exactly once and the envelope is settled
    exactly once:

    * decode and handler succeed -> ``complete``
    * decode or handler raise -> ``dead_letter`` (no retry in the processor;
      redelivery is the broker's concern)

    A failing settlement call is reported to the error sink and the envelope
    is left for broker redelivery. Nothing raised while handling one envelope
    reaches the pull loop or any other envelope.

    Usage::

        async def handle(order: Order, envelope: MessageEnvelope) -> None:
            ...

        processor = QueueProcessor(receiver, RecordSerializer(Order), handle)
        async with processor:
            await stop_requested.wait()
    """

    def __init__(
        self,
        receiver: IQueueReceiver,
        serializer: RecordSerializer[T],
        handler: Callable[[T, MessageEnvelope], Awaitable[Any]],
        *,
        options: ProcessorOptions | None = None,
        error_sink: IErrorSink | None = None,
        entity_path: str | None = None,
    ) -> None:
        """Configure processor.

        Args:
            receiver: Broker receiver; opened on start, closed on stop.
            serializer: Decodes envelope payloads to records.
            handler: Async callable (record, envelope); returning means success.
            options: Concurrency and polling settings; default ProcessorOptions().
            error_sink: Receives settlement and pipeline faults;
                default LoggingErrorSink().
            entity_path: Queue name, for logs and error context.
        """
        self._receiver = receiver
        self._serializer = serializer
        self._handler = handler
        self._options = options or ProcessorOptions()
        self._error_sink = error_sink or LoggingErrorSink()
        self._entity_path = entity_path
        self._state = ProcessorState.CREATED
        self._slots: asyncio.Semaphore | None = None
        self._pull_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[ProcessingOutcome | None]] = set()
        self._stopped = asyncio.Event()
        self._hooks = HookRegistry()

    # ── Introspection ────────────────────────────────────────────

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def options(self) -> ProcessorOptions:
        return self._options

    @property
    def in_flight(self) -> int:
        """Number of envelopes currently being handled or settled."""
        return len(self._tasks)

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Open the receiver and begin pulling envelopes.

        Raises:
            InvalidStateError: The processor is running or stopping.
        """
        if self._state not in (ProcessorState.CREATED, ProcessorState.STOPPED):
            raise InvalidStateError(
                f"Cannot start processor in state {self._state.value!r}"
            )
        previous = self._state
        self._state = ProcessorState.RUNNING
        self._stopped = asyncio.Event()
        try:
            await self._receiver.open()
        except BaseException:
            self._state = previous
            raise
        if self._state is not ProcessorState.RUNNING:
            # stop() ran while the receiver was opening and could not close it.
            try:
                await self._receiver.close()
            except Exception as e:  # noqa: BLE001
                await self._report(e, ErrorContext("close", self._entity_path))
            logger.info(
                "Processor for %s stopped before it began receiving",
                self._entity_path,
            )
            return
        self._hooks = get_hook_registry()
        self._slots = asyncio.Semaphore(self._options.max_concurrency)
        self._pull_task = asyncio.create_task(self._pull_loop())
        logger.info(
            "Receiving messages from %s (max_concurrency=%d)",
            self._entity_path,
            self._options.max_concurrency,
        )

    async def stop(self) -> None:
        """Stop pulling, wait for in-flight envelopes, release the receiver.

        Idempotent: stopping a stopped (or never started) processor does
        nothing, and a second concurrent call waits for the first.
        """
        if self._state in (ProcessorState.CREATED, ProcessorState.STOPPED):
            return
        if self._state is ProcessorState.STOPPING:
            await self._stopped.wait()
            return

        self._state = ProcessorState.STOPPING
        logger.info("Stopping processor for %s", self._entity_path)
        try:
            await self._cancel_pull_loop()
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
        finally:
            try:
                await self._receiver.close()
            except Exception as e:  # noqa: BLE001
                await self._report(e, ErrorContext("close", self._entity_path))
            self._state = ProcessorState.STOPPED
            self._stopped.set()
            logger.info("Processor for %s stopped", self._entity_path)

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Start, run until *stop_event* is set, then stop."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    async def __aenter__(self) -> QueueProcessor[T]:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def _cancel_pull_loop(self) -> None:
        task = self._pull_task
        self._pull_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:  # noqa: BLE001
            await self._report(e, ErrorContext("receive", self._entity_path))

    # ── Pulling ──────────────────────────────────────────────────

    async def _pull_loop(self) -> None:
        while self._state is ProcessorState.RUNNING:
            slots = await self._acquire_slots()
            try:
                envelopes = await self._receiver.receive(
                    slots, self._options.max_wait_time
                )
            except asyncio.CancelledError:
                self._release_slots(slots)
                raise
            except Exception as e:  # noqa: BLE001
                self._release_slots(slots)
                fault = PipelineFault(f"Receive from {self._entity_path} failed: {e}")
                fault.__cause__ = e
                await self._report(fault, ErrorContext("receive", self._entity_path))
                await asyncio.sleep(self._options.error_backoff)
                continue

            self._release_slots(slots - len(envelopes))
            for envelope in envelopes:
                self._spawn(envelope)

    async def _acquire_slots(self) -> int:
        """Wait for one free slot, then take any others that are free right now."""
        assert self._slots is not None
        await self._slots.acquire()
        acquired = 1
        while acquired < self._options.max_concurrency and not self._slots.locked():
            await self._slots.acquire()
            acquired += 1
        return acquired

    def _release_slots(self, count: int) -> None:
        assert self._slots is not None
        for _ in range(max(0, count)):
            self._slots.release()

    def _spawn(self, envelope: MessageEnvelope) -> None:
        task = asyncio.create_task(self._process(envelope))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[ProcessingOutcome | None]) -> None:
        self._tasks.discard(task)
        self._release_slots(1)

    # ── Per-envelope protocol ────────────────────────────────────

    async def _process(self, envelope: MessageEnvelope) -> ProcessingOutcome | None:
        attributes: dict[str, Any] = {
            "entity_path": self._entity_path,
            "message_id": envelope.message_id,
            "delivery_count": envelope.delivery_count,
            "message_type": self._serializer.record_type,
        }
        try:
            outcome: ProcessingOutcome = await self._hooks.execute_all(
                "processor.process", attributes, lambda: self._handle(envelope)
            )
        except Exception as e:  # noqa: BLE001
            await self._report(
                e,
                ErrorContext("process", self._entity_path, envelope.message_id),
            )
            return None
        return outcome

    async def _handle(self, envelope: MessageEnvelope) -> ProcessingOutcome:
        try:
            record = self._serializer.decode(envelope.payload)
            await self._handler(record, envelope)
        except Exception as e:  # noqa: BLE001
            failure = HandlerFailure(envelope.message_id, e)
            logger.warning(
                "Error processing message %s (delivery %d): %s",
                envelope.message_id,
                envelope.delivery_count,
                e,
            )
            await self._dead_letter(envelope, failure)
            return ProcessingOutcome.FAILED

        await self._complete(envelope)
        return ProcessingOutcome.COMPLETED

    async def _complete(self, envelope: MessageEnvelope) -> None:
        try:
            await self._receiver.complete(envelope)
        except Exception as e:  # noqa: BLE001
            await self._report_settlement(e, envelope, "complete")
            return
        logger.debug("Message %s completed", envelope.message_id)

    async def _dead_letter(
        self, envelope: MessageEnvelope, failure: HandlerFailure
    ) -> None:
        try:
            await self._receiver.dead_letter(
                envelope,
                reason=failure.reason,
                description=failure.description,
            )
        except Exception as e:  # noqa: BLE001
            await self._report_settlement(e, envelope, "dead_letter")
            return
        logger.info("Message %s dead-lettered: %s", envelope.message_id, failure.reason)

    async def _report_settlement(
        self, error: Exception, envelope: MessageEnvelope, action: str
    ) -> None:
        if not isinstance(error, SettlementError):
            wrapped = SettlementError(
                f"{action} failed for message {envelope.message_id}: {error}",
                message_id=envelope.message_id,
                action=action,
            )
            wrapped.__cause__ = error
            error = wrapped
        await self._report(
            error, ErrorContext(action, self._entity_path, envelope.message_id)
        )

    async def _report(self, error: BaseException, context: ErrorContext) -> None:
        try:
            await self._error_sink.report(error, context)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Error sink failed while reporting %s error", context.source
            )
