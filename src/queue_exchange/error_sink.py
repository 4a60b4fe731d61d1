"""Error sinks — observe pipeline faults without affecting settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorContext:
    """Where a reported error came from.

    ``source`` is one of ``receive``, ``process``, ``complete``,
    ``dead_letter`` or ``close``.
    """

    source: str
    entity_path: str | None = None
    message_id: str | None = None


@runtime_checkable
class IErrorSink(Protocol):
    """Receives faults the processor cannot attribute to a handler outcome.

    Purely observational: a sink never changes processor state or settlement.
    """

    async def report(self, error: BaseException, context: ErrorContext) -> None:
        """Record *error* raised in *context*."""
        ...


class LoggingErrorSink(IErrorSink):
    """Logs every reported error with its traceback."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("queue_exchange.errors")

    async def report(self, error: BaseException, context: ErrorContext) -> None:
        self._log.error(
            "Pipeline error during %s (entity=%s, message_id=%s): %s",
            context.source,
            context.entity_path,
            context.message_id,
            error,
            exc_info=error,
        )


class CompositeErrorSink(IErrorSink):
    """Fans a report out to several sinks; a failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[IErrorSink]) -> None:
        self._sinks = list(sinks)

    async def report(self, error: BaseException, context: ErrorContext) -> None:
        for sink in self._sinks:
            try:
                await sink.report(error, context)
            except Exception:  # noqa: BLE001
                logger.exception("Error sink %s failed", type(sink).__name__)
