"""Completion dispatchers — deliver results on one designated context.

The facade never calls a completion directly.  It hands the callback and its
arguments to a Dispatcher, which decides where the call runs:

    LoopDispatcher    schedules onto one event loop (thread-safe)
    InlineDispatcher  calls immediately on the current thread
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger("stepwise.health.dispatch")


class Dispatcher(ABC):
    """Routes completion callbacks onto a designated execution context."""

    @abstractmethod
    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        """Arrange for ``callback(*args)`` to run on the designated context."""


class InlineDispatcher(Dispatcher):
    """Call the completion immediately.  For tests and single-loop hosts."""

    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        callback(*args)


class LoopDispatcher(Dispatcher):
    """Deliver every completion on ``loop``, whichever thread produced it."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        if self._loop.is_closed():
            logger.warning("Dropping completion %r: designated loop is closed", callback)
            return
        self._loop.call_soon_threadsafe(callback, *args)
