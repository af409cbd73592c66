"""Debounced observation of a changing page.

A scheduler owns at most one pending callback. Scheduling again replaces
the pending one, so a burst of mutations produces a single capture once
the page has been quiet for the debounce delay.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable

from chat_archiver.config import DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


class Scheduler(ABC):
    """Single-slot delayed callback."""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], object]) -> None:
        """Run ``callback`` after ``delay`` seconds, replacing any pending one."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        ...

    @property
    @abstractmethod
    def pending(self) -> bool:
        ...


class AsyncioScheduler(Scheduler):
    """Scheduler backed by ``loop.call_later``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, delay: float, callback: Callable[[], object]) -> None:
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = self.loop.call_later(delay, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None


class ConversationObserver:
    """Runs the capture pipeline after the page stops changing.

    Call :meth:`notify_mutation` whenever the page changes; the pipeline
    runs ``debounce`` seconds after the last notification.
    """

    def __init__(self, pipeline, scheduler: Scheduler, debounce: float = DEBOUNCE_SECONDS):
        self.pipeline = pipeline
        self.scheduler = scheduler
        self.debounce = debounce
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(f"Conversation observer started (debounce={self.debounce:.1f}s)")

    def stop(self) -> None:
        self._running = False
        self.scheduler.cancel()
        logger.info("Conversation observer stopped")

    def notify_mutation(self) -> None:
        if not self._running:
            return
        self.scheduler.schedule(self.debounce, self._fire)

    def _fire(self) -> None:
        if not self._running:
            return
        self.pipeline.capture()
