"""Periodic task scheduling for the embedding pipeline.

The pipeline owns its loop through a :class:`Scheduler`, so tests can swap
in a manual scheduler and fire ticks without wall-clock waits.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from threading import Event, Thread

logger = logging.getLogger(__name__)


class ScheduledTask(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Stop future ticks. Safe to call more than once."""

    @property
    @abstractmethod
    def cancelled(self) -> bool: ...


class Scheduler(ABC):
    @abstractmethod
    def schedule(self, interval_seconds: float, callback: Callable[[], object]) -> ScheduledTask:
        """Call *callback* every *interval_seconds* until the task is cancelled.

        The first call happens one interval after scheduling.
        """


class _ThreadTask(ScheduledTask):
    def __init__(self, interval_seconds: float, callback: Callable[[], object], name: str) -> None:
        self._interval = interval_seconds
        self._callback = callback
        self._stop = Event()
        self._thread = Thread(target=self._loop, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled task %s failed", self._thread.name)

    def cancel(self) -> None:
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout=timeout)


class ThreadScheduler(Scheduler):
    """One daemon thread per scheduled task, sleeping on an ``Event``."""

    def __init__(self, name: str = "imgsearch-scheduler") -> None:
        self._name = name

    def schedule(self, interval_seconds: float, callback: Callable[[], object]) -> ScheduledTask:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        task = _ThreadTask(interval_seconds, callback, self._name)
        task.start()
        return task
