"""Typed publish/subscribe channels, one per event kind.

Each channel has exactly one producer (documented on ``EventChannels``) and any
number of consumers. Subscriber failures are logged and never reach the
producer, so a broken history view cannot abort an execution.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .models import ExecutionResult, Notice, PresentationSignal, ResolvedCommand

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    def __init__(self, name: str, logger: logging.Logger | None = None) -> None:
        self.name = name
        self._logger = logger or LOGGER
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    pass

        return _unsubscribe

    def emit(self, value: T) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(value)
            except Exception as exc:
                self._logger.error("[channels] Subscriber on '%s' failed: %s", self.name, exc, exc_info=True)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


@dataclass
class EventChannels:
    """All channels of one confirmation surface.

    - show: produced by the pipeline, consumed by the controller
    - execution_result: produced by the controller, consumed by the log and host
    - presentation: produced by the controller, consumed by the host window
    - state: produced by the controller on every transition (surface snapshots)
    - notice: produced by the pipeline and controller, consumed by the host
    """

    show: Channel[ResolvedCommand] = field(default_factory=lambda: Channel("show"))
    execution_result: Channel[ExecutionResult] = field(default_factory=lambda: Channel("execution-result"))
    presentation: Channel[PresentationSignal] = field(default_factory=lambda: Channel("presentation"))
    state: Channel[dict[str, Any]] = field(default_factory=lambda: Channel("state"))
    notice: Channel[Notice] = field(default_factory=lambda: Channel("notice"))
