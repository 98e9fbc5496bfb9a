"""Bounded FIFO log of execution results."""

from __future__ import annotations

import secrets
import string
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .channels import Channel
from .models import ExecutionResult

MAX_LOG_ENTRIES = 100

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _new_entry_id(result: ExecutionResult) -> str:
    epoch_ms = int(result.timestamp.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"log_{epoch_ms}_{suffix}"


@dataclass(frozen=True)
class LogEntry:
    id: str
    result: ExecutionResult

    def copy_text(self) -> str:
        return self.result.command_text

    def format(self) -> str:
        stamp = self.result.timestamp.astimezone().strftime("%H:%M:%S")
        output = self.result.output or "(no output)"
        return f"[{stamp}] [{self.result.status_tag}] {self.result.command_text}\n{output}"


class ExecutionLog:
    """Keep the most recent ``MAX_LOG_ENTRIES`` results; the oldest fall off first."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=max(1, max_entries))
        self._lock = threading.Lock()

    def append(self, result: ExecutionResult) -> LogEntry:
        entry = LogEntry(id=_new_entry_id(result), result=result)
        with self._lock:
            self._entries.append(entry)
        return entry

    def attach(self, channel: Channel[ExecutionResult]) -> Callable[[], None]:
        return channel.subscribe(self.append)

    def entries(self) -> list[LogEntry]:
        """Oldest first, in arrival order."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def to_text(self) -> str:
        return "\n\n".join(entry.format() for entry in self.entries())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
