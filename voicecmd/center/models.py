"""Value types passed between resolution, confirmation and history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .config import ExecutionOptions

UNSAFE_SENTINEL = "UNSAFE_REQUEST"


class CommandSource(str, Enum):
    MATCHED = "matched"
    GENERATED = "generated"


class PresentationSignal(str, Enum):
    """Lifecycle hints for whatever window hosts the confirmation surface."""

    SHOW = "show"
    EXPAND = "expand"
    COLLAPSE = "collapse"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class ResolvedCommand:
    source: CommandSource
    command_text: str
    spoken_text: str
    execution_options: ExecutionOptions
    auto_run: bool = False
    auto_run_seconds: float = 0.0
    command_name: str | None = None
    score: float | None = None

    @property
    def from_llm(self) -> bool:
        return self.source is CommandSource.GENERATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "command": self.command_text,
            "spoken_text": self.spoken_text,
            "command_name": self.command_name,
            "score": self.score,
            "auto_run": self.auto_run,
            "auto_run_seconds": self.auto_run_seconds,
            "execution_options": self.execution_options.to_dict(),
        }


@dataclass(frozen=True)
class ExecutionResult:
    command_text: str
    spoken_text: str
    output: str
    is_error: bool
    opened_in_window: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def status_tag(self) -> str:
        if self.is_error:
            return "ERROR"
        if self.opened_in_window:
            return "OPENED"
        return "OK"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "command": self.command_text,
            "spoken_text": self.spoken_text,
            "output": self.output,
            "is_error": self.is_error,
            "opened_in_window": self.opened_in_window,
        }


@dataclass(frozen=True)
class Notice:
    """A dismissable message for the user when nothing reached the confirmation surface."""

    kind: str
    message: str
    spoken_text: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message, "spoken_text": self.spoken_text}
