"""Failure taxonomy for voice command resolution and execution."""

from __future__ import annotations


class VoiceCommandError(RuntimeError):
    """Base class for every recoverable voice command failure."""


class UnsafeRejection(VoiceCommandError):
    """The fallback generator refused the request (sentinel or unusable answer)."""


class GenerationFailure(VoiceCommandError):
    """The LLM provider could not be reached or returned nothing usable."""


class ValidationError(VoiceCommandError):
    """Attempted to execute empty or sentinel command text."""


class ExecutionFailure(VoiceCommandError):
    """A command ran (or tried to) and did not succeed."""

    def __init__(self, message: str, output: str | None = None) -> None:
        super().__init__(message)
        self.output = output if output is not None else message


class ExecutionTimeout(ExecutionFailure):
    """The command exceeded its wall-clock budget and was killed."""


class ExecutionError(ExecutionFailure):
    """The command exited non-zero or could not be spawned."""
