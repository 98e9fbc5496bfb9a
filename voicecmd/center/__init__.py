"""
Voice command resolution and confirmation

This package turns a transcript into a command the user confirms before it runs:

- Matching: trigger phrase similarity with deterministic tie-breaking
- Fallback: one-line command generation through an LLM, with an unsafe sentinel
- Confirmation: presenting/editing/executing state machine with auto-run countdown,
  pause, double-press confirm and auto-dismiss
- Execution: PowerShell/pwsh/bash invocation with timeout and process-group kill
- History: bounded FIFO log of execution results

Key modules:
- config: Configuration management from environment variables
- matcher: Trigger phrase scoring
- fallback / llm: LLM-backed command generation
- confirm: Confirmation state machine
- runner: Shell execution
- history: Execution log
- pipeline: Transcript -> presented command or notice
- service: Wiring for the daemon, including the MQTT surface
"""

from __future__ import annotations

__all__ = [
    "config",
    "matcher",
    "fallback",
    "llm",
    "confirm",
    "runner",
    "history",
    "pipeline",
    "service",
]
