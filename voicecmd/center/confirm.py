"""
Confirmation surface state machine

Holds at most one resolved command and decides when it runs.

States: IDLE -> PRESENTING -> {EDITING, EXECUTING} -> RESOLVED_SUCCESS | RESOLVED_ERROR -> IDLE

Timers owned per presentation:
- auto-run countdown: a ``RecurringTicker`` firing every ``TICK_INTERVAL``;
  only matched commands with auto-run enabled get one. Edit, pause, cancel and
  leaving PRESENTING stop it.
- double-confirm window: armed by the first confirm-key press, disarmed by the
  second press, by expiry, or by any state change.
- success auto-dismiss: returns to IDLE ``SUCCESS_DISMISS_DELAY`` seconds after
  a successful run. Errors stay until dismissed.

A new ``show()`` replaces whatever is presented immediately. During EXECUTING
it is refused, as are ``cancel()`` and ``dismiss()``, so an in-flight process
is never orphaned from its result.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .channels import EventChannels
from .errors import ExecutionFailure, ValidationError
from .models import CommandSource, ExecutionResult, PresentationSignal, ResolvedCommand
from .runner import ExecutionRunner, validate_command_text
from .ticker import RecurringTicker

LOGGER = logging.getLogger(__name__)

TICK_INTERVAL = 0.05
DOUBLE_CONFIRM_WINDOW = 0.8
SUCCESS_DISMISS_DELAY = 1.0


class ConfirmState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    EDITING = "editing"
    EXECUTING = "executing"
    RESOLVED_SUCCESS = "resolved_success"
    RESOLVED_ERROR = "resolved_error"


_RUNNABLE = (ConfirmState.PRESENTING, ConfirmState.EDITING)


@dataclass(frozen=True)
class SurfaceStatus:
    kind: str
    message: str


class ConfirmationController:
    def __init__(
        self,
        runner: ExecutionRunner,
        channels: EventChannels,
        logger: logging.Logger | None = None,
        *,
        tick_interval: float = TICK_INTERVAL,
        double_confirm_window: float = DOUBLE_CONFIRM_WINDOW,
        success_dismiss_delay: float = SUCCESS_DISMISS_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.channels = channels
        self._logger = logger or LOGGER
        self._double_confirm_window = double_confirm_window
        self._success_dismiss_delay = success_dismiss_delay
        self._clock = clock
        self._ticker = RecurringTicker(tick_interval, self.handle_tick, name="auto-run", logger=self._logger)
        self._tasks: set[asyncio.Task] = set()

        self._state = ConfirmState.IDLE
        self._current: ResolvedCommand | None = None
        self._edited_text = ""
        self._status: SurfaceStatus | None = None
        self._paused = False
        self._expanded = False
        self._executing = False
        self._countdown_total_ms = 0.0
        self._remaining_ms: float | None = None
        self._last_tick = 0.0
        self._last_published_second: int | None = None
        self._confirm_window: asyncio.TimerHandle | None = None
        self._pending_dismiss: asyncio.TimerHandle | None = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConfirmState:
        return self._state

    @property
    def current(self) -> ResolvedCommand | None:
        return self._current

    @property
    def edited_text(self) -> str:
        return self._edited_text

    @property
    def status(self) -> SurfaceStatus | None:
        return self._status

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def remaining_ms(self) -> float | None:
        return self._remaining_ms

    @property
    def countdown_active(self) -> bool:
        return self._ticker.running

    @property
    def awaiting_second_press(self) -> bool:
        return self._confirm_window is not None

    def snapshot(self) -> dict[str, Any]:
        current = self._current
        return {
            "state": self._state.value,
            "command": current.command_text if current else None,
            "command_name": current.command_name if current else None,
            "spoken_text": current.spoken_text if current else None,
            "source": current.source.value if current else None,
            "edited_text": self._edited_text if self._state is ConfirmState.EDITING else None,
            "paused": self._paused,
            "countdown_active": self.countdown_active,
            "remaining_seconds": (
                round(self._remaining_ms / 1000, 2) if self._remaining_ms is not None else None
            ),
            "status": {"kind": self._status.kind, "message": self._status.message} if self._status else None,
            "expanded": self._expanded,
            "awaiting_second_press": self.awaiting_second_press,
        }

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def show(self, resolved: ResolvedCommand) -> bool:
        if self._state is ConfirmState.EXECUTING:
            self._logger.warning("[confirm] Ignoring new command while another is executing: %s", resolved.command_text)
            return False
        if self._state in _RUNNABLE:
            self._logger.info("[confirm] Replacing presented command with %s", resolved.command_text)

        was_expanded = self._expanded
        self._reset_presentation()
        self._current = resolved
        self._edited_text = resolved.command_text
        if was_expanded:
            self.channels.presentation.emit(PresentationSignal.COLLAPSE)
        self._set_state(ConfirmState.PRESENTING, publish=False)
        self.channels.presentation.emit(PresentationSignal.SHOW)

        if resolved.source is CommandSource.MATCHED and resolved.auto_run and resolved.auto_run_seconds > 0:
            self._start_countdown(resolved.auto_run_seconds)
        self._publish()
        return True

    def edit(self) -> bool:
        if self._state is not ConfirmState.PRESENTING:
            return False
        self._discard_countdown()
        self._cancel_confirm_window()
        self._status = None
        self._edited_text = self._current.command_text if self._current else ""
        self._set_state(ConfirmState.EDITING)
        return True

    def set_edited_text(self, text: str) -> bool:
        if self._state is not ConfirmState.EDITING:
            return False
        self._edited_text = text
        self._publish()
        return True

    def toggle_pause(self) -> bool:
        """Background interaction: freeze or resume the countdown.

        Only acts while a countdown is running or already paused; returns
        whether anything changed.
        """
        if self._state is not ConfirmState.PRESENTING:
            return False
        if self._paused:
            self._paused = False
            self._last_tick = self._clock()
            self._ticker.start()
            self._logger.debug("[confirm] Countdown resumed at %.0f ms", self._remaining_ms or 0)
        elif self.countdown_active:
            self._advance_countdown()
            self._paused = True
            self._ticker.stop()
            self._logger.debug("[confirm] Countdown paused at %.0f ms", self._remaining_ms or 0)
        else:
            return False
        self._publish()
        return True

    def cancel(self) -> bool:
        if self._state is ConfirmState.EXECUTING:
            self._logger.info("[confirm] Cannot cancel while a command is executing")
            return False
        had_presentation = self._state is not ConfirmState.IDLE
        self._reset_presentation()
        self._current = None
        self._edited_text = ""
        self._set_state(ConfirmState.IDLE)
        if had_presentation:
            self.channels.presentation.emit(PresentationSignal.DISMISS)
        return True

    def dismiss(self) -> bool:
        return self.cancel()

    # ------------------------------------------------------------------
    # Confirmation gestures
    # ------------------------------------------------------------------

    def confirm(self) -> asyncio.Task | None:
        """Single-action confirm (button or modifier shortcut)."""
        if self._state not in _RUNNABLE or self._executing:
            return None
        return self._spawn_run()

    def press_confirm_key(self) -> asyncio.Task | None:
        """Double-press gesture: the second press inside the window runs."""
        if self._state not in _RUNNABLE or self._executing:
            return None
        if self._confirm_window is not None:
            self._cancel_confirm_window()
            return self._spawn_run()
        loop = asyncio.get_running_loop()
        self._confirm_window = loop.call_later(self._double_confirm_window, self._expire_confirm_window)
        self._publish()
        return None

    async def run(self) -> ExecutionResult | None:
        if self._executing or self._state not in _RUNNABLE or self._current is None:
            self._logger.debug("[confirm] run() ignored in state %s", self._state.value)
            return None

        resolved = self._current
        text = self._edited_text if self._state is ConfirmState.EDITING else resolved.command_text
        try:
            text = validate_command_text(text)
        except ValidationError as exc:
            self._logger.warning("[confirm] Refusing to run: %s", exc)
            self._discard_countdown()
            self._status = SurfaceStatus("error", str(exc))
            self._publish()
            return None

        self._executing = True
        self._discard_countdown()
        self._cancel_confirm_window()
        self._status = None
        self._set_state(ConfirmState.EXECUTING)
        try:
            output = await self.runner.run(text, resolved.execution_options)
        except ExecutionFailure as exc:
            result = ExecutionResult(text, resolved.spoken_text, exc.output, is_error=True)
        except asyncio.CancelledError:
            self._executing = False
            self._set_state(ConfirmState.IDLE)
            raise
        except Exception as exc:
            self._logger.exception("[confirm] Unexpected failure while running %s", text)
            result = ExecutionResult(text, resolved.spoken_text, str(exc) or exc.__class__.__name__, is_error=True)
        else:
            result = ExecutionResult(
                text,
                resolved.spoken_text,
                output,
                is_error=False,
                opened_in_window=not resolved.execution_options.silent,
            )
        self._executing = False
        self._finish(result)
        return result

    # ------------------------------------------------------------------
    # Countdown
    # ------------------------------------------------------------------

    def handle_tick(self) -> None:
        if (
            self._state is not ConfirmState.PRESENTING
            or self._paused
            or self._status is not None
            or self._executing
            or self._remaining_ms is None
        ):
            return
        self._advance_countdown()
        if self._remaining_ms > 0:
            second = math.ceil(self._remaining_ms / 1000)
            if second != self._last_published_second:
                self._last_published_second = second
                self._publish()
            return
        self._ticker.stop()
        total_ms = self._countdown_total_ms
        self._remaining_ms = None
        self._countdown_total_ms = 0.0
        if total_ms > 0:
            self._logger.info("[confirm] Auto-run countdown finished")
            self._spawn_run()

    def _start_countdown(self, seconds: float) -> None:
        self._countdown_total_ms = seconds * 1000
        self._remaining_ms = self._countdown_total_ms
        self._last_tick = self._clock()
        self._last_published_second = math.ceil(seconds)
        self._ticker.start()

    def _advance_countdown(self) -> None:
        now = self._clock()
        elapsed_ms = max(0.0, (now - self._last_tick) * 1000)
        self._last_tick = now
        if self._remaining_ms is not None:
            self._remaining_ms = max(0.0, self._remaining_ms - elapsed_ms)

    def _discard_countdown(self) -> None:
        self._ticker.stop()
        self._paused = False
        self._remaining_ms = None
        self._countdown_total_ms = 0.0
        self._last_published_second = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish(self, result: ExecutionResult) -> None:
        self.channels.execution_result.emit(result)
        if result.is_error:
            self._status = SurfaceStatus("error", result.output)
            self._expanded = True
            self._set_state(ConfirmState.RESOLVED_ERROR)
            self.channels.presentation.emit(PresentationSignal.EXPAND)
            return
        self._status = SurfaceStatus("success", result.output)
        self._set_state(ConfirmState.RESOLVED_SUCCESS)
        loop = asyncio.get_running_loop()
        self._pending_dismiss = loop.call_later(self._success_dismiss_delay, self._auto_dismiss)

    def _auto_dismiss(self) -> None:
        self._pending_dismiss = None
        if self._state is ConfirmState.RESOLVED_SUCCESS:
            self.cancel()

    def _expire_confirm_window(self) -> None:
        self._confirm_window = None
        self._publish()

    def _cancel_confirm_window(self) -> None:
        if self._confirm_window is not None:
            self._confirm_window.cancel()
            self._confirm_window = None

    def _reset_presentation(self) -> None:
        self._discard_countdown()
        self._cancel_confirm_window()
        if self._pending_dismiss is not None:
            self._pending_dismiss.cancel()
            self._pending_dismiss = None
        self._status = None
        self._expanded = False

    def _spawn_run(self) -> asyncio.Task:
        task = asyncio.create_task(self.run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_state(self, state: ConfirmState, *, publish: bool = True) -> None:
        if state is not self._state:
            self._logger.debug("[confirm] %s -> %s", self._state.value, state.value)
            self._state = state
        if publish:
            self._publish()

    def _publish(self) -> None:
        self.channels.state.emit(self.snapshot())

    async def drain(self) -> None:
        """Wait for implicit and gesture-triggered runs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._reset_presentation()
        await self.drain()
