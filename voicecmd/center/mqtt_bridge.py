"""Expose the confirmation surface over MQTT.

Channel traffic is mirrored through ``CenterMqtt``; inbound ``confirm/set``
payloads are one of run, confirm_key, edit, edit:<text>, pause, cancel, dismiss
or JSON ``{"action": "...", "text": "..."}``.

paho delivers messages on its network thread; everything that touches the
controller is handed to the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any

from .channels import EventChannels
from .mqtt import CONFIRM_SET, TRANSCRIPT

if TYPE_CHECKING:
    from .confirm import ConfirmationController
    from .mqtt import CenterMqtt

LOGGER = logging.getLogger(__name__)

CONFIRM_ACTIONS = {"run", "confirm_key", "edit", "set_text", "pause", "cancel", "dismiss"}
_ACTION_ALIASES = {
    "confirm": "run",
    "execute": "run",
    "key": "confirm_key",
    "toggle_pause": "pause",
    "resume": "pause",
    "close": "dismiss",
}


def parse_confirm_action(payload: str) -> tuple[str, str | None] | None:
    """Return ``(action, text)`` for a confirm/set payload, or None if unrecognised."""
    raw = (payload or "").strip()
    if not raw:
        return None
    action: str
    text: str | None = None
    if raw.startswith("{"):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        action = str(data.get("action") or "").strip().lower()
        if isinstance(data.get("text"), str):
            text = data["text"]
    else:
        action, sep, rest = raw.partition(":")
        action = action.strip().lower()
        if sep:
            text = rest
    action = _ACTION_ALIASES.get(action, action)
    if action == "edit" and text is not None:
        action = "set_text"
    if action not in CONFIRM_ACTIONS:
        return None
    return action, text


class ConfirmationMqttBridge:
    def __init__(
        self,
        *,
        mqtt: CenterMqtt,
        controller: ConfirmationController,
        channels: EventChannels,
        loop: asyncio.AbstractEventLoop,
        on_transcript: Callable[[str], Awaitable[Any]],
        logger: logging.Logger | None = None,
    ) -> None:
        self.mqtt = mqtt
        self.controller = controller
        self.channels = channels
        self.loop = loop
        self._on_transcript = on_transcript
        self.logger = logger or LOGGER
        self._unsubscribers: list[Callable[[], None]] = []

    def attach(self) -> None:
        """Mirror channel traffic to MQTT."""
        self._unsubscribers.extend(
            [
                self.channels.state.subscribe(self.mqtt.publish_snapshot),
                self.channels.presentation.subscribe(self.mqtt.publish_lifecycle),
                self.channels.execution_result.subscribe(self.mqtt.publish_result),
                self.channels.notice.subscribe(self.mqtt.publish_notice),
            ]
        )

    def detach(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()
        self.mqtt.clear_routes()

    def subscribe(self) -> None:
        try:
            self.mqtt.route(TRANSCRIPT, self._handle_transcript)
            self.mqtt.route(CONFIRM_SET, self._handle_command)
        except Exception as exc:
            self.logger.error("[mqtt] Failed to subscribe to confirmation topics: %s", exc, exc_info=True)

    # ------------------------------------------------------------------
    # Inbound (paho thread)
    # ------------------------------------------------------------------

    def _handle_transcript(self, payload: str) -> None:
        text = payload.strip()
        if not text:
            return
        future = asyncio.run_coroutine_threadsafe(self._on_transcript(text), self.loop)
        future.add_done_callback(self._log_transcript_failure)

    def _log_transcript_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.logger.error("[mqtt] Transcript handling failed: %s", exc, exc_info=exc)

    def _handle_command(self, payload: str) -> None:
        parsed = parse_confirm_action(payload)
        if parsed is None:
            self.logger.debug("[mqtt] Ignoring unknown confirm command: %s", payload)
            return
        action, text = parsed
        self.loop.call_soon_threadsafe(self.apply_action, action, text)

    # ------------------------------------------------------------------
    # Loop thread
    # ------------------------------------------------------------------

    def apply_action(self, action: str, text: str | None = None) -> None:
        controller = self.controller
        if action == "run":
            controller.confirm()
        elif action == "confirm_key":
            controller.press_confirm_key()
        elif action == "edit":
            controller.edit()
        elif action == "set_text":
            controller.edit()
            controller.set_edited_text(text or "")
        elif action == "pause":
            controller.toggle_pause()
        elif action in {"cancel", "dismiss"}:
            controller.cancel()

