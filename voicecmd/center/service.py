"""Wire the pipeline, confirmation surface, history and MQTT together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from .channels import EventChannels
from .config import CenterConfig, VoiceCommandSettings
from .confirm import ConfirmationController
from .fallback import FallbackGenerator
from .history import ExecutionLog
from .llm import LLMProvider, build_llm_provider
from .mqtt import CenterMqtt
from .mqtt_bridge import ConfirmationMqttBridge
from .pipeline import Resolution, VoiceCommandPipeline
from .runner import ExecutionRunner

LOGGER = logging.getLogger(__name__)


class VoiceCommandCenter:
    def __init__(
        self,
        config: CenterConfig,
        *,
        provider: LLMProvider | None = None,
        runner: ExecutionRunner | None = None,
        mqtt: CenterMqtt | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._settings = config.settings
        self.channels = EventChannels()

        if provider is None and config.settings.llm_fallback_enabled:
            provider = build_llm_provider(config.llm, self._logger)
        self.generator = FallbackGenerator(provider, self._logger)
        self.pipeline = VoiceCommandPipeline(
            self.channels,
            self.generator,
            logger=self._logger,
            log_transcripts=config.log_transcripts,
        )
        self.runner = runner or ExecutionRunner(self._logger)
        self.controller = ConfirmationController(self.runner, self.channels, self._logger)
        self.history = ExecutionLog()
        self.history.attach(self.channels.execution_result)
        self.channels.show.subscribe(self.controller.show)

        self.mqtt = mqtt or CenterMqtt(config.mqtt, self._logger)
        self.bridge: ConfirmationMqttBridge | None = None
        self._shutdown: asyncio.Event | None = None

    @property
    def settings(self) -> VoiceCommandSettings:
        return self._settings

    def update_settings(self, settings: VoiceCommandSettings) -> None:
        """Swap the snapshot read by the next resolution."""
        self._settings = settings

    def set_auto_run(self, enabled: bool, seconds: float | None = None) -> None:
        changes: dict[str, object] = {"auto_run_enabled": enabled}
        if seconds is not None:
            changes["auto_run_seconds"] = max(0.0, seconds)
        self._settings = replace(self._settings, **changes)

    async def handle_transcript(self, spoken_text: str) -> Resolution:
        return await self.pipeline.handle_transcript(spoken_text, self._settings)

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        if not self.mqtt.connect():
            self._logger.info("[service] Running without MQTT; transcripts must be injected locally")
            return
        self.bridge = ConfirmationMqttBridge(
            mqtt=self.mqtt,
            controller=self.controller,
            channels=self.channels,
            loop=loop,
            on_transcript=self.handle_transcript,
            logger=self._logger,
        )
        self.bridge.attach()
        self.bridge.subscribe()
        self.channels.state.emit(self.controller.snapshot())
        self._logger.info("[service] Listening for transcripts on %s", self.config.transcript_topic)

    async def run(self) -> None:
        await self.start()
        if self._shutdown is not None:
            await self._shutdown.wait()

    async def shutdown(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()
        await self.controller.close()
        if self.bridge is not None:
            self.bridge.detach()
            self.bridge = None
        self.mqtt.disconnect()
