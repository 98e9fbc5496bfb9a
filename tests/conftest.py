"""Shared test fixtures for the voice command center test suite.

This module provides reusable fixtures for:
- Logger mocking
- MQTT client mocking
- LLM configuration and provider mocking
- Voice command, settings and resolved command factories
- A scripted execution runner for the confirmation surface
"""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock, Mock

import paho.mqtt.client as mqtt
import pytest
from voicecmd.center.channels import EventChannels
from voicecmd.center.config import (
    ExecutionOptions,
    LLMConfig,
    MqttConfig,
    ShellVariant,
    VoiceCommand,
    VoiceCommandSettings,
)
from voicecmd.center.errors import ExecutionFailure
from voicecmd.center.models import CommandSource, ResolvedCommand

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Create a basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        username=None,
        password=None,
        tls_enabled=False,
        cert=None,
        key=None,
        ca_cert=None,
        topic_base="voicecmd/test-desk",
    )


@pytest.fixture
def mqtt_config_with_tls():
    """Create MQTT configuration with TLS and authentication enabled."""
    return MqttConfig(
        host="localhost",
        port=8883,
        username="mqtt_user",
        password="mqtt_pass",
        tls_enabled=True,
        cert="/path/to/client.crt",
        key="/path/to/client.key",
        ca_cert="/path/to/ca.crt",
        topic_base="voicecmd/test-desk",
    )


@pytest.fixture
def mock_mqtt_client():
    """Create a mock paho MQTT client."""
    client = Mock(spec=mqtt.Client)
    client.connect = Mock()
    client.disconnect = Mock()
    client.subscribe = Mock(return_value=(mqtt.MQTT_ERR_SUCCESS, 1))
    client.unsubscribe = Mock(return_value=(mqtt.MQTT_ERR_SUCCESS, 2))
    client.will_set = Mock()

    message_info = Mock(spec=mqtt.MQTTMessageInfo)
    message_info.rc = mqtt.MQTT_ERR_SUCCESS
    message_info.mid = 1
    client.publish = Mock(return_value=message_info)

    client.loop_start = Mock()
    client.loop_stop = Mock()
    client.is_connected = Mock(return_value=True)
    return client


# ============================================================================
# LLM Fixtures
# ============================================================================


@pytest.fixture
def make_llm_config():
    """Factory fixture for creating LLM configs with custom overrides.

    Usage:
        config = make_llm_config(provider="anthropic", anthropic_api_key="key")
    """

    def _create_config(**overrides: Any) -> LLMConfig:
        defaults = {
            "provider": "openai",
            "openai_model": "gpt-4o-mini",
            "openai_api_key": "test_key",
            "openai_base_url": "https://api.openai.com/v1",
            "openai_timeout": 30,
            "gemini_model": "gemini-pro",
            "gemini_api_key": None,
            "gemini_base_url": "https://generativelanguage.googleapis.com/v1beta",
            "gemini_timeout": 30,
            "anthropic_model": "claude-3-5-haiku-20241022",
            "anthropic_api_key": None,
            "anthropic_base_url": "https://api.anthropic.com/v1",
            "anthropic_timeout": 45,
        }
        defaults.update(overrides)
        return LLMConfig(**defaults)  # type: ignore[arg-type]

    return _create_config


@pytest.fixture
def mock_llm_provider():
    """Create a mock LLM provider whose complete() returns a single command."""
    provider = AsyncMock()
    provider.name = "mock"
    provider.complete = AsyncMock(return_value="Get-Date")
    return provider


# ============================================================================
# Test Data Factories
# ============================================================================


@pytest.fixture
def make_command():
    """Factory fixture for voice commands.

    Usage:
        command = make_command("lock computer", "rundll32.exe user32.dll,LockWorkStation")
    """

    def _create(trigger: str, script: str = "Write-Output ok", **overrides: Any) -> VoiceCommand:
        defaults: dict[str, Any] = {
            "id": overrides.pop("id", f"vc_{trigger.replace(' ', '_')}"),
            "name": overrides.pop("name", trigger.title()),
            "trigger_phrase": trigger,
            "script": script,
        }
        defaults.update(overrides)
        return VoiceCommand(**defaults)

    return _create


@pytest.fixture
def make_settings():
    """Factory fixture for settings snapshots."""

    def _create(commands: tuple[VoiceCommand, ...] | list[VoiceCommand] = (), **overrides: Any) -> VoiceCommandSettings:
        defaults: dict[str, Any] = {
            "commands": tuple(commands),
            "system_prompt": "Reply with one command or UNSAFE_REQUEST.",
        }
        defaults.update(overrides)
        return VoiceCommandSettings(**defaults)

    return _create


@pytest.fixture
def make_resolved():
    """Factory fixture for resolved commands ready to show on the surface."""

    def _create(
        command_text: str = "Get-Date",
        *,
        source: CommandSource = CommandSource.MATCHED,
        auto_run: bool = False,
        auto_run_seconds: float = 0.0,
        silent: bool = True,
        spoken_text: str = "what time is it",
    ) -> ResolvedCommand:
        return ResolvedCommand(
            source=source,
            command_text=command_text,
            spoken_text=spoken_text,
            execution_options=ExecutionOptions(silent=silent, shell_variant=ShellVariant.POWERSHELL),
            auto_run=auto_run,
            auto_run_seconds=auto_run_seconds,
        )

    return _create


@pytest.fixture
def channels():
    return EventChannels()


class ScriptedRunner:
    """Stand-in for ExecutionRunner that records calls and replays outcomes."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ExecutionOptions]] = []
        self.output = "ok"
        self.failure: ExecutionFailure | None = None
        self.gate = None

    async def run(self, command_text: str, options: ExecutionOptions) -> str:
        self.calls.append((command_text, options))
        if self.gate is not None:
            await self.gate.wait()
        if self.failure is not None:
            raise self.failure
        return self.output


@pytest.fixture
def scripted_runner():
    return ScriptedRunner()
