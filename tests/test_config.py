"""Tests for configuration loading."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from voicecmd.center.config import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_SYSTEM_PROMPT,
    CenterConfig,
    ExecutionOptions,
    ShellVariant,
    VoiceCommand,
    clamp_threshold,
    load_voice_commands,
    normalize_execution_policy,
    render_commands_for_display,
)
from voicecmd.center.matcher import MatchEngine
from voicecmd.utils import parse_bool, sanitize_topic_segment

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestParseHelpers:
    @pytest.mark.parametrize(("value", "expected"), [("1", True), ("yes", True), ("off", False), ("", True), (None, True)])
    def test_parse_bool_defaults(self, value, expected):
        assert parse_bool(value, True) is expected

    def test_sanitize_topic_segment(self):
        assert sanitize_topic_segment("Desk PC.local") == "desk_pc_local"
        assert sanitize_topic_segment("!!!") == "device"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("pwsh", ShellVariant.PWSH), ("core", ShellVariant.PWSH), ("bash", ShellVariant.POSIX), ("zsh", ShellVariant.POWERSHELL), (None, ShellVariant.POWERSHELL)],
    )
    def test_shell_variant_parse(self, value, expected):
        assert ShellVariant.parse(value) is expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("Bypass", "bypass"), ("RemoteSigned", "remote_signed"), ("remote-signed", "remote_signed"), ("default", None), (None, None)],
    )
    def test_normalize_execution_policy(self, value, expected):
        assert normalize_execution_policy(value) == expected

    @pytest.mark.parametrize(("value", "expected"), [(0.2, 0.5), (1.4, 1.0), (0.8, 0.8), (0, None), (None, None), ("x", None)])
    def test_clamp_threshold(self, value, expected):
        assert clamp_threshold(value) == expected


# ---------------------------------------------------------------------------
# Execution options
# ---------------------------------------------------------------------------


class TestExecutionOptions:
    def test_timeout_has_floor_of_one_second(self):
        assert ExecutionOptions(timeout_seconds=0).timeout_seconds == 1

    def test_command_overrides_defaults(self):
        defaults = ExecutionOptions(silent=True, working_directory="C:\\Users")
        command = VoiceCommand(
            id="vc_0",
            name="Notes",
            trigger_phrase="open notes",
            script="notepad",
            silent=False,
            shell_variant=ShellVariant.PWSH,
        )
        resolved = command.resolve_execution_options(defaults)
        assert resolved.silent is False
        assert resolved.shell_variant is ShellVariant.PWSH
        assert resolved.working_directory == "C:\\Users"

    def test_no_overrides_returns_defaults(self):
        defaults = ExecutionOptions()
        command = VoiceCommand(id="vc_0", name="x", trigger_phrase="x", script="x")
        assert command.resolve_execution_options(defaults) is defaults


# ---------------------------------------------------------------------------
# Voice command loading
# ---------------------------------------------------------------------------


class TestLoadVoiceCommands:
    def test_inline_json(self):
        inline = json.dumps(
            [
                {"name": "Lock", "trigger_phrase": "lock computer", "script": "rundll32.exe user32.dll,LockWorkStation"},
                {"trigger_phrase": "open notes", "script": "notepad", "shell": "pwsh", "silent": "false", "timeout_seconds": 5},
            ]
        )
        commands = load_voice_commands(None, inline)
        assert [c.id for c in commands] == ["vc_0", "vc_1"]
        assert commands[0].similarity_threshold == DEFAULT_SIMILARITY_THRESHOLD
        assert commands[1].name == "open notes"
        assert commands[1].shell_variant is ShellVariant.PWSH
        assert commands[1].silent is False
        assert commands[1].timeout_seconds == 5

    def test_skips_invalid_and_duplicate_entries(self):
        inline = json.dumps(
            [
                {"id": "a", "trigger_phrase": "", "script": "x"},
                {"id": "b", "trigger_phrase": "one", "script": "x"},
                {"id": "b", "trigger_phrase": "two", "script": "y"},
                {"id": "c", "trigger_phrase": "three"},
            ]
        )
        commands = load_voice_commands(None, inline)
        assert [c.trigger_phrase for c in commands] == ["one"]

    def test_file_and_inline_are_combined(self, tmp_path):
        path = tmp_path / "commands.json"
        path.write_text(json.dumps({"id": "file", "trigger_phrase": "from file", "script": "x"}), encoding="utf-8")
        inline = json.dumps([{"id": "inline", "trigger_phrase": "inline", "script": "y"}])
        commands = load_voice_commands(path, inline)
        assert [c.id for c in commands] == ["file", "inline"]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(False, False), ("false", False), ("0", False), ("off", False), (0, False), (True, True), ("yes", True), ("", True), (None, True)],
    )
    def test_enabled_flag_parsing(self, raw, expected):
        entry = {"trigger_phrase": "lock computer", "script": "lock.exe"}
        if raw is not None:
            entry["enabled"] = raw
        commands = load_voice_commands(None, json.dumps([entry]))
        assert commands[0].enabled is expected

    def test_disabled_string_flag_never_matches(self):
        inline = json.dumps([{"trigger_phrase": "lock computer", "script": "lock.exe", "enabled": "false"}])
        commands = load_voice_commands(None, inline)
        assert MatchEngine().resolve("lock computer", commands) is None

    def test_malformed_json_is_ignored(self):
        assert load_voice_commands(None, "[not json") == []

    def test_render_for_display(self):
        commands = [
            VoiceCommand(id="a", name="Lock", trigger_phrase="lock computer", script="lock.exe"),
            VoiceCommand(id="b", name="Old", trigger_phrase="old", script="old.exe", enabled=False),
        ]
        assert render_commands_for_display(commands) == (
            '- Lock: "lock computer" -> lock.exe\n- Old: "old" -> old.exe (disabled)'
        )


# ---------------------------------------------------------------------------
# CenterConfig.from_env
# ---------------------------------------------------------------------------


class TestCenterConfigFromEnv:
    def test_defaults(self):
        with patch("voicecmd.center.config.socket.gethostname", return_value="Desk-PC"):
            config = CenterConfig.from_env({})
        settings = config.settings
        assert config.hostname == "Desk-PC"
        assert config.mqtt.topic_base == "voicecmd/desk-pc"
        assert config.transcript_topic == "voicecmd/desk-pc/transcript"
        assert settings.commands == ()
        assert settings.default_threshold == DEFAULT_SIMILARITY_THRESHOLD
        assert settings.llm_fallback_enabled is True
        assert settings.auto_run_enabled is False
        assert settings.auto_run_seconds == 4.0
        assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert settings.match_metric == "jaccard"
        assert settings.execution_defaults == ExecutionOptions()
        assert config.llm.provider == "openai"
        assert config.mqtt.host is None
        assert config.log_transcripts is False

    def test_overrides(self, tmp_path):
        prompt = tmp_path / "prompt.txt"
        prompt.write_text("Only bash one-liners.", encoding="utf-8")
        env = {
            "VOICECMD_HOSTNAME": "lab",
            "VOICECMD_COMMANDS": json.dumps([{"trigger_phrase": "lock", "script": "loginctl lock-session"}]),
            "VOICECMD_DEFAULT_THRESHOLD": "0.3",
            "VOICECMD_MATCH_METRIC": "EDIT",
            "VOICECMD_LLM_FALLBACK": "false",
            "VOICECMD_SYSTEM_PROMPT_FILE": str(prompt),
            "VOICECMD_AUTO_RUN": "true",
            "VOICECMD_AUTO_RUN_SECONDS": "2.5",
            "VOICECMD_SILENT": "false",
            "VOICECMD_SHELL": "bash",
            "VOICECMD_EXECUTION_POLICY": "Bypass",
            "VOICECMD_WORKING_DIRECTORY": " /tmp ",
            "VOICECMD_TIMEOUT_SECONDS": "0",
            "VOICECMD_LLM_PROVIDER": "Anthropic",
            "ANTHROPIC_API_KEY": "a-key",
            "MQTT_HOST": "broker.local",
            "MQTT_PORT": "8883",
            "MQTT_USER": "user",
            "MQTT_PASS": "pass",
            "MQTT_TLS_ENABLED": "true",
            "VOICECMD_TOPIC_BASE": "home/voice/",
            "VOICECMD_LOG_TRANSCRIPTS": "1",
        }
        config = CenterConfig.from_env(env)
        settings = config.settings
        assert [c.trigger_phrase for c in settings.commands] == ["lock"]
        assert settings.default_threshold == 0.5
        assert settings.match_metric == "edit"
        assert settings.llm_fallback_enabled is False
        assert settings.system_prompt == "Only bash one-liners."
        assert settings.auto_run_enabled is True
        assert settings.auto_run_seconds == 2.5
        defaults = settings.execution_defaults
        assert defaults.silent is False
        assert defaults.shell_variant is ShellVariant.POSIX
        assert defaults.execution_policy == "bypass"
        assert defaults.working_directory == "/tmp"
        assert defaults.timeout_seconds == 1
        assert config.llm.provider == "anthropic"
        assert config.llm.anthropic_api_key == "a-key"
        assert config.mqtt.host == "broker.local"
        assert config.mqtt.port == 8883
        assert config.mqtt.username == "user"
        assert config.mqtt.tls_enabled is True
        assert config.mqtt.topic_base == "home/voice"
        assert config.log_transcripts is True

    def test_missing_command_file_is_ignored(self, tmp_path):
        config = CenterConfig.from_env({"VOICECMD_HOSTNAME": "lab", "VOICECMD_COMMANDS_FILE": str(tmp_path / "nope.json")})
        assert config.settings.commands == ()
