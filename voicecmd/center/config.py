"""Configuration helpers for the voice command center."""

from __future__ import annotations

import json
import logging
import os
import socket
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from voicecmd.utils import (
    parse_bool,
    parse_float,
    parse_int,
    sanitize_topic_segment,
    strip_or_none,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.75
MIN_SIMILARITY_THRESHOLD = 0.5
MAX_SIMILARITY_THRESHOLD = 1.0
DEFAULT_AUTO_RUN_SECONDS = 4.0
DEFAULT_TIMEOUT_SECONDS = 30
EXECUTION_POLICIES = {"bypass", "unrestricted", "remote_signed"}
MATCH_METRICS = {"jaccard", "edit"}


class ShellVariant(str, Enum):
    POWERSHELL = "powershell"
    PWSH = "pwsh"
    POSIX = "posix"

    @classmethod
    def parse(cls, value: str | None, default: ShellVariant | None = None) -> ShellVariant:
        fallback = default or cls.POWERSHELL
        if not value:
            return fallback
        lowered = value.strip().lower()
        aliases = {
            "legacy": cls.POWERSHELL,
            "windows_powershell": cls.POWERSHELL,
            "modern": cls.PWSH,
            "core": cls.PWSH,
            "sh": cls.POSIX,
            "bash": cls.POSIX,
        }
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError:
            return fallback


def normalize_execution_policy(value: str | None) -> str | None:
    """Map user input onto a known PowerShell execution policy, or ``None`` for the shell default."""
    if not value:
        return None
    lowered = str(value).strip().lower().replace("-", "_")
    if lowered == "remotesigned":
        lowered = "remote_signed"
    if lowered in EXECUTION_POLICIES:
        return lowered
    return None


def clamp_threshold(value: float | None) -> float | None:
    """Clamp a similarity threshold to [0.5, 1.0]; ``None`` or non-positive means "use the default"."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    return max(MIN_SIMILARITY_THRESHOLD, min(MAX_SIMILARITY_THRESHOLD, number))


@dataclass(frozen=True)
class ExecutionOptions:
    silent: bool = True
    load_profile: bool = False
    shell_variant: ShellVariant = ShellVariant.POWERSHELL
    execution_policy: str | None = None
    working_directory: str | None = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.timeout_seconds < 1:
            object.__setattr__(self, "timeout_seconds", 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "silent": self.silent,
            "load_profile": self.load_profile,
            "shell_variant": self.shell_variant.value,
            "execution_policy": self.execution_policy,
            "working_directory": self.working_directory,
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass(frozen=True)
class VoiceCommand:
    id: str
    name: str
    trigger_phrase: str
    script: str
    similarity_threshold: float | None = DEFAULT_SIMILARITY_THRESHOLD
    enabled: bool = True
    # Per-command overrides; None falls back to the global defaults.
    silent: bool | None = None
    load_profile: bool | None = None
    shell_variant: ShellVariant | None = None
    execution_policy: str | None = None
    working_directory: str | None = None
    timeout_seconds: int | None = None

    def resolve_execution_options(self, defaults: ExecutionOptions) -> ExecutionOptions:
        overrides: dict[str, Any] = {}
        if self.silent is not None:
            overrides["silent"] = self.silent
        if self.load_profile is not None:
            overrides["load_profile"] = self.load_profile
        if self.shell_variant is not None:
            overrides["shell_variant"] = self.shell_variant
        if self.execution_policy is not None:
            overrides["execution_policy"] = self.execution_policy
        if self.working_directory is not None:
            overrides["working_directory"] = self.working_directory
        if self.timeout_seconds is not None:
            overrides["timeout_seconds"] = self.timeout_seconds
        if not overrides:
            return defaults
        return replace(defaults, **overrides)


@dataclass(frozen=True)
class VoiceCommandSettings:
    """Snapshot of everything the resolution pipeline reads for one utterance."""

    commands: tuple[VoiceCommand, ...] = ()
    default_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    llm_fallback_enabled: bool = True
    system_prompt: str = ""
    auto_run_enabled: bool = False
    auto_run_seconds: float = DEFAULT_AUTO_RUN_SECONDS
    execution_defaults: ExecutionOptions = field(default_factory=ExecutionOptions)
    match_metric: str = "jaccard"


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    openai_model: str
    openai_api_key: str | None
    openai_base_url: str
    openai_timeout: int
    gemini_model: str
    gemini_api_key: str | None
    gemini_base_url: str
    gemini_timeout: int
    anthropic_model: str
    anthropic_api_key: str | None
    anthropic_base_url: str
    anthropic_timeout: int


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class CenterConfig:
    hostname: str
    settings: VoiceCommandSettings
    llm: LLMConfig
    mqtt: MqttConfig
    log_transcripts: bool

    @property
    def transcript_topic(self) -> str:
        return f"{self.mqtt.topic_base}/transcript"

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> CenterConfig:
        source = env if env is not None else os.environ
        hostname = source.get("VOICECMD_HOSTNAME") or socket.gethostname()

        command_file = None
        if path := source.get("VOICECMD_COMMANDS_FILE"):
            candidate = Path(path)
            if candidate.exists():
                command_file = candidate
            else:
                LOGGER.warning("Voice command file %s does not exist", candidate)
        commands = load_voice_commands(command_file, source.get("VOICECMD_COMMANDS"))

        execution_defaults = ExecutionOptions(
            silent=parse_bool(source.get("VOICECMD_SILENT"), True),
            load_profile=parse_bool(source.get("VOICECMD_LOAD_PROFILE"), False),
            shell_variant=ShellVariant.parse(source.get("VOICECMD_SHELL")),
            execution_policy=normalize_execution_policy(source.get("VOICECMD_EXECUTION_POLICY")),
            working_directory=strip_or_none(source.get("VOICECMD_WORKING_DIRECTORY")),
            timeout_seconds=max(1, parse_int(source.get("VOICECMD_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS)),
        )

        default_threshold = (
            clamp_threshold(parse_float(source.get("VOICECMD_DEFAULT_THRESHOLD"), DEFAULT_SIMILARITY_THRESHOLD))
            or DEFAULT_SIMILARITY_THRESHOLD
        )

        settings = VoiceCommandSettings(
            commands=tuple(commands),
            default_threshold=default_threshold,
            llm_fallback_enabled=parse_bool(source.get("VOICECMD_LLM_FALLBACK"), True),
            system_prompt=_load_system_prompt(source),
            auto_run_enabled=parse_bool(source.get("VOICECMD_AUTO_RUN"), False),
            auto_run_seconds=max(
                0.0, parse_float(source.get("VOICECMD_AUTO_RUN_SECONDS"), DEFAULT_AUTO_RUN_SECONDS)
            ),
            execution_defaults=execution_defaults,
            match_metric=_normalize_choice(source.get("VOICECMD_MATCH_METRIC"), MATCH_METRICS, "jaccard"),
        )

        llm = LLMConfig(
            provider=(source.get("VOICECMD_LLM_PROVIDER") or "openai").strip().lower(),
            openai_model=source.get("OPENAI_MODEL", "gpt-4o-mini"),
            openai_api_key=strip_or_none(source.get("OPENAI_API_KEY")),
            openai_base_url=source.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            openai_timeout=parse_int(source.get("OPENAI_TIMEOUT_SECONDS"), 45),
            gemini_model=source.get("GEMINI_MODEL", "gemini-1.5-flash-latest"),
            gemini_api_key=strip_or_none(source.get("GEMINI_API_KEY")),
            gemini_base_url=source.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            gemini_timeout=parse_int(source.get("GEMINI_TIMEOUT_SECONDS"), 45),
            anthropic_model=source.get("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022"),
            anthropic_api_key=strip_or_none(source.get("ANTHROPIC_API_KEY")),
            anthropic_base_url=source.get("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1"),
            anthropic_timeout=parse_int(source.get("ANTHROPIC_TIMEOUT_SECONDS"), 45),
        )

        topic_base = source.get("VOICECMD_TOPIC_BASE") or f"voicecmd/{sanitize_topic_segment(hostname)}"
        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        return CenterConfig(
            hostname=hostname,
            settings=settings,
            llm=llm,
            mqtt=mqtt,
            log_transcripts=parse_bool(source.get("VOICECMD_LOG_TRANSCRIPTS"), False),
        )


def load_voice_commands(command_file: Path | None, inline_json: str | None) -> list[VoiceCommand]:
    """Load voice commands from a JSON file and/or an inline JSON string.

    Entries without a trigger phrase or script are skipped. Entries without an
    id get ``vc_<position>``; duplicate ids keep the first occurrence.
    """
    candidates: list[dict] = []
    if command_file and command_file.exists():
        try:
            candidates.extend(_ensure_list(json.loads(command_file.read_text(encoding="utf-8"))))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Failed to read voice commands from %s: %s", command_file, exc)

    if inline_json:
        try:
            candidates.extend(_ensure_list(json.loads(inline_json)))
        except json.JSONDecodeError as exc:
            LOGGER.warning("Failed to parse inline voice commands: %s", exc)

    commands: list[VoiceCommand] = []
    seen: set[str] = set()
    for index, candidate in enumerate(candidates):
        trigger = str(candidate.get("trigger_phrase") or "").strip()
        script = str(candidate.get("script") or "").strip()
        if not trigger or not script:
            LOGGER.warning("Skipping voice command #%d: trigger_phrase and script are required", index)
            continue
        command_id = str(candidate.get("id") or f"vc_{index}").strip()
        if command_id in seen:
            LOGGER.warning("Skipping voice command with duplicate id %s", command_id)
            continue
        seen.add(command_id)

        raw_threshold = candidate.get("similarity_threshold", DEFAULT_SIMILARITY_THRESHOLD)
        shell = candidate.get("shell") or candidate.get("shell_variant")
        timeout = candidate.get("timeout_seconds")
        commands.append(
            VoiceCommand(
                id=command_id,
                name=str(candidate.get("name") or trigger),
                trigger_phrase=trigger,
                script=script,
                similarity_threshold=clamp_threshold(raw_threshold),
                enabled=_optional_bool(candidate.get("enabled"), True) is not False,
                silent=_optional_bool(candidate.get("silent")),
                load_profile=_optional_bool(candidate.get("load_profile")),
                shell_variant=ShellVariant.parse(str(shell)) if shell else None,
                execution_policy=normalize_execution_policy(candidate.get("execution_policy")),
                working_directory=strip_or_none(candidate.get("working_directory")),
                timeout_seconds=max(1, parse_int(str(timeout), DEFAULT_TIMEOUT_SECONDS)) if timeout else None,
            )
        )
    return commands


DEFAULT_SYSTEM_PROMPT = """You are a Windows command generator. The user will describe what they want to do, \
and you must generate a SINGLE PowerShell one-liner command that accomplishes it.

Rules:
1. Return ONLY the command, nothing else - no explanations, no markdown, no code blocks
2. The command must be a valid PowerShell one-liner that can run directly
3. Use Start-Process for launching applications
4. Use common Windows paths and commands
5. If the request is unclear or dangerous (like deleting system files), return: UNSAFE_REQUEST
6. Keep commands simple and safe

Example inputs and outputs:
- "open notepad" -> Start-Process notepad
- "open chrome" -> Start-Process chrome
- "lock the computer" -> rundll32.exe user32.dll,LockWorkStation
- "open word and excel" -> Start-Process winword; Start-Process excel
- "show my documents folder" -> Start-Process explorer -ArgumentList "$env:USERPROFILE\\Documents\""""


def render_commands_for_display(commands: Iterable[VoiceCommand]) -> str:
    """Human readable summary of the registered commands (used by the mock-test CLI)."""
    lines: list[str] = []
    for command in commands:
        marker = "" if command.enabled else " (disabled)"
        lines.append(f'- {command.name}: "{command.trigger_phrase}" -> {command.script}{marker}')
    return "\n".join(lines)


def _load_system_prompt(source: dict[str, str]) -> str:
    system_prompt = (source.get("VOICECMD_SYSTEM_PROMPT") or "").strip()
    prompt_file = source.get("VOICECMD_SYSTEM_PROMPT_FILE")
    if not system_prompt and prompt_file:
        candidate = Path(prompt_file)
        if candidate.is_file():
            system_prompt = candidate.read_text(encoding="utf-8").strip()
    return system_prompt or DEFAULT_SYSTEM_PROMPT


def _ensure_list(value: Any) -> list[dict]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


def _optional_bool(value: Any, default: bool | None = None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if not text:
        return default
    return parse_bool(text)


def _normalize_choice(value: str | None, allowed: set[str], default: str) -> str:
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in allowed:
        return lowered
    return default
