#!/usr/bin/env python3
"""Voice command center daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from voicecmd.center.config import CenterConfig, render_commands_for_display
from voicecmd.center.service import VoiceCommandCenter

LOGGER = logging.getLogger("voice-command-center")


async def run_mock(center: VoiceCommandCenter, text: str, execute: bool) -> int:
    """Resolve ``text`` as if it had been spoken and report what would happen."""
    if not text.strip():
        print("Mock text is empty", file=sys.stderr)
        return 2

    notices: list[str] = []
    center.channels.notice.subscribe(lambda notice: notices.append(notice.message))
    resolution = await center.handle_transcript(text)
    print(resolution.message or (notices[-1] if notices else resolution.outcome))
    if resolution.resolved is None:
        return 1

    print(f"Command: {resolution.resolved.command_text}")
    if not execute:
        center.controller.cancel()
        return 0

    task = center.controller.confirm()
    if task is not None:
        await task
    await center.controller.drain()
    print(center.history.to_text())
    entries = center.history.entries()
    return 1 if entries and entries[-1].result.is_error else 0


async def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--mock-text", help="resolve TEXT as if it had been spoken, then exit")
    parser.add_argument("--execute", action="store_true", help="with --mock-text, also run the resolved command")
    parser.add_argument("--list-commands", action="store_true", help="print the configured voice commands and exit")
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = CenterConfig.from_env()
    if args.list_commands:
        print(render_commands_for_display(config.settings.commands))
        return 0

    center = VoiceCommandCenter(config)
    if args.mock_text is not None:
        try:
            return await run_mock(center, args.mock_text, args.execute)
        finally:
            await center.controller.close()

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    run_task = asyncio.create_task(center.run())
    await stop_event.wait()
    await center.shutdown()
    run_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await run_task
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
