# mediamanager
# SPDX-License-Identifier: GPL-3.0-or-later

"""
OmxPlayer drives an external player process through its keyboard.

The player is launched once per media with stdin/stdout piped:

  - commands are single keys (or arrow escape sequences) written to stdin,
    fire-and-forget: the player never acknowledges them;
  - stdout+stderr are read line by line, "Seek ... HH:MM:SS" lines reset the
    live position;
  - the end of the output stream means the process exited, which counts as
    a stop.

Media length comes from a separate DurationProbe run that never delays
playback.

States: idle (no running instance), playing, paused.
"""

import asyncio
import logging
import os

from ..lib.config import cfg
from ..lib.errors import SpawnFailure, UnsupportedOperation
from ..lib.time_position import TimePosition, parse_position
from .base import (
    BACKWARD, BIG_BACKWARD, BIG_FORWARD, FORWARD, PAUSE, PLAY, STOP,
    Backend, MediaHandle, PlayerCommand, not_playing_status,
)
from .probe import DurationProbe

log = logging.getLogger(__name__)

DEFAULT_COMMAND = ["stdbuf", "-oL", "-eL", "omxplayer", "-o", "hdmi"]
DEFAULT_EXTENSIONS = ["mkv", "mp4", "avi"]

CONTROL_CODES = {
    STOP: b"q",
    PAUSE: b"p",
    FORWARD: b"\x1b[C",
    BACKWARD: b"\x1b[D",
    BIG_FORWARD: b"\x1b[A",
    BIG_BACKWARD: b"\x1b[B",
}
SEEK_OPERATIONS = (FORWARD, BACKWARD, BIG_FORWARD, BIG_BACKWARD)

POSITION_MARKER = "seek"
STOP_GRACE = 2  # seconds before a closing player gets killed


def describe_media(media: MediaHandle) -> dict:
    to_dict = getattr(media, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {"name": os.path.basename(media.local_path()), "extension": media.extension()}


def same_media(a: MediaHandle, b: MediaHandle) -> bool:
    return a.local_path() == b.local_path()


class RunningInstance:
    """One spawned player process and what is known about its playback."""

    def __init__(self, process, media: MediaHandle):
        self.process = process
        self.stdin = process.stdin
        self.media = media
        self.position = TimePosition(0, absolute=False)
        self.length: TimePosition | None = None
        self.paused = False
        self.pump_task: asyncio.Task | None = None
        self.probe_task: asyncio.Task | None = None

    async def send(self, code: bytes):
        """Write a control code; a dead process is only logged."""
        try:
            self.stdin.write(code)
            await self.stdin.drain()
        except (ConnectionError, RuntimeError) as e:
            log.warning("Control code %r not delivered to %s: %s",
                        code, self.media.local_path(), e)

    def status(self) -> dict:
        return {
            "playing": True,
            "paused": self.paused,
            "media": describe_media(self.media),
            "position": self.position.to_clock().as_dict(),
            "length": self.length.to_clock().as_dict() if self.length else None,
        }


class OmxPlayer(Backend):
    name = "omxplayer"

    def __init__(self, command: list[str] | None = None,
                 extensions: list[str] | None = None,
                 probe: DurationProbe | None = None,
                 name: str | None = None):
        self.command = list(command or cfg("player", "command", default=DEFAULT_COMMAND))
        exts = extensions or cfg("player", "extensions", default=DEFAULT_EXTENSIONS)
        self.extensions = {e.lower().lstrip(".") for e in exts}
        self.probe = probe or DurationProbe()
        if name:
            self.name = name
        self._instance: RunningInstance | None = None
        self._lock = asyncio.Lock()

    def accepts(self, extension: str) -> bool:
        return (extension or "").lower().lstrip(".") in self.extensions

    @property
    def running(self) -> bool:
        return self._instance is not None

    # ── Commands ──

    async def execute(self, command: PlayerCommand) -> None:
        op = command.operation
        async with self._lock:
            instance = self._instance
            new_play = (op == PLAY and command.target is not None
                        and (instance is None or not same_media(instance.media, command.target)))

            if instance is None:
                if not new_play:
                    raise UnsupportedOperation(f"Can not {op}: {self.name} is not playing")

            elif op == STOP or new_play:
                log.info("Stopping %s", instance.media.local_path())
                await instance.send(CONTROL_CODES[STOP])
                self._instance = None

            elif op == PAUSE:
                await self._toggle_pause(instance)

            elif op in SEEK_OPERATIONS:
                await instance.send(CONTROL_CODES[op])

            elif op == PLAY:
                # already the current media: only a paused player has something to do
                if instance.paused:
                    await self._toggle_pause(instance)
                return

            else:
                raise UnsupportedOperation(
                    f"Command {command} is not implemented by {self.name}")

            if new_play:
                self._instance = await self._start(command.target)

    async def _toggle_pause(self, instance: RunningInstance):
        await instance.send(CONTROL_CODES[PAUSE])
        instance.paused = not instance.paused
        # paused → frozen clock, playing → running clock, continuous across the toggle
        instance.position = instance.position.rebase(absolute=instance.paused)
        log.info("%s %s", "Paused" if instance.paused else "Resumed",
                 instance.media.local_path())

    # ── Process lifecycle ──

    async def _spawn(self, *argv: str):
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except (OSError, ValueError) as e:
            raise SpawnFailure(f"Can not start {argv[0]}: {e}") from e

    async def _start(self, media: MediaHandle) -> RunningInstance:
        path = media.local_path()
        log.info("Start to play %s", path)
        process = await self._spawn(*self.command, path)
        if process.stdin is None or process.stdout is None:
            raise SpawnFailure(f"No pipes to {self.command[0]} for {path}")

        instance = RunningInstance(process, media)
        instance.pump_task = asyncio.create_task(self._pump_output(instance))
        instance.probe_task = asyncio.create_task(self._probe_length(instance))
        return instance

    async def _pump_output(self, instance: RunningInstance):
        """Background task, follows the player output until it closes."""
        reader = instance.process.stdout
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    continue  # line longer than the buffer limit
                if not line:
                    break  # EOF, player exited
                text = line.decode(errors="replace").strip()
                log.debug("Player output - %s", text)
                if text.lower().startswith(POSITION_MARKER):
                    async with self._lock:
                        instance.position = parse_position(text, absolute=instance.paused)
        except asyncio.CancelledError:
            return
        await self._terminated(instance)

    async def _terminated(self, instance: RunningInstance):
        async with self._lock:
            if self._instance is instance:
                log.info("Player exited while playing %s", instance.media.local_path())
                self._instance = None
        if instance.probe_task and not instance.probe_task.done():
            instance.probe_task.cancel()
        code = await instance.process.wait()
        log.debug("%s exited with code %s", self.command[0], code)

    async def _probe_length(self, instance: RunningInstance):
        try:
            length = await self.probe.probe(instance.media.local_path())
        except asyncio.CancelledError:
            return
        if length is not None:
            async with self._lock:
                instance.length = length

    # ── Status / shutdown ──

    async def get_status(self) -> dict:
        async with self._lock:
            if self._instance is None:
                return not_playing_status()
            status = self._instance.status()
        status["backend"] = self.name
        return status

    async def close(self) -> None:
        """Stop and reap any running player (service shutdown)."""
        async with self._lock:
            instance, self._instance = self._instance, None
        if instance is None:
            return
        await instance.send(CONTROL_CODES[STOP])
        process = instance.process
        try:
            await asyncio.wait_for(process.wait(), STOP_GRACE)
        except asyncio.TimeoutError:
            log.warning("%s did not quit, killing it", self.command[0])
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
        for task in (instance.pump_task, instance.probe_task):
            if task and not task.done():
                task.cancel()
