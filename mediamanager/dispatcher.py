# mediamanager
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PlayerDispatcher: serializes player commands onto the registered backends.

Producers (HTTP handlers, tests) enqueue PlayerCommands on a bounded queue;
a single consumer task executes them one at a time, in order.

Backend selection:
  - a command with a target goes to the first backend accepting the
    target's extension.  When that is not the active backend, the active one
    gets a "stop" first (failure logged only) and the new one becomes active;
  - a command without target goes to the active backend;
  - anything else is dropped with a warning.

Lifecycle: RUNNING → DRAINING → STOPPED, one way only.  From DRAINING on,
submissions fail with DispatcherClosed; commands already queued still run.

Usage:
    dispatcher = PlayerDispatcher(OmxPlayer())
    dispatcher.start()
    dispatcher.submit_nowait(PlayerCommand.create("play", media))
    await dispatcher.shutdown()
"""

import asyncio
import enum
import logging

from .lib.errors import DispatcherClosed, MediaManagerError, QueueFull
from .players.base import STOP, Backend, MediaHandle, PlayerCommand, not_playing_status

log = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10


class Lifecycle(enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class PlayerDispatcher:

    def __init__(self, *backends: Backend, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.backends: tuple[Backend, ...] = backends
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._active: Backend | None = None
        self._lifecycle = Lifecycle.RUNNING
        self._shutdown_requested = asyncio.Event()
        self._consumer: asyncio.Task | None = None

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def active_backend(self) -> Backend | None:
        return self._active

    def find_backend(self, media: MediaHandle) -> Backend | None:
        """First registered backend accepting the media's extension."""
        ext = media.extension()
        for backend in self.backends:
            if backend.accepts(ext):
                return backend
        return None

    def is_playable(self, media: MediaHandle) -> bool:
        return self.find_backend(media) is not None

    # ── Producers ──

    def _check_open(self, command: PlayerCommand):
        if self._lifecycle is not Lifecycle.RUNNING:
            raise DispatcherClosed(
                f"Dispatcher is {self._lifecycle.value} and does not accept {command}")

    def submit_nowait(self, command: PlayerCommand) -> None:
        """Queue *command* or fail at once with QueueFull / DispatcherClosed."""
        self._check_open(command)
        try:
            self._queue.put_nowait((command, None))
        except asyncio.QueueFull:
            raise QueueFull(f"Can not accept {command}: command queue is full") from None

    async def submit(self, command: PlayerCommand) -> None:
        """Queue *command*, waiting for room when the queue is full."""
        self._check_open(command)
        await self._put(command, None)

    async def execute(self, command: PlayerCommand) -> bool:
        """Queue *command* and wait until the consumer has run it.

        Returns True when a backend received it, False when it was dropped.
        Re-raises the backend's error (UnsupportedOperation, SpawnFailure...).
        """
        self._check_open(command)
        done = asyncio.get_running_loop().create_future()
        await self._put(command, done)
        return await done

    async def _put(self, command: PlayerCommand, done):
        await self._queue.put((command, done))
        if self._lifecycle is Lifecycle.STOPPED:
            # the consumer ended while this put was waiting for room
            self._fail_pending()
            if done is None:
                raise DispatcherClosed(f"Dispatcher stopped before {command}")

    # ── Consumer ──

    def start(self) -> asyncio.Task:
        """Spawn the consumer task (only one per dispatcher)."""
        if self._consumer is not None:
            raise RuntimeError("Dispatcher already started")
        self._consumer = asyncio.create_task(self._consume())
        return self._consumer

    async def _next_item(self):
        """Next queued item, or None once shutdown was requested and the queue is empty."""
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._shutdown_requested.is_set():
                return None
            getter = asyncio.ensure_future(self._queue.get())
            stopper = asyncio.ensure_future(self._shutdown_requested.wait())
            done, pending = await asyncio.wait(
                {getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if getter in done:
                return getter.result()

    async def _consume(self):
        log.info("Dispatching commands to %s", ", ".join(b.name for b in self.backends))
        try:
            while True:
                item = await self._next_item()
                if item is None:
                    break
                command, done = item
                try:
                    handled = await self._dispatch(command)
                except asyncio.CancelledError:
                    if done is not None:
                        done.cancel()
                    raise
                except MediaManagerError as e:
                    log.error("Command %s failed: %s", command, e)
                    if done is not None and not done.done():
                        done.set_exception(e)
                except Exception as e:
                    log.exception("Command %s crashed", command)
                    if done is not None and not done.done():
                        done.set_exception(e)
                else:
                    if done is not None and not done.done():
                        done.set_result(handled)
        finally:
            self._lifecycle = Lifecycle.STOPPED
            self._fail_pending()
            log.info("Stop processing commands as requested.")

    def _fail_pending(self):
        # items are only left over when the consumer was cancelled or never started
        while not self._queue.empty():
            command, done = self._queue.get_nowait()
            log.warning("Dropping %s: dispatcher stopped", command)
            if done is not None and not done.done():
                done.set_exception(DispatcherClosed(f"Dispatcher stopped before {command}"))

    async def _dispatch(self, command: PlayerCommand) -> bool:
        log.info("Processing command %s", command)

        if command.target is not None:
            backend = self.find_backend(command.target)
            previous = self._active
            if previous is not None and previous is not backend:
                await self._stop_previous(previous)
            if backend is None:
                self._active = None
                log.warning("No backend accepts %s, dropping %s",
                            command.target.local_path(), command)
                return False
            self._active = backend

        elif self._active is None:
            log.warning("Nothing active, dropping %s", command)
            return False

        await self._active.execute(command)
        return True

    async def _stop_previous(self, previous: Backend):
        log.info("Sending STOP to previous backend %s", previous.name)
        try:
            await previous.execute(PlayerCommand(STOP))
        except Exception as e:
            log.warning("Previous backend %s did not stop cleanly: %s", previous.name, e)

    # ── Status ──

    async def get_status(self) -> dict:
        """Status of the active backend, read without going through the queue."""
        backend = self._active
        if backend is None:
            return not_playing_status()
        return await backend.get_status()

    # ── Shutdown ──

    def request_shutdown(self) -> None:
        """Stop accepting commands; the consumer drains the queue then ends. Idempotent."""
        if self._lifecycle is not Lifecycle.RUNNING:
            log.info("Dispatcher already stopped or stopping.")
            return
        self._lifecycle = Lifecycle.DRAINING
        self._shutdown_requested.set()
        if self._consumer is None:
            # never started: nothing will drain the queue
            self._lifecycle = Lifecycle.STOPPED
            self._fail_pending()

    async def shutdown(self) -> None:
        """request_shutdown() and wait for the consumer task to end."""
        self.request_shutdown()
        if self._consumer is not None:
            await asyncio.shield(self._consumer)
