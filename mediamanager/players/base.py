# mediamanager
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Backend contract and the command value passed to backends.

Every backend must implement accepts() and execute().  get_status() and
close() have defaults for backends with nothing to report or release.

    class MyBackend(Backend):
        name = "my"

        def accepts(self, extension: str) -> bool: ...
        async def execute(self, command: PlayerCommand) -> None: ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Protocol

PLAY = "play"
PAUSE = "pause"
STOP = "stop"
FORWARD = "forward"
BACKWARD = "backward"
BIG_FORWARD = "bigForward"
BIG_BACKWARD = "bigBackward"

# Operations routed from /api/player/<operation>
OPERATIONS = (PLAY, PAUSE, STOP, FORWARD, BACKWARD, BIG_FORWARD, BIG_BACKWARD)


class MediaHandle(Protocol):
    """What a backend needs from a resolved media file."""

    def extension(self) -> str: ...

    def local_path(self) -> str: ...


@dataclass(frozen=True)
class PlayerCommand:
    operation: str
    target: MediaHandle | None = None
    args: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        # a bare string is one value, not a sequence of characters
        frozen = {k: (v,) if isinstance(v, str) else tuple(v) for k, v in self.args.items()}
        object.__setattr__(self, "args", MappingProxyType(frozen))

    @classmethod
    def create(cls, operation: str, target: MediaHandle | None = None,
               **args: str) -> "PlayerCommand":
        """Build a command; each keyword becomes a one-value argument."""
        return cls(operation, target, {k: (v,) for k, v in args.items()})

    def __str__(self):
        parts = [self.operation]
        if self.target is not None:
            parts.append(self.target.local_path())
        parts.extend(f"{k}={','.join(v)}" for k, v in self.args.items())
        return " ".join(parts)


def not_playing_status() -> dict:
    return {"playing": False}


class Backend(ABC):
    """Interface every playback backend must implement."""

    name: str = ""

    @abstractmethod
    def accepts(self, extension: str) -> bool:
        """True if this backend can play files with *extension* (case-insensitive)."""

    @abstractmethod
    async def execute(self, command: PlayerCommand) -> None:
        """Run *command* against the backend's current state.

        Raises UnsupportedOperation when there is nothing to act on,
        SpawnFailure when a playback process cannot be started.
        """

    # -- Optional: override in backends that track playback --

    async def get_status(self) -> dict:
        return not_playing_status()

    async def close(self) -> None:
        pass  # nothing to release by default

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
